import os
import json
import logging
from typing import Dict, Any

DATA_DIR = os.path.join(os.getcwd(), "data")
CONFIG_FILE = os.path.join(DATA_DIR, "config.json")

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    # Camera
    'camera_facing_mode': 'environment',
    'camera_width': 1280,
    'camera_height': 720,
    'camera_timeout': 20.0,

    # OCR
    'ocr_languages': ['en'],
    'ocr_gpu': False,
    'ocr_digits_only': True,

    # Tickets
    'default_colour': 'Red',

    # QR transfer
    'qr_poll_interval': 0.1,
    'qr_max_malformed': 30,
    'qr_error_correction': 'M',
    'max_safe_bytes': 2000,
}


def load_config() -> Dict[str, Any]:
    """Returns the stored config merged over the defaults."""
    config = dict(DEFAULT_CONFIG)
    if not os.path.exists(CONFIG_FILE):
        return config

    try:
        with open(CONFIG_FILE, 'r', encoding='utf-8') as f:
            stored = json.load(f)
        if isinstance(stored, dict):
            config.update(stored)
        else:
            logger.error(f"Ignoring malformed config file {CONFIG_FILE}")
    except (OSError, ValueError) as e:
        logger.error(f"Error loading config: {e}")

    return config


def save_config(config: Dict[str, Any]):
    try:
        os.makedirs(DATA_DIR, exist_ok=True)
        with open(CONFIG_FILE, 'w', encoding='utf-8') as f:
            json.dump(config, f, indent=2)
    except OSError as e:
        logger.error(f"Error saving config: {e}")


def get_setting(key: str, default: Any = None) -> Any:
    if default is None:
        default = DEFAULT_CONFIG.get(key)
    return load_config().get(key, default)


def get_camera_constraints() -> Dict[str, Any]:
    """Builds getUserMedia constraints from the camera settings."""
    config = load_config()
    return {
        'video': {
            'facingMode': config['camera_facing_mode'],
            'width': {'ideal': config['camera_width']},
            'height': {'ideal': config['camera_height']},
        },
        'audio': False,
    }
