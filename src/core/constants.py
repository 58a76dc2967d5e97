from typing import Dict, Tuple

from src.core.models import RaffleColour

# Canonical RGB per colour, matching the palette the UI paints tickets with
COLOUR_RGB: Dict[RaffleColour, Tuple[int, int, int]] = {
    RaffleColour.RED: (229, 57, 53),        # #e53935
    RaffleColour.BLUE: (30, 136, 229),      # #1e88e5
    RaffleColour.GREEN: (67, 160, 71),      # #43a047
    RaffleColour.YELLOW: (253, 216, 53),    # #fdd835
    RaffleColour.ORANGE: (251, 140, 0),     # #fb8c00
    RaffleColour.PURPLE: (142, 36, 170),    # #8e24aa
    RaffleColour.PINK: (216, 27, 96),       # #d81b60
    RaffleColour.WHITE: (245, 245, 245),    # #f5f5f5
}

COLOUR_HEX: Dict[RaffleColour, str] = {
    colour: '#%02x%02x%02x' % rgb for colour, rgb in COLOUR_RGB.items()
}

# Single character codes used by the QR transfer format
COLOUR_TO_CHAR: Dict[RaffleColour, str] = {
    RaffleColour.RED: 'R',
    RaffleColour.BLUE: 'B',
    RaffleColour.GREEN: 'G',
    RaffleColour.YELLOW: 'Y',
    RaffleColour.ORANGE: 'O',
    RaffleColour.PURPLE: 'P',
    RaffleColour.PINK: 'K',
    RaffleColour.WHITE: 'W',
}

CHAR_TO_COLOUR: Dict[str, RaffleColour] = {v: k for k, v in COLOUR_TO_CHAR.items()}

TICKET_DELIMITER = ','

# Byte-mode capacity of a version 40 symbol is 2331 at level M but only 1273 at level H,
# so the export level must stay at M or lower for this limit to hold
MAX_SAFE_BYTES = 2000
QR_ERROR_CORRECTION = 'M'

FALLBACK_COLOUR = RaffleColour.WHITE

# Colour sampling geometry
EDGE_SAMPLES = 20
EDGE_INSET = 5

DIGITS = '0123456789'
