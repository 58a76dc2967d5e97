import io
import time
import logging
import itertools
from typing import Callable, List, Optional, Sequence

import qrcode
import qrcode.constants
import qrcode.image.svg
from qrcode.exceptions import DataOverflowError

from src.core.constants import (
    COLOUR_TO_CHAR, CHAR_TO_COLOUR, TICKET_DELIMITER, MAX_SAFE_BYTES, QR_ERROR_CORRECTION, FALLBACK_COLOUR
)
from src.core.errors import CapacityExceeded
from src.core.models import RaffleTicket, ExportPayload

logger = logging.getLogger(__name__)

ERROR_CORRECTION_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,
    'M': qrcode.constants.ERROR_CORRECT_M,
    'Q': qrcode.constants.ERROR_CORRECT_Q,
    'H': qrcode.constants.ERROR_CORRECT_H,
}

# Imported tickets get identities from a clock-seeded counter so two imports never collide
_import_ids = itertools.count(int(time.time() * 1000))


def encode_tickets(tickets: Sequence[RaffleTicket]) -> str:
    """Compact comma-delimited format: "12345R,678B,12346G"."""
    entries = []
    for t in tickets:
        if TICKET_DELIMITER in t.number:
            raise ValueError(f"Ticket number {t.number!r} contains '{TICKET_DELIMITER}' and cannot be transferred")
        entries.append(t.number + COLOUR_TO_CHAR[t.colour])
    return TICKET_DELIMITER.join(entries)


def decode_tickets(data: Optional[str]) -> Optional[List[RaffleTicket]]:
    """
    Parses a transfer payload. Returns None for an empty or malformed payload.
    Identities are freshly minted; they are never carried in the payload.
    """
    if not data:
        return None

    tickets = []
    for entry in data.split(TICKET_DELIMITER):
        number = entry[:-1]
        colour = CHAR_TO_COLOUR.get(entry[-1:], FALLBACK_COLOUR)
        if not number.strip():
            logger.debug(f"Rejecting payload with empty entry {entry!r}")
            return None
        tickets.append(RaffleTicket(id=next(_import_ids), number=number, colour=colour))

    return tickets


def estimate_payload_size(tickets: Sequence[RaffleTicket]) -> int:
    """Byte length of the encoded payload."""
    return len(encode_tickets(tickets).encode('utf-8'))


def render_qr_svg(payload: str, level: str = QR_ERROR_CORRECTION) -> str:
    """Renders the payload as an SVG QR symbol. Raises CapacityExceeded if no version can hold it."""
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECTION_LEVELS.get(level.upper(), qrcode.constants.ERROR_CORRECT_M),
        box_size=10,
        border=4,
        image_factory=qrcode.image.svg.SvgPathImage,
    )
    qr.add_data(payload)
    try:
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        # Older qrcode releases report overflow as an invalid version 41
        raise CapacityExceeded(f"Payload of {len(payload.encode('utf-8'))} bytes does not fit a level {level} symbol") from e
    img = qr.make_image()

    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue().decode('utf-8')


def prepare_export(tickets: Sequence[RaffleTicket],
                   max_bytes: int = MAX_SAFE_BYTES,
                   level: str = QR_ERROR_CORRECTION,
                   renderer: Callable[[str, str], str] = render_qr_svg) -> ExportPayload:
    """
    Encodes the tickets and renders the symbol when the payload fits.
    Oversize payloads are reported without ever calling the renderer.
    """
    payload = encode_tickets(tickets)
    size = len(payload.encode('utf-8'))
    oversize = size > max_bytes

    export = ExportPayload(payload=payload, size=size, ticket_count=len(tickets), oversize=oversize)
    if oversize:
        logger.warning(f"Export payload of {size} bytes exceeds the {max_bytes} byte limit ({len(tickets)} tickets)")
        return export

    if tickets:
        try:
            export.svg = renderer(payload, level)
        except CapacityExceeded as e:
            logger.warning(f"Export payload rejected by the QR encoder: {e}")
            export.oversize = True
    return export
