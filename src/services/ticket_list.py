import re
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from src.core.constants import TICKET_DELIMITER
from src.core.errors import TicketValidationError
from src.core.models import RaffleColour, RaffleTicket, COLOURS

logger = logging.getLogger(__name__)


def validate_number(number: str) -> str:
    """Trims the number and rejects values the transfer format cannot carry."""
    number = (number or "").strip()
    if not number:
        raise TicketValidationError("Ticket number cannot be empty")
    if TICKET_DELIMITER in number:
        raise TicketValidationError(f"Ticket number cannot contain '{TICKET_DELIMITER}'")
    return number


LEADING_INT = re.compile(r'\s*([+-]?\d+)')


def _sort_key(ticket: RaffleTicket):
    # Leading integer, like the UI's parseInt: "12a" sorts as 12
    match = LEADING_INT.match(ticket.number)
    if match:
        return (0, int(match.group(1)), ticket.number)
    return (1, 0, ticket.number)


class TicketList:
    """In-memory ticket collection. Owns identity assignment."""

    def __init__(self):
        self._tickets: List[RaffleTicket] = []
        self._next_id = 1
        self._listeners: List[Callable[[], None]] = []

    @property
    def tickets(self) -> List[RaffleTicket]:
        return list(self._tickets)

    def __len__(self):
        return len(self._tickets)

    def register_listener(self, callback: Callable[[], None]):
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unregister_listener(self, callback: Callable[[], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self):
        for cb in list(self._listeners):
            try:
                cb()
            except Exception as e:
                logger.error(f"Ticket listener failed: {e}")

    def add(self, number: str, colour: RaffleColour) -> RaffleTicket:
        ticket = RaffleTicket(id=self._next_id, number=validate_number(number), colour=RaffleColour(colour))
        self._next_id += 1
        self._tickets.append(ticket)
        logger.info(f"Added ticket {ticket.number} ({ticket.colour.value})")
        self._notify()
        return ticket

    def import_tickets(self, imported: Sequence[RaffleTicket]) -> List[RaffleTicket]:
        """Appends imported tickets under new identities. Incoming ids are ignored."""
        added = []
        for t in imported:
            try:
                number = validate_number(t.number)
            except TicketValidationError as e:
                logger.warning(f"Skipping imported ticket {t.number!r}: {e}")
                continue
            added.append(RaffleTicket(id=self._next_id, number=number, colour=t.colour))
            self._next_id += 1

        self._tickets.extend(added)
        logger.info(f"Imported {len(added)} tickets")
        self._notify()
        return added

    def remove(self, ticket_id: int) -> bool:
        before = len(self._tickets)
        self._tickets = [t for t in self._tickets if t.id != ticket_id]
        removed = len(self._tickets) != before
        if removed:
            self._notify()
        return removed

    def get(self, ticket_id: int) -> Optional[RaffleTicket]:
        return next((t for t in self._tickets if t.id == ticket_id), None)

    def grouped(self) -> List[Tuple[RaffleColour, List[RaffleTicket]]]:
        """Tickets grouped by colour in enumeration order; empty groups are dropped."""
        groups: Dict[RaffleColour, List[RaffleTicket]] = {c: [] for c in COLOURS}
        for t in self._tickets:
            groups[t.colour].append(t)
        return [(c, sorted(ts, key=_sort_key)) for c, ts in groups.items() if ts]


ticket_list = TicketList()
