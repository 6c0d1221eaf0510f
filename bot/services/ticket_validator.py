from __future__ import annotations

from core.errors import InvalidTransitionError, TicketNotFoundError
from database.models import TicketRecord
from database.repositories import TicketRepository
from utils.constants import TICKET_STATUS_DELETED, TICKET_TRANSITIONS


class TicketValidator:
    """Read-only guard run before every ticket mutation.

    Always reads the row again; results must not be reused across awaits.
    """

    def __init__(self, ticket_repo: TicketRepository) -> None:
        self.ticket_repo = ticket_repo

    async def validate(self, ticket_id: int, allow_deleted: bool = False) -> TicketRecord:
        ticket = await self.ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError()
        if ticket.status == TICKET_STATUS_DELETED and not allow_deleted:
            raise InvalidTransitionError("Cannot modify a deleted ticket.")
        return ticket

    async def validate_transition(self, ticket_id: int, new_status: str) -> TicketRecord:
        ticket = await self.validate(ticket_id)
        if new_status not in TICKET_TRANSITIONS.get(ticket.status, frozenset()):
            raise InvalidTransitionError(
                f"Cannot move ticket #{ticket.ticket_number} from {ticket.status} to {new_status}."
            )
        return ticket
