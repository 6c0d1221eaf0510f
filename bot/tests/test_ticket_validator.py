from __future__ import annotations

import pytest

from conftest import seed_ticket
from core.errors import InvalidTransitionError, TicketNotFoundError
from services.ticket_service import TicketService


@pytest.mark.asyncio
async def test_validate_missing_ticket(service: TicketService) -> None:
    with pytest.raises(TicketNotFoundError):
        await service.deps.validator.validate(404)


@pytest.mark.asyncio
async def test_validate_deleted_ticket_is_read_only(service: TicketService) -> None:
    await seed_ticket(service, 5, channel_id=500, status="deleted")

    with pytest.raises(InvalidTransitionError):
        await service.deps.validator.validate(5)

    ticket = await service.deps.validator.validate(5, allow_deleted=True)
    assert ticket.status == "deleted"


@pytest.mark.asyncio
async def test_validate_transition_rejects_same_status(service: TicketService) -> None:
    await seed_ticket(service, 6, channel_id=600, status="closed")

    with pytest.raises(InvalidTransitionError):
        await service.deps.validator.validate_transition(6, "closed")

    ticket = await service.deps.validator.validate_transition(6, "open")
    assert ticket.id == 6


@pytest.mark.asyncio
async def test_validate_ticket_action_returns_result(service: TicketService) -> None:
    await seed_ticket(service, 8, channel_id=800, status="deleted")

    missing = await service.validate_ticket_action(999)
    assert not missing.ok
    assert missing.status_code == 404

    blocked = await service.validate_ticket_action(8)
    assert blocked.status_code == 400
    assert isinstance(blocked.error, InvalidTransitionError)

    allowed = await service.validate_ticket_action(8, allow_deleted=True)
    assert allowed.ok
    assert allowed.ticket is not None and allowed.ticket.id == 8
