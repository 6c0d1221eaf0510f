from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeGateway, make_message, seed_ticket
from database.models import TicketRecord
from services.ticket_service import TicketService
from services.transcript_backfill import TranscriptBackfill
from services.transcript_capture import CaptureOutcome, CaptureResult


@pytest.mark.asyncio
async def test_backfill_processes_one_batch_at_a_time(service: TicketService, gateway: FakeGateway) -> None:
    for ticket_id in range(1, 6):
        channel_id = 1000 + ticket_id
        await seed_ticket(service, ticket_id, channel_id=channel_id, status="closed")
        if ticket_id % 2:
            gateway.channels[channel_id] = [make_message(ticket_id, f"ticket {ticket_id}")]
    await seed_ticket(service, 6, channel_id=1006, status="open")

    first = await service.run_transcript_backfill(2)
    assert first.to_dict() == {"processed": 2, "generated": 2, "errors": 0}
    assert await service.deps.transcript_store.exists(5)
    assert await service.deps.transcript_store.exists(4)
    assert not await service.deps.transcript_store.exists(3)

    stats = await service.get_transcript_stats()
    assert stats.tickets_without_transcripts == 3

    second = await service.run_transcript_backfill(2)
    third = await service.run_transcript_backfill(2)
    assert second.processed == 2
    assert third.processed == 1
    assert (await service.run_transcript_backfill(2)).processed == 0
    assert not await service.deps.transcript_store.exists(6)

    placeholder = await service.deps.transcript_store.get(4)
    assert placeholder is not None and placeholder.is_placeholder


@pytest.mark.asyncio
async def test_explicit_zero_batch_is_not_replaced_by_default(service: TicketService) -> None:
    await seed_ticket(service, 1, channel_id=1001, status="closed")

    result = await service.run_transcript_backfill(0)

    assert result.to_dict() == {"processed": 0, "generated": 0, "errors": 0}
    assert not await service.deps.transcript_store.exists(1)
    assert (await service.run_transcript_backfill()).processed == 1


@pytest.mark.asyncio
async def test_backfill_counts_errors_and_continues() -> None:
    tickets = [
        TicketRecord(id=i, guild_id=1, channel_id=100 + i, user_id=2, ticket_number=i, status="closed")
        for i in (3, 2, 1)
    ]
    ticket_repo = MagicMock()
    ticket_repo.list_missing_transcripts = AsyncMock(return_value=tickets)
    capture = MagicMock()
    capture.capture = AsyncMock(return_value=CaptureResult(outcome=CaptureOutcome.REAL, messages=[]))
    store = MagicMock()
    store.save = AsyncMock(side_effect=[True, RuntimeError("disk full"), True])

    result = await TranscriptBackfill(ticket_repo, capture, store, delay_seconds=0).run(batch_size=3)

    assert (result.processed, result.generated, result.errors) == (3, 2, 1)
    ticket_repo.list_missing_transcripts.assert_awaited_once_with(3)
    assert capture.capture.await_count == 3


@pytest.mark.asyncio
async def test_backfill_with_empty_batch_does_nothing() -> None:
    ticket_repo = MagicMock()
    ticket_repo.list_missing_transcripts = AsyncMock()
    result = await TranscriptBackfill(ticket_repo, MagicMock(), MagicMock()).run(batch_size=0)

    assert result.processed == 0
    ticket_repo.list_missing_transcripts.assert_not_awaited()
