from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass

from database.repositories import TicketRepository
from services.transcript_capture import TranscriptCapture
from services.transcript_store import TranscriptStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BackfillResult:
    processed: int = 0
    generated: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class TranscriptBackfill:
    """Captures transcripts for closed or deleted tickets that never got one.

    Tickets are taken most recent first, one at a time, with a short pause between
    platform fetches.
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        capture: TranscriptCapture,
        store: TranscriptStore,
        delay_seconds: float = 0.1,
    ) -> None:
        self.ticket_repo = ticket_repo
        self.capture = capture
        self.store = store
        self.delay_seconds = delay_seconds
        self._lock = asyncio.Lock()

    async def run(self, batch_size: int = 50) -> BackfillResult:
        result = BackfillResult()
        if batch_size <= 0:
            return result

        async with self._lock:
            tickets = await self.ticket_repo.list_missing_transcripts(batch_size)
            LOGGER.info("Transcript backfill starting for %s tickets", len(tickets))
            for index, ticket in enumerate(tickets):
                assert ticket.id is not None
                if index and self.delay_seconds > 0:
                    await asyncio.sleep(self.delay_seconds)
                result.processed += 1
                try:
                    captured = await self.capture.capture(ticket.channel_id)
                    if await self.store.save(ticket.id, captured.messages):
                        result.generated += 1
                except Exception:
                    result.errors += 1
                    LOGGER.exception(
                        "Transcript backfill failed for ticket %s",
                        ticket.id,
                        extra={"ticket_id": ticket.id, "channel_id": ticket.channel_id},
                    )

        LOGGER.info(
            "Transcript backfill finished: processed=%s generated=%s errors=%s",
            result.processed,
            result.generated,
            result.errors,
        )
        return result
