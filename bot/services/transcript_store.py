from __future__ import annotations

import logging

from database.models import Transcript, TranscriptMessage
from database.repositories import TranscriptRepository
from services.transcript_capture import TranscriptCapture

LOGGER = logging.getLogger(__name__)


class TranscriptStore:
    """Create-if-absent storage of ticket transcripts.

    A stored transcript is never overwritten. ``get_or_create`` returns what is
    persisted, so repeated calls yield identical data and capture at most once.
    """

    def __init__(self, repository: TranscriptRepository, capture: TranscriptCapture) -> None:
        self.repository = repository
        self.capture = capture

    async def get(self, ticket_id: int) -> Transcript | None:
        return await self.repository.get(ticket_id)

    async def exists(self, ticket_id: int) -> bool:
        return await self.repository.exists(ticket_id)

    async def get_or_create(self, ticket_id: int, channel_id: int) -> Transcript:
        existing = await self.repository.get(ticket_id)
        if existing is not None:
            return existing

        result = await self.capture.capture(channel_id)
        await self.save(ticket_id, result.messages)
        stored = await self.repository.get(ticket_id)
        assert stored is not None
        return stored

    async def save(self, ticket_id: int, messages: list[TranscriptMessage]) -> bool:
        created = await self.repository.insert_if_absent(ticket_id, messages)
        if created:
            LOGGER.info(
                "Stored transcript for ticket %s (%s messages)",
                ticket_id,
                len(messages),
                extra={"ticket_id": ticket_id},
            )
        else:
            LOGGER.info(
                "Transcript for ticket %s already stored; keeping the existing copy",
                ticket_id,
                extra={"ticket_id": ticket_id},
            )
        return created
