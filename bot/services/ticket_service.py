from __future__ import annotations

import logging
from dataclasses import dataclass

from core.config import TranscriptConfig
from core.errors import BotError, InvalidTransitionError, TicketNotFoundError
from database.base import Database
from database.models import TicketRecord, Transcript, TranscriptStats
from database.repositories import GuildSettingsRepository, TicketRepository, TranscriptRepository
from services.channel_lifecycle import ChannelDeletion, ChannelLifecycleManager
from services.chat_gateway import ChatGateway
from services.notifications import NotificationDispatcher
from services.ticket_validator import TicketValidator
from services.transcript_backfill import BackfillResult, TranscriptBackfill
from services.transcript_capture import CaptureOutcome, TranscriptCapture
from services.transcript_store import TranscriptStore
from utils.constants import (
    ACTION_CLOSED,
    ACTION_DELETED,
    ACTION_REOPENED,
    TICKET_STATUS_CLOSED,
    TICKET_STATUS_DELETED,
    TICKET_STATUS_OPEN,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TicketServiceDeps:
    ticket_repo: TicketRepository
    transcript_repo: TranscriptRepository
    guild_settings_repo: GuildSettingsRepository
    validator: TicketValidator
    capture: TranscriptCapture
    transcript_store: TranscriptStore
    channel_manager: ChannelLifecycleManager
    notifications: NotificationDispatcher
    backfill: TranscriptBackfill


@dataclass(slots=True, frozen=True)
class TicketActor:
    """Who requested a ticket action. Both fields are optional for dashboard calls."""

    id: str | None = None
    username: str | None = None


@dataclass(slots=True)
class ValidationResult:
    ticket: TicketRecord | None = None
    error: BotError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        return self.error.status_code if self.error is not None else 200


def build_ticket_deps(config: TranscriptConfig, database: Database, gateway: ChatGateway) -> TicketServiceDeps:
    ticket_repo = TicketRepository(database)
    transcript_repo = TranscriptRepository(database)
    guild_settings_repo = GuildSettingsRepository(database)
    capture = TranscriptCapture(gateway, message_limit=config.message_limit)
    transcript_store = TranscriptStore(transcript_repo, capture)
    channel_manager = ChannelLifecycleManager(gateway, ticket_repo)
    return TicketServiceDeps(
        ticket_repo=ticket_repo,
        transcript_repo=transcript_repo,
        guild_settings_repo=guild_settings_repo,
        validator=TicketValidator(ticket_repo),
        capture=capture,
        transcript_store=transcript_store,
        channel_manager=channel_manager,
        notifications=NotificationDispatcher(
            gateway, transcript_store, guild_settings_repo, channel_manager, ticket_repo
        ),
        backfill=TranscriptBackfill(
            ticket_repo, capture, transcript_store, delay_seconds=config.backfill_delay_seconds
        ),
    )


class TicketService:
    """Ticket lifecycle operations shared by slash commands, buttons and the REST API.

    Mutations run validate, transcript, re-validate, status write, notify and
    channel side effects in that order. Only the status write can fail the
    operation; everything after it is best effort.
    """

    def __init__(self, config: TranscriptConfig, deps: TicketServiceDeps) -> None:
        self.config = config
        self.deps = deps

    def _closed_by(self, actor: TicketActor | None) -> str:
        if actor and actor.id:
            return actor.id
        return self.config.default_actor

    def _actor_label(self, actor: TicketActor | None) -> str:
        if actor is None:
            return self.config.default_actor
        return actor.username or actor.id or self.config.default_actor

    async def validate_ticket_action(self, ticket_id: int, allow_deleted: bool = False) -> ValidationResult:
        try:
            ticket = await self.deps.validator.validate(ticket_id, allow_deleted=allow_deleted)
        except BotError as exc:
            return ValidationResult(error=exc)
        return ValidationResult(ticket=ticket)

    async def get_ticket(self, ticket_id: int) -> TicketRecord:
        return await self.deps.validator.validate(ticket_id, allow_deleted=True)

    async def get_ticket_by_channel(self, guild_id: int, channel_id: int) -> TicketRecord | None:
        return await self.deps.ticket_repo.get_by_channel(guild_id, channel_id)

    async def create_ticket(
        self, guild_id: int, channel_id: int, user_id: int, subject: str | None = None
    ) -> TicketRecord:
        ticket_number = await self.deps.guild_settings_repo.next_ticket_number(guild_id)
        ticket = await self.deps.ticket_repo.create(
            TicketRecord(
                id=None,
                guild_id=guild_id,
                channel_id=channel_id,
                user_id=user_id,
                ticket_number=ticket_number,
                subject=subject,
            )
        )
        LOGGER.info(
            "Created ticket %s (#%s) in channel %s",
            ticket.id,
            ticket.ticket_number,
            channel_id,
            extra={"ticket_id": ticket.id, "channel_id": channel_id, "user_id": user_id},
        )
        return ticket

    async def _apply_transition(
        self, ticket: TicketRecord, new_status: str, actor: TicketActor | None
    ) -> TicketRecord:
        assert ticket.id is not None
        closed_by = self._closed_by(actor) if new_status != TICKET_STATUS_OPEN else None
        applied = await self.deps.ticket_repo.transition(ticket.id, ticket.status, new_status, actor=closed_by)
        if not applied:
            raise InvalidTransitionError(
                f"Ticket #{ticket.ticket_number} was changed by another request; try again."
            )
        updated = await self.deps.ticket_repo.get_by_id(ticket.id)
        if updated is None:
            raise TicketNotFoundError()
        LOGGER.info(
            "Ticket %s moved %s -> %s by %s",
            ticket.id,
            ticket.status,
            new_status,
            self._actor_label(actor),
            extra={"ticket_id": ticket.id, "channel_id": ticket.channel_id},
        )
        return updated

    async def close_ticket(
        self, ticket_id: int, reason: str | None = None, actor: TicketActor | None = None
    ) -> TicketRecord:
        ticket = await self.deps.validator.validate_transition(ticket_id, TICKET_STATUS_CLOSED)
        await self.deps.transcript_store.get_or_create(ticket_id, ticket.channel_id)

        ticket = await self.deps.validator.validate_transition(ticket_id, TICKET_STATUS_CLOSED)
        updated = await self._apply_transition(ticket, TICKET_STATUS_CLOSED, actor)
        await self.deps.notifications.notify(updated, ACTION_CLOSED, reason, self._actor_label(actor))
        return updated

    async def reopen_ticket(
        self, ticket_id: int, reason: str | None = None, actor: TicketActor | None = None
    ) -> TicketRecord:
        ticket = await self.deps.validator.validate_transition(ticket_id, TICKET_STATUS_OPEN)
        updated = await self._apply_transition(ticket, TICKET_STATUS_OPEN, actor)
        await self.deps.notifications.notify(updated, ACTION_REOPENED, reason, self._actor_label(actor))
        return updated

    async def delete_ticket(
        self, ticket_id: int, reason: str | None = None, actor: TicketActor | None = None
    ) -> TicketRecord:
        ticket = await self.deps.validator.validate_transition(ticket_id, TICKET_STATUS_DELETED)
        await self.deps.transcript_store.get_or_create(ticket_id, ticket.channel_id)

        ticket = await self.deps.validator.validate_transition(ticket_id, TICKET_STATUS_DELETED)
        updated = await self._apply_transition(ticket, TICKET_STATUS_DELETED, actor)
        await self.deps.notifications.notify(updated, ACTION_DELETED, reason, self._actor_label(actor))

        outcome = await self.deps.channel_manager.delete_channel(
            updated.channel_id,
            reason or f"Ticket #{updated.ticket_number} deleted",
            ticket_id=ticket_id,
        )
        if outcome is ChannelDeletion.FAILED:
            LOGGER.warning(
                "Ticket %s deleted but its channel %s could not be removed",
                ticket_id,
                updated.channel_id,
                extra={"ticket_id": ticket_id, "channel_id": updated.channel_id},
            )
        return updated

    async def get_transcript(self, ticket_id: int) -> Transcript | None:
        await self.deps.validator.validate(ticket_id, allow_deleted=True)
        return await self.deps.transcript_store.get(ticket_id)

    async def store_transcript(self, ticket_id: int, channel_id: int | None = None) -> bool:
        """Capture and store a transcript on demand.

        Returns True when a transcript exists for the ticket afterwards, False when
        the channel could not be read and nothing was stored.
        """
        ticket = await self.deps.validator.validate(ticket_id, allow_deleted=True)
        if await self.deps.transcript_store.exists(ticket_id):
            return True

        result = await self.deps.capture.capture(channel_id or ticket.channel_id)
        if result.outcome is CaptureOutcome.CHANNEL_MISSING:
            LOGGER.info(
                "Channel for ticket %s is unavailable; transcript not stored",
                ticket_id,
                extra={"ticket_id": ticket_id, "channel_id": channel_id or ticket.channel_id},
            )
            return False
        await self.deps.transcript_store.save(ticket_id, result.messages)
        return True

    async def run_transcript_backfill(self, batch_size: int | None = None) -> BackfillResult:
        if batch_size is None:
            batch_size = self.config.backfill_batch_size
        return await self.deps.backfill.run(batch_size)

    async def get_transcript_stats(self) -> TranscriptStats:
        return await self.deps.transcript_repo.stats()

    async def set_log_channel(self, guild_id: int, channel_id: int) -> None:
        await self.deps.guild_settings_repo.set_log_channels(guild_id, channel_id)
