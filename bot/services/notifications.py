from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from core.errors import ExternalUnavailableError
from database.models import TicketRecord
from database.repositories import GuildSettingsRepository, TicketRepository
from services.channel_lifecycle import ChannelLifecycleManager
from services.chat_gateway import (
    ActionButton,
    ChatGateway,
    EmbedField,
    FileAttachment,
    NoticeEmbed,
    OutgoingMessage,
)
from services.transcript_store import TranscriptStore
from utils.constants import (
    ACTION_CLOSED,
    ACTION_DELETED,
    ACTION_REOPENED,
    CHANNEL_MISSING_NOTE,
    DELETE_BUTTON_PREFIX,
    TICKET_ACTIONS,
)
from utils.embeds import ACTION_TITLES, action_color
from utils.time import utc_now
from utils.transcripts import render_text, transcript_filename

LOGGER = logging.getLogger(__name__)

TARGET_DIRECT_MESSAGE = "direct_message"
TARGET_LOG_CHANNEL = "log_channel"
TARGET_TICKET_CHANNEL = "ticket_channel"


def build_summary(
    ticket: TicketRecord, action: str, reason: str | None = None, actor: str | None = None
) -> NoticeEmbed:
    fields = [
        EmbedField(name="Ticket ID", value=str(ticket.id)),
        EmbedField(name="User", value=f"<@{ticket.user_id}>"),
        EmbedField(name="Status", value=action.capitalize()),
    ]
    if actor:
        fields.append(EmbedField(name="By", value=actor))
    if reason:
        fields.append(EmbedField(name="Reason", value=reason, inline=False))
    return NoticeEmbed(
        title=ACTION_TITLES.get(action, f"Ticket {action.capitalize()}"),
        description=f"Ticket #{ticket.ticket_number} has been {action}.",
        color=action_color(action),
        fields=fields,
        timestamp=utc_now(),
    )


class NotificationDispatcher:
    """Fans a ticket status change out to the owner, the guild log channel and the ticket channel.

    Each target runs as its own task. A failing target is logged and never blocks
    or cancels the others, and nothing is raised to the caller.
    """

    def __init__(
        self,
        gateway: ChatGateway,
        transcript_store: TranscriptStore,
        guild_settings_repo: GuildSettingsRepository,
        channel_manager: ChannelLifecycleManager,
        ticket_repo: TicketRepository,
    ) -> None:
        self.gateway = gateway
        self.transcript_store = transcript_store
        self.guild_settings_repo = guild_settings_repo
        self.channel_manager = channel_manager
        self.ticket_repo = ticket_repo

    async def notify(
        self,
        ticket: TicketRecord,
        action: str,
        reason: str | None = None,
        actor: str | None = None,
    ) -> None:
        if action not in TICKET_ACTIONS:
            raise ValueError(f"Unknown ticket action: {action}")

        targets: dict[str, Awaitable[None]] = {}
        if action in {ACTION_CLOSED, ACTION_DELETED}:
            targets[TARGET_DIRECT_MESSAGE] = self._notify_owner(ticket, action, reason)
        targets[TARGET_LOG_CHANNEL] = self._notify_log_channel(ticket, action, reason, actor)
        if action != ACTION_DELETED:
            targets[TARGET_TICKET_CHANNEL] = self._notify_ticket_channel(ticket, action, reason, actor)

        results = await asyncio.gather(*targets.values(), return_exceptions=True)
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                self._log_failure(target, ticket, result)

    async def _notify_owner(self, ticket: TicketRecord, action: str, reason: str | None) -> None:
        assert ticket.id is not None
        owner = await self.gateway.fetch_user(ticket.user_id)
        if owner.bot:
            return
        transcript = await self.transcript_store.get(ticket.id)
        if transcript is None:
            LOGGER.warning(
                "No transcript stored for ticket %s; skipping owner DM",
                ticket.id,
                extra={"ticket_id": ticket.id, "user_id": ticket.user_id},
            )
            return
        notice = NoticeEmbed(
            title=ACTION_TITLES.get(action, "Ticket Update"),
            description=(
                f"Your ticket #{ticket.ticket_number} has been {action}."
                + (f"\nReason: {reason}" if reason else "")
            ),
            color=action_color(action),
            timestamp=utc_now(),
        )
        await self.gateway.send_direct_message(owner.id, OutgoingMessage(embed=notice))
        await self.gateway.send_direct_message(
            owner.id,
            OutgoingMessage(
                content="Here is the transcript of your ticket.",
                files=[
                    FileAttachment(
                        filename=transcript_filename(ticket),
                        data=render_text(transcript).encode("utf-8"),
                    )
                ],
            ),
        )

    async def _notify_log_channel(
        self, ticket: TicketRecord, action: str, reason: str | None, actor: str | None
    ) -> None:
        channel_id = await self.guild_settings_repo.get_log_channel_id(ticket.guild_id)
        if channel_id is None:
            LOGGER.debug("Guild %s has no ticket log channel configured", ticket.guild_id)
            return
        await self.gateway.send_channel_message(
            channel_id, OutgoingMessage(embed=build_summary(ticket, action, reason, actor))
        )

    async def _notify_ticket_channel(
        self, ticket: TicketRecord, action: str, reason: str | None, actor: str | None
    ) -> None:
        assert ticket.id is not None
        buttons: list[ActionButton] = []
        if action == ACTION_CLOSED:
            buttons.append(ActionButton(custom_id=f"{DELETE_BUTTON_PREFIX}{ticket.id}", label="Delete Ticket"))
        try:
            await self.gateway.send_channel_message(
                ticket.channel_id,
                OutgoingMessage(embed=build_summary(ticket, action, reason, actor), buttons=buttons),
            )
        except ExternalUnavailableError as exc:
            if not exc.missing:
                raise
            LOGGER.info(
                "Ticket channel %s for ticket %s is gone: %s",
                ticket.channel_id,
                ticket.id,
                exc.user_message,
                extra={"ticket_id": ticket.id, "channel_id": ticket.channel_id},
            )
            await self.ticket_repo.append_note(ticket.id, CHANNEL_MISSING_NOTE)
            return

        if action == ACTION_CLOSED:
            await self.channel_manager.set_send_permission(ticket.channel_id, ticket.user_id, False)
        elif action == ACTION_REOPENED:
            await self.channel_manager.set_send_permission(ticket.channel_id, ticket.user_id, True)

    @staticmethod
    def _log_failure(target: str, ticket: TicketRecord, exc: BaseException) -> None:
        context = {
            "ticket_id": ticket.id,
            "channel_id": ticket.channel_id,
            "user_id": ticket.user_id,
            "target": target,
        }
        if isinstance(exc, ExternalUnavailableError) and exc.missing:
            LOGGER.info("Skipped %s notification for ticket %s: %s", target, ticket.id, exc, extra=context)
            return
        LOGGER.error(
            "Failed %s notification for ticket %s",
            target,
            ticket.id,
            exc_info=exc,
            extra=context,
        )
