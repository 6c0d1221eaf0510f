from __future__ import annotations

import enum
import logging

from core.errors import ExternalUnavailableError
from database.base import DATABASE_ERRORS
from database.repositories import TicketRepository
from services.chat_gateway import ChatGateway
from utils.constants import CHANNEL_ORPHANED_NOTE

LOGGER = logging.getLogger(__name__)


class ChannelDeletion(enum.Enum):
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        return self is not ChannelDeletion.FAILED


class ChannelLifecycleManager:
    """Channel side effects of ticket transitions. Failures are logged, never raised."""

    def __init__(self, gateway: ChatGateway, ticket_repo: TicketRepository) -> None:
        self.gateway = gateway
        self.ticket_repo = ticket_repo

    async def delete_channel(
        self, channel_id: int, reason: str, ticket_id: int | None = None
    ) -> ChannelDeletion:
        context = {"channel_id": channel_id, "ticket_id": ticket_id}
        try:
            await self.gateway.delete_channel(channel_id, reason)
        except ExternalUnavailableError as exc:
            if exc.missing:
                LOGGER.info("Channel %s already gone; nothing to delete", channel_id, extra=context)
                return ChannelDeletion.ALREADY_GONE
            LOGGER.error(
                "Could not delete channel %s for ticket %s: %s",
                channel_id,
                ticket_id,
                exc.user_message,
                extra=context,
            )
        except Exception:
            LOGGER.exception(
                "Unexpected error deleting channel %s for ticket %s", channel_id, ticket_id, extra=context
            )
        else:
            LOGGER.info("Deleted channel %s for ticket %s", channel_id, ticket_id, extra=context)
            return ChannelDeletion.DELETED

        if ticket_id is not None:
            await self._flag_orphaned(ticket_id, channel_id)
        return ChannelDeletion.FAILED

    async def set_send_permission(self, channel_id: int, user_id: int, allowed: bool) -> bool:
        context = {"channel_id": channel_id, "user_id": user_id}
        try:
            await self.gateway.edit_permission_overwrite(
                channel_id, user_id, send_messages=allowed, view_channel=True
            )
        except ExternalUnavailableError as exc:
            if exc.missing:
                LOGGER.info(
                    "Skipped permission update for user %s in channel %s: %s",
                    user_id,
                    channel_id,
                    exc.user_message,
                    extra=context,
                )
            else:
                LOGGER.error(
                    "Could not update send permission for user %s in channel %s: %s",
                    user_id,
                    channel_id,
                    exc.user_message,
                    extra=context,
                )
            return False
        except Exception:
            LOGGER.exception(
                "Unexpected error updating permissions for user %s in channel %s",
                user_id,
                channel_id,
                extra=context,
            )
            return False
        return True

    async def _flag_orphaned(self, ticket_id: int, channel_id: int) -> None:
        try:
            await self.ticket_repo.append_note(ticket_id, f"{CHANNEL_ORPHANED_NOTE} ({channel_id})")
        except DATABASE_ERRORS:
            LOGGER.exception(
                "Could not flag channel %s of ticket %s as orphaned",
                channel_id,
                ticket_id,
                extra={"channel_id": channel_id, "ticket_id": ticket_id},
            )
