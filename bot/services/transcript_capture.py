from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from core.errors import ExternalUnavailableError
from database.models import MessageAuthor, TranscriptAttachment, TranscriptEmbed, TranscriptMessage
from services.chat_gateway import ChatGateway
from utils.constants import (
    PLACEHOLDER_CHANNEL_MISSING_ID,
    PLACEHOLDER_NO_MESSAGES_ID,
    SYSTEM_AUTHOR_ID,
    SYSTEM_AUTHOR_NAME,
    TRANSCRIPT_MESSAGE_LIMIT,
)
from utils.time import to_iso, utc_now

LOGGER = logging.getLogger(__name__)

NO_MESSAGES_CONTENT = "No messages found in this ticket channel."


def channel_missing_content(channel_id: int) -> str:
    return (
        f"This ticket channel ({channel_id}) no longer exists or could not be read. "
        "No message history was captured."
    )


class CaptureOutcome(enum.Enum):
    REAL = "real"
    CHANNEL_MISSING = "channel_missing"
    NO_MESSAGES = "no_messages"


@dataclass(slots=True)
class CaptureResult:
    outcome: CaptureOutcome
    messages: list[TranscriptMessage]

    @property
    def is_placeholder(self) -> bool:
        return self.outcome is not CaptureOutcome.REAL


def _placeholder(message_id: str, content: str) -> TranscriptMessage:
    return TranscriptMessage(
        id=message_id,
        author=MessageAuthor(id=SYSTEM_AUTHOR_ID, username=SYSTEM_AUTHOR_NAME, bot=True),
        content=content,
        timestamp=to_iso(utc_now()) or "",
    )


def channel_missing_result(channel_id: int) -> CaptureResult:
    return CaptureResult(
        outcome=CaptureOutcome.CHANNEL_MISSING,
        messages=[_placeholder(PLACEHOLDER_CHANNEL_MISSING_ID, channel_missing_content(channel_id))],
    )


def no_messages_result() -> CaptureResult:
    return CaptureResult(
        outcome=CaptureOutcome.NO_MESSAGES,
        messages=[_placeholder(PLACEHOLDER_NO_MESSAGES_ID, NO_MESSAGES_CONTENT)],
    )


def _embed_color(color: Any) -> int | None:
    if color is None:
        return None
    if isinstance(color, int):
        return color
    return getattr(color, "value", None)


def normalize_message(message: Any) -> TranscriptMessage:
    """Map a platform message (``discord.Message`` or a look-alike) to a transcript record."""
    author = message.author
    display_name = getattr(author, "display_name", None) or getattr(author, "name", "Unknown")
    return TranscriptMessage(
        id=str(message.id),
        author=MessageAuthor(
            id=str(author.id),
            username=str(display_name),
            bot=bool(getattr(author, "bot", False)),
        ),
        content=message.content or "",
        timestamp=to_iso(message.created_at) or "",
        attachments=[
            TranscriptAttachment(
                url=attachment.url,
                name=attachment.filename,
                content_type=getattr(attachment, "content_type", None),
            )
            for attachment in getattr(message, "attachments", [])
        ],
        embeds=[
            TranscriptEmbed(
                title=getattr(embed, "title", None),
                description=getattr(embed, "description", None),
                color=_embed_color(getattr(embed, "color", None)),
                fields=[
                    {"name": item.name, "value": item.value, "inline": bool(item.inline)}
                    for item in getattr(embed, "fields", [])
                ],
            )
            for embed in getattr(message, "embeds", [])
        ],
    )


class TranscriptCapture:
    """Reads a ticket channel's history. Never raises: unreadable channels become placeholders."""

    def __init__(self, gateway: ChatGateway, message_limit: int = TRANSCRIPT_MESSAGE_LIMIT) -> None:
        self.gateway = gateway
        self.message_limit = min(message_limit, TRANSCRIPT_MESSAGE_LIMIT)

    async def capture(self, channel_id: int, message_limit: int | None = None) -> CaptureResult:
        if message_limit is None:
            message_limit = self.message_limit
        limit = min(message_limit, TRANSCRIPT_MESSAGE_LIMIT)
        try:
            resolved = await self.gateway.fetch_channel(channel_id)
            if not resolved.is_text:
                LOGGER.info(
                    "Channel %s is %s; storing placeholder transcript",
                    channel_id,
                    resolved.kind.value,
                    extra={"channel_id": channel_id},
                )
                return channel_missing_result(channel_id)
            fetched = await self.gateway.fetch_messages(channel_id, limit)
            messages = self._chronological(fetched)
        except ExternalUnavailableError as exc:
            LOGGER.info(
                "Channel %s unavailable for transcript capture: %s",
                channel_id,
                exc.user_message,
                extra={"channel_id": channel_id},
            )
            return channel_missing_result(channel_id)
        except Exception:
            LOGGER.exception(
                "Unexpected error capturing transcript for channel %s",
                channel_id,
                extra={"channel_id": channel_id},
            )
            return channel_missing_result(channel_id)

        if not messages:
            return no_messages_result()
        return CaptureResult(outcome=CaptureOutcome.REAL, messages=messages)

    @staticmethod
    def _chronological(fetched: Iterable[Any]) -> list[TranscriptMessage]:
        # The platform returns newest first.
        return [normalize_message(message) for message in reversed(list(fetched))]
