from __future__ import annotations

import asyncio
import enum
import io
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, TypeVar

import discord

from core.errors import ExternalUnavailableError
from utils.constants import MISSING_RESOURCE_CODES
from utils.embeds import to_discord_embed

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ChannelKind(enum.Enum):
    TEXT = "text"
    OTHER = "other"
    MISSING = "missing"


@dataclass(slots=True, frozen=True)
class ResolvedChannel:
    channel_id: int
    kind: ChannelKind
    guild_id: int | None = None
    name: str | None = None

    @property
    def is_text(self) -> bool:
        return self.kind is ChannelKind.TEXT


@dataclass(slots=True, frozen=True)
class ChatUser:
    id: int
    username: str
    bot: bool = False


@dataclass(slots=True)
class EmbedField:
    name: str
    value: str
    inline: bool = True


@dataclass(slots=True)
class NoticeEmbed:
    title: str
    description: str
    color: int
    fields: list[EmbedField] = field(default_factory=list)
    footer: str | None = None
    timestamp: datetime | None = None


@dataclass(slots=True)
class FileAttachment:
    filename: str
    data: bytes


@dataclass(slots=True)
class ActionButton:
    custom_id: str
    label: str
    style: str = "danger"


@dataclass(slots=True)
class OutgoingMessage:
    content: str | None = None
    embed: NoticeEmbed | None = None
    files: list[FileAttachment] = field(default_factory=list)
    buttons: list[ActionButton] = field(default_factory=list)


class ChatGateway(Protocol):
    """Capabilities the ticket subsystem needs from the chat platform."""

    async def fetch_channel(self, channel_id: int) -> ResolvedChannel: ...

    async def fetch_messages(self, channel_id: int, limit: int) -> Sequence[Any]: ...

    async def send_channel_message(self, channel_id: int, message: OutgoingMessage) -> None: ...

    async def send_direct_message(self, user_id: int, message: OutgoingMessage) -> None: ...

    async def delete_channel(self, channel_id: int, reason: str) -> None: ...

    async def edit_permission_overwrite(
        self, channel_id: int, user_id: int, *, send_messages: bool, view_channel: bool
    ) -> None: ...

    async def fetch_user(self, user_id: int) -> ChatUser: ...


_BUTTON_STYLES: dict[str, discord.ButtonStyle] = {
    "primary": discord.ButtonStyle.primary,
    "secondary": discord.ButtonStyle.secondary,
    "success": discord.ButtonStyle.success,
    "danger": discord.ButtonStyle.danger,
}


def translate_http_error(exc: discord.HTTPException) -> ExternalUnavailableError:
    code = exc.code or None
    missing = isinstance(exc, discord.NotFound) or code in MISSING_RESOURCE_CODES
    return ExternalUnavailableError(
        f"Discord request failed ({exc.status}, code {code}): {exc.text or exc}",
        missing=missing,
        code=code,
    )


def render_message_kwargs(message: OutgoingMessage) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if message.content:
        kwargs["content"] = message.content
    if message.embed is not None:
        kwargs["embed"] = to_discord_embed(message.embed)
    if message.files:
        kwargs["files"] = [
            discord.File(io.BytesIO(item.data), filename=item.filename) for item in message.files
        ]
    if message.buttons:
        view = discord.ui.View(timeout=None)
        for button in message.buttons:
            view.add_item(
                discord.ui.Button(
                    label=button.label,
                    custom_id=button.custom_id,
                    style=_BUTTON_STYLES.get(button.style, discord.ButtonStyle.secondary),
                )
            )
        kwargs["view"] = view
    return kwargs


class DiscordGateway:
    def __init__(self, client: discord.Client, timeout_seconds: float = 15.0) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except TimeoutError as exc:
            raise ExternalUnavailableError(
                f"Discord request timed out after {self.timeout_seconds}s"
            ) from exc
        except discord.HTTPException as exc:
            raise translate_http_error(exc) from exc

    async def _channel(self, channel_id: int) -> Any:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self._call(self.client.fetch_channel(channel_id))
        return channel

    async def _text_channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = await self._channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise ExternalUnavailableError(
                f"Channel {channel_id} is not text-based", missing=True
            )
        return channel

    async def _user(self, user_id: int) -> discord.User:
        user = self.client.get_user(user_id)
        if user is None:
            user = await self._call(self.client.fetch_user(user_id))
        return user

    async def fetch_channel(self, channel_id: int) -> ResolvedChannel:
        try:
            channel = await self._channel(channel_id)
        except ExternalUnavailableError as exc:
            if exc.missing:
                return ResolvedChannel(channel_id=channel_id, kind=ChannelKind.MISSING)
            raise
        guild = getattr(channel, "guild", None)
        kind = ChannelKind.TEXT if isinstance(channel, discord.abc.Messageable) else ChannelKind.OTHER
        return ResolvedChannel(
            channel_id=channel_id,
            kind=kind,
            guild_id=guild.id if guild else None,
            name=getattr(channel, "name", None),
        )

    async def fetch_messages(self, channel_id: int, limit: int) -> list[discord.Message]:
        channel = await self._text_channel(channel_id)

        async def _collect() -> list[discord.Message]:
            return [message async for message in channel.history(limit=limit)]

        return await self._call(_collect())

    async def send_channel_message(self, channel_id: int, message: OutgoingMessage) -> None:
        channel = await self._text_channel(channel_id)
        await self._call(channel.send(**render_message_kwargs(message)))

    async def send_direct_message(self, user_id: int, message: OutgoingMessage) -> None:
        user = await self._user(user_id)
        await self._call(user.send(**render_message_kwargs(message)))

    async def delete_channel(self, channel_id: int, reason: str) -> None:
        channel = await self._channel(channel_id)
        if not isinstance(channel, discord.abc.GuildChannel):
            raise ExternalUnavailableError(f"Channel {channel_id} cannot be deleted")
        await self._call(channel.delete(reason=reason))

    async def edit_permission_overwrite(
        self, channel_id: int, user_id: int, *, send_messages: bool, view_channel: bool
    ) -> None:
        channel = await self._channel(channel_id)
        if not isinstance(channel, discord.abc.GuildChannel):
            raise ExternalUnavailableError(
                f"Channel {channel_id} has no permission overwrites", missing=True
            )
        member = channel.guild.get_member(user_id)
        if member is None:
            member = await self._call(channel.guild.fetch_member(user_id))
        await self._call(
            channel.set_permissions(member, send_messages=send_messages, view_channel=view_channel)
        )

    async def fetch_user(self, user_id: int) -> ChatUser:
        user = await self._user(user_id)
        return ChatUser(id=user.id, username=user.name, bot=user.bot)
