from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.errors import ExternalUnavailableError
from services.chat_gateway import (
    ActionButton,
    ChannelKind,
    DiscordGateway,
    EmbedField,
    FileAttachment,
    NoticeEmbed,
    OutgoingMessage,
    render_message_kwargs,
    translate_http_error,
)


def _http_error(cls: type[discord.HTTPException], status: int, code: int, message: str) -> discord.HTTPException:
    return cls(SimpleNamespace(status=status, reason=message), {"code": code, "message": message})


def test_unknown_channel_is_missing() -> None:
    error = translate_http_error(_http_error(discord.NotFound, 404, 10003, "Unknown Channel"))
    assert error.missing is True
    assert error.code == 10003


def test_closed_dms_are_missing_but_rate_limits_are_not() -> None:
    closed = translate_http_error(_http_error(discord.Forbidden, 403, 50007, "Cannot send messages to this user"))
    limited = translate_http_error(_http_error(discord.HTTPException, 429, 0, "Too Many Requests"))

    assert closed.missing is True
    assert limited.missing is False
    assert limited.status_code == 503


def test_missing_access_is_not_a_missing_resource() -> None:
    error = translate_http_error(_http_error(discord.Forbidden, 403, 50001, "Missing Access"))
    assert error.missing is False
    assert error.code == 50001


@pytest.mark.asyncio
async def test_calls_are_time_bounded() -> None:
    gateway = DiscordGateway(MagicMock(), timeout_seconds=0.01)
    with pytest.raises(ExternalUnavailableError):
        await gateway._call(asyncio.sleep(1))


@pytest.mark.asyncio
async def test_fetch_channel_resolves_missing_channel() -> None:
    client = MagicMock()
    client.get_channel.return_value = None
    client.fetch_channel = AsyncMock(side_effect=_http_error(discord.NotFound, 404, 10003, "Unknown Channel"))

    resolved = await DiscordGateway(client).fetch_channel(123)

    assert resolved.kind is ChannelKind.MISSING
    assert not resolved.is_text


@pytest.mark.asyncio
async def test_fetch_channel_resolves_non_text_channel() -> None:
    client = MagicMock()
    client.get_channel.return_value = SimpleNamespace(name="voice", guild=SimpleNamespace(id=9))

    resolved = await DiscordGateway(client).fetch_channel(123)

    assert resolved.kind is ChannelKind.OTHER
    assert resolved.guild_id == 9


@pytest.mark.asyncio
async def test_render_message_kwargs_builds_discord_payload() -> None:
    message = OutgoingMessage(
        content="hello",
        embed=NoticeEmbed(
            title="Ticket Closed",
            description="done",
            color=0xE67E22,
            fields=[EmbedField(name="Ticket ID", value="42")],
        ),
        files=[FileAttachment(filename="t.txt", data=b"abc")],
        buttons=[ActionButton(custom_id="delete_ticket_42", label="Delete Ticket")],
    )

    kwargs = render_message_kwargs(message)

    assert kwargs["content"] == "hello"
    assert kwargs["embed"].fields[0].value == "42"
    assert kwargs["embed"].color.value == 0xE67E22
    assert kwargs["files"][0].filename == "t.txt"
    assert kwargs["view"].children[0].custom_id == "delete_ticket_42"
