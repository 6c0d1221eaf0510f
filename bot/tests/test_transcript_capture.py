from __future__ import annotations

from types import SimpleNamespace

import pytest

from conftest import FakeGateway, make_message
from core.errors import ExternalUnavailableError
from services.transcript_capture import (
    NO_MESSAGES_CONTENT,
    CaptureOutcome,
    TranscriptCapture,
    normalize_message,
)
from utils.constants import PLACEHOLDER_CHANNEL_MISSING_ID, PLACEHOLDER_NO_MESSAGES_ID, SYSTEM_AUTHOR_ID


@pytest.mark.asyncio
async def test_capture_returns_chronological_messages(gateway: FakeGateway) -> None:
    gateway.channels[10] = [
        make_message(3, "third", minutes=2),
        make_message(2, "second", minutes=1),
        make_message(1, "first", minutes=0),
    ]
    result = await TranscriptCapture(gateway).capture(10)

    assert result.outcome is CaptureOutcome.REAL
    assert [m.content for m in result.messages] == ["first", "second", "third"]
    assert result.messages[0].author.username == "alice"


@pytest.mark.asyncio
async def test_missing_channel_yields_system_placeholder(gateway: FakeGateway) -> None:
    result = await TranscriptCapture(gateway).capture(11)

    assert result.outcome is CaptureOutcome.CHANNEL_MISSING
    assert len(result.messages) == 1
    placeholder = result.messages[0]
    assert placeholder.author.id == SYSTEM_AUTHOR_ID
    assert placeholder.id == PLACEHOLDER_CHANNEL_MISSING_ID
    assert placeholder.content


@pytest.mark.asyncio
async def test_non_text_channel_is_treated_as_missing(gateway: FakeGateway) -> None:
    gateway.channels[12] = []
    gateway.non_text.add(12)

    result = await TranscriptCapture(gateway).capture(12)
    assert result.outcome is CaptureOutcome.CHANNEL_MISSING
    assert gateway.fetch_messages_calls == 0


@pytest.mark.asyncio
async def test_empty_channel_placeholder_differs_from_missing(gateway: FakeGateway) -> None:
    gateway.channels[13] = []
    capture = TranscriptCapture(gateway)

    empty = await capture.capture(13)
    missing = await capture.capture(14)

    assert empty.outcome is CaptureOutcome.NO_MESSAGES
    assert empty.messages[0].id == PLACEHOLDER_NO_MESSAGES_ID
    assert empty.messages[0].content == NO_MESSAGES_CONTENT
    assert empty.messages[0].content != missing.messages[0].content


@pytest.mark.asyncio
async def test_fetch_errors_degrade_to_placeholder(gateway: FakeGateway) -> None:
    gateway.channels[15] = [make_message(1, "hello")]
    gateway.failures["fetch_messages"] = ExternalUnavailableError("rate limited")
    capture = TranscriptCapture(gateway)

    assert (await capture.capture(15)).outcome is CaptureOutcome.CHANNEL_MISSING

    gateway.failures["fetch_messages"] = RuntimeError("boom")
    assert (await capture.capture(15)).outcome is CaptureOutcome.CHANNEL_MISSING


@pytest.mark.asyncio
async def test_message_limit_is_capped(gateway: FakeGateway) -> None:
    gateway.channels[16] = [make_message(i, f"m{i}") for i in range(150, 0, -1)]

    result = await TranscriptCapture(gateway, message_limit=500).capture(16)
    assert len(result.messages) == 100
    assert result.messages[-1].content == "m150"


@pytest.mark.asyncio
async def test_explicit_message_limit_overrides_default(gateway: FakeGateway) -> None:
    gateway.channels[17] = [make_message(i, f"m{i}") for i in range(10, 0, -1)]

    result = await TranscriptCapture(gateway).capture(17, message_limit=3)
    assert [m.content for m in result.messages] == ["m8", "m9", "m10"]


def test_normalize_message_maps_attachments_and_embeds() -> None:
    message = make_message(9, "see attached", bot=True)
    message.attachments = [
        SimpleNamespace(url="https://cdn.example/log.txt", filename="log.txt", content_type="text/plain")
    ]
    message.embeds = [
        SimpleNamespace(
            title="Status",
            description="All good",
            color=SimpleNamespace(value=0x00FF00),
            fields=[SimpleNamespace(name="a", value="b", inline=False)],
        )
    ]

    normalized = normalize_message(message)

    assert normalized.author.bot is True
    assert normalized.attachments[0].name == "log.txt"
    assert normalized.embeds[0].color == 0x00FF00
    assert normalized.embeds[0].fields == [{"name": "a", "value": "b", "inline": False}]
    assert normalized.to_dict()["attachments"][0]["contentType"] == "text/plain"
