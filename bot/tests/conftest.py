from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio

from core.config import TranscriptConfig
from core.errors import ExternalUnavailableError
from database.base import Database
from database.migrations.runner import run_migrations
from database.models import TicketRecord
from services.chat_gateway import ChannelKind, ChatUser, OutgoingMessage, ResolvedChannel
from services.ticket_service import TicketService, build_ticket_deps
from utils.constants import UNKNOWN_CHANNEL_CODE

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "database" / "migrations"


def make_message(
    message_id: int,
    content: str,
    minutes: int = 0,
    author_name: str = "alice",
    author_id: int = 321,
    bot: bool = False,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=message_id,
        author=SimpleNamespace(id=author_id, name=author_name, display_name=author_name, bot=bot),
        content=content,
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC) + timedelta(minutes=minutes),
        attachments=[],
        embeds=[],
    )


class FakeGateway:
    """In-memory chat platform. ``channels`` maps channel id to its history, newest first."""

    def __init__(self) -> None:
        self.channels: dict[int, list[Any]] = {}
        self.non_text: set[int] = set()
        self.failures: dict[str, Exception] = {}
        self.channel_messages: list[tuple[int, OutgoingMessage]] = []
        self.direct_messages: list[tuple[int, OutgoingMessage]] = []
        self.deleted_channels: list[int] = []
        self.permission_edits: list[tuple[int, int, bool, bool]] = []
        self.fetch_messages_calls = 0

    def _raise_if_failing(self, operation: str) -> None:
        exc = self.failures.get(operation)
        if exc is not None:
            raise exc

    def _require(self, channel_id: int) -> None:
        if channel_id not in self.channels:
            raise ExternalUnavailableError(
                f"Unknown channel {channel_id}", missing=True, code=UNKNOWN_CHANNEL_CODE
            )

    async def fetch_channel(self, channel_id: int) -> ResolvedChannel:
        self._raise_if_failing("fetch_channel")
        if channel_id in self.non_text:
            return ResolvedChannel(channel_id=channel_id, kind=ChannelKind.OTHER)
        if channel_id not in self.channels:
            return ResolvedChannel(channel_id=channel_id, kind=ChannelKind.MISSING)
        return ResolvedChannel(channel_id=channel_id, kind=ChannelKind.TEXT)

    async def fetch_messages(self, channel_id: int, limit: int) -> list[Any]:
        self._raise_if_failing("fetch_messages")
        self.fetch_messages_calls += 1
        self._require(channel_id)
        return self.channels[channel_id][:limit]

    async def send_channel_message(self, channel_id: int, message: OutgoingMessage) -> None:
        self._raise_if_failing("send_channel_message")
        self._require(channel_id)
        self.channel_messages.append((channel_id, message))

    async def send_direct_message(self, user_id: int, message: OutgoingMessage) -> None:
        self._raise_if_failing("send_direct_message")
        self.direct_messages.append((user_id, message))

    async def delete_channel(self, channel_id: int, reason: str) -> None:
        self._raise_if_failing("delete_channel")
        self._require(channel_id)
        del self.channels[channel_id]
        self.deleted_channels.append(channel_id)

    async def edit_permission_overwrite(
        self, channel_id: int, user_id: int, *, send_messages: bool, view_channel: bool
    ) -> None:
        self._raise_if_failing("edit_permission_overwrite")
        self._require(channel_id)
        self.permission_edits.append((channel_id, user_id, send_messages, view_channel))

    async def fetch_user(self, user_id: int) -> ChatUser:
        self._raise_if_failing("fetch_user")
        return ChatUser(id=user_id, username=f"user-{user_id}")

    def messages_to(self, channel_id: int) -> list[OutgoingMessage]:
        return [message for target, message in self.channel_messages if target == channel_id]


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    db = Database(url=f"sqlite:///{tmp_path / 'tickets.db'}")
    await db.connect()
    await run_migrations(db, MIGRATIONS_DIR)
    yield db
    await db.close()


@pytest.fixture
def service(database: Database, gateway: FakeGateway) -> TicketService:
    config = TranscriptConfig(backfill_delay_seconds=0)
    return TicketService(config, build_ticket_deps(config, database, gateway))


async def seed_ticket(
    service: TicketService,
    ticket_id: int,
    channel_id: int,
    status: str = "open",
    guild_id: int = 1,
    user_id: int = 321,
) -> TicketRecord:
    return await service.deps.ticket_repo.create(
        TicketRecord(
            id=ticket_id,
            guild_id=guild_id,
            channel_id=channel_id,
            user_id=user_id,
            ticket_number=ticket_id,
            status=status,
        )
    )
