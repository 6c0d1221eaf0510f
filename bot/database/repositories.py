from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from core.errors import PersistenceFailureError
from database.base import DATABASE_ERRORS, Database
from database.models import TicketRecord, Transcript, TranscriptMessage, TranscriptStats
from utils.constants import TICKET_STATUS_CLOSED, TICKET_STATUS_DELETED
from utils.time import to_iso

LOGGER = logging.getLogger(__name__)


def _json_load(value: str | None, default: Any) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=True, separators=(",", ":"))


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_iso(value)
    return str(value)


class GuildSettingsRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def ensure_guild(self, guild_id: int) -> None:
        await self.db.execute(
            """
            INSERT INTO guild_settings(guild_id)
            VALUES (?)
            ON CONFLICT(guild_id) DO NOTHING;
            """,
            [guild_id],
        )

    async def next_ticket_number(self, guild_id: int) -> int:
        await self.ensure_guild(guild_id)
        row = await self.db.execute_returning(
            """
            UPDATE guild_settings
            SET ticket_counter = ticket_counter + 1, updated_at = CURRENT_TIMESTAMP
            WHERE guild_id = ?
            RETURNING ticket_counter;
            """,
            [guild_id],
        )
        return int(row["ticket_counter"]) if row else 1

    async def set_log_channels(
        self,
        guild_id: int,
        ticket_logs_channel_id: int | None,
        log_channel_id: int | None = None,
    ) -> None:
        await self.ensure_guild(guild_id)
        await self.db.execute(
            """
            UPDATE guild_settings
            SET ticket_logs_channel_id = ?,
                log_channel_id = COALESCE(?, log_channel_id),
                updated_at = CURRENT_TIMESTAMP
            WHERE guild_id = ?;
            """,
            [ticket_logs_channel_id, log_channel_id, guild_id],
        )

    async def get_log_channel_id(self, guild_id: int) -> int | None:
        row = await self.db.fetchone(
            "SELECT ticket_logs_channel_id, log_channel_id FROM guild_settings WHERE guild_id = ?;",
            [guild_id],
        )
        if not row:
            return None
        channel_id = row["ticket_logs_channel_id"] or row["log_channel_id"]
        return int(channel_id) if channel_id else None


class TicketRepository:
    """Owner of ticket rows. Callers get fresh ``TicketRecord`` values per read."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, ticket: TicketRecord) -> TicketRecord:
        try:
            if ticket.id is None:
                row = await self.db.execute_returning(
                    """
                    INSERT INTO tickets(guild_id, channel_id, user_id, ticket_number, subject, status)
                    VALUES (?, ?, ?, ?, ?, ?)
                    RETURNING id;
                    """,
                    [
                        ticket.guild_id,
                        ticket.channel_id,
                        ticket.user_id,
                        ticket.ticket_number,
                        ticket.subject,
                        ticket.status,
                    ],
                )
            else:
                row = await self.db.execute_returning(
                    """
                    INSERT INTO tickets(id, guild_id, channel_id, user_id, ticket_number, subject, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    RETURNING id;
                    """,
                    [
                        ticket.id,
                        ticket.guild_id,
                        ticket.channel_id,
                        ticket.user_id,
                        ticket.ticket_number,
                        ticket.subject,
                        ticket.status,
                    ],
                )
        except DATABASE_ERRORS as exc:
            raise PersistenceFailureError(f"Could not create ticket: {exc}") from exc
        assert row is not None
        created = await self.get_by_id(int(row["id"]))
        assert created is not None
        return created

    async def get_by_id(self, ticket_id: int) -> TicketRecord | None:
        row = await self.db.fetchone("SELECT * FROM tickets WHERE id = ?;", [ticket_id])
        if not row:
            return None
        return self._row_to_ticket(row)

    async def get_by_channel(self, guild_id: int, channel_id: int) -> TicketRecord | None:
        row = await self.db.fetchone(
            """
            SELECT * FROM tickets
            WHERE guild_id = ? AND channel_id = ?
            ORDER BY id DESC
            LIMIT 1;
            """,
            [guild_id, channel_id],
        )
        if not row:
            return None
        return self._row_to_ticket(row)

    async def transition(
        self,
        ticket_id: int,
        expected_status: str,
        new_status: str,
        actor: str | None = None,
    ) -> bool:
        """Move ``expected_status`` to ``new_status`` in one conditional statement.

        Returns False when the row no longer has ``expected_status`` (a concurrent
        request got there first).
        """
        if new_status in {TICKET_STATUS_CLOSED, TICKET_STATUS_DELETED}:
            query = """
                UPDATE tickets
                SET status = ?, closed_at = CURRENT_TIMESTAMP, closed_by = ?
                WHERE id = ? AND status = ?
                RETURNING id;
            """
            params: list[Any] = [new_status, actor, ticket_id, expected_status]
        else:
            query = """
                UPDATE tickets
                SET status = ?
                WHERE id = ? AND status = ?
                RETURNING id;
            """
            params = [new_status, ticket_id, expected_status]
        try:
            row = await self.db.execute_returning(query, params)
        except DATABASE_ERRORS as exc:
            raise PersistenceFailureError(
                f"Could not move ticket {ticket_id} to {new_status}: {exc}"
            ) from exc
        return row is not None

    async def append_note(self, ticket_id: int, note: str) -> None:
        newline = "char(10)" if self.db.driver == "sqlite" else "chr(10)"
        await self.db.execute(
            f"""
            UPDATE tickets
            SET notes = CASE
                WHEN notes IS NULL OR notes = '' THEN ?
                ELSE notes || {newline} || ?
            END
            WHERE id = ?;
            """,
            [note, note, ticket_id],
        )

    async def list_missing_transcripts(self, limit: int) -> list[TicketRecord]:
        rows = await self.db.fetchall(
            """
            SELECT t.* FROM tickets t
            LEFT JOIN ticket_transcripts tt ON t.id = tt.ticket_id
            WHERE t.status IN ('closed', 'deleted')
              AND tt.id IS NULL
            ORDER BY t.id DESC
            LIMIT ?;
            """,
            [limit],
        )
        return [self._row_to_ticket(row) for row in rows]

    @staticmethod
    def _row_to_ticket(row: dict[str, Any]) -> TicketRecord:
        return TicketRecord(
            id=int(row["id"]),
            guild_id=int(row["guild_id"]),
            channel_id=int(row["channel_id"]),
            user_id=int(row["user_id"]),
            ticket_number=int(row["ticket_number"]),
            status=row["status"],
            subject=row["subject"],
            created_at=_as_text(row["created_at"]),
            closed_at=_as_text(row["closed_at"]),
            closed_by=row["closed_by"],
            notes=row["notes"],
        )


class TranscriptRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, ticket_id: int) -> Transcript | None:
        row = await self.db.fetchone(
            "SELECT ticket_id, transcript, created_at FROM ticket_transcripts WHERE ticket_id = ?;",
            [ticket_id],
        )
        if not row:
            return None
        payload = _json_load(row["transcript"], [])
        if not isinstance(payload, list):
            LOGGER.warning("Transcript for ticket %s is not a message list", ticket_id)
            payload = []
        return Transcript(
            ticket_id=int(row["ticket_id"]),
            messages=[TranscriptMessage.from_dict(item) for item in payload if isinstance(item, dict)],
            captured_at=_as_text(row["created_at"]),
        )

    async def exists(self, ticket_id: int) -> bool:
        row = await self.db.fetchone(
            "SELECT id FROM ticket_transcripts WHERE ticket_id = ?;",
            [ticket_id],
        )
        return row is not None

    async def insert_if_absent(self, ticket_id: int, messages: list[TranscriptMessage]) -> bool:
        """Create-only write. Returns False when a transcript was already stored."""
        try:
            row = await self.db.execute_returning(
                """
                INSERT INTO ticket_transcripts(ticket_id, transcript)
                VALUES (?, ?)
                ON CONFLICT(ticket_id) DO NOTHING
                RETURNING id;
                """,
                [ticket_id, _json_dump([message.to_dict() for message in messages])],
            )
        except DATABASE_ERRORS as exc:
            raise PersistenceFailureError(
                f"Could not store transcript for ticket {ticket_id}: {exc}"
            ) from exc
        return row is not None

    async def stats(self) -> TranscriptStats:
        total = await self.db.fetchone(
            "SELECT COUNT(*) AS count FROM tickets WHERE status IN ('closed', 'deleted');"
        )
        covered = await self.db.fetchone(
            """
            SELECT COUNT(*) AS count
            FROM tickets t
            INNER JOIN ticket_transcripts tt ON t.id = tt.ticket_id
            WHERE t.status IN ('closed', 'deleted');
            """
        )
        total_count = int(total["count"]) if total else 0
        covered_count = int(covered["count"]) if covered else 0
        coverage = round(covered_count / total_count * 100) if total_count else 0
        return TranscriptStats(
            total_tickets=total_count,
            tickets_with_transcripts=covered_count,
            tickets_without_transcripts=total_count - covered_count,
            transcript_coverage=coverage,
        )
