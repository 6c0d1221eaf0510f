from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class TicketRecord:
    id: int | None
    guild_id: int
    channel_id: int
    user_id: int
    ticket_number: int
    status: str = "open"
    subject: str | None = None
    created_at: str | None = None
    closed_at: str | None = None
    closed_by: str | None = None
    notes: str | None = None


@dataclass(slots=True)
class MessageAuthor:
    id: str
    username: str
    bot: bool = False


@dataclass(slots=True)
class TranscriptAttachment:
    url: str
    name: str
    content_type: str | None = None


@dataclass(slots=True)
class TranscriptEmbed:
    title: str | None = None
    description: str | None = None
    color: int | None = None
    fields: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class TranscriptMessage:
    id: str
    author: MessageAuthor
    content: str
    timestamp: str
    attachments: list[TranscriptAttachment] = field(default_factory=list)
    embeds: list[TranscriptEmbed] = field(default_factory=list)

    @property
    def is_placeholder(self) -> bool:
        return self.author.id == "system"

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for attachment in payload["attachments"]:
            attachment["contentType"] = attachment.pop("content_type")
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptMessage:
        author = dict(data.get("author") or {})
        return cls(
            id=str(data.get("id", "")),
            author=MessageAuthor(
                id=str(author.get("id", "")),
                username=str(author.get("username", "Unknown")),
                bot=bool(author.get("bot", False)),
            ),
            content=str(data.get("content") or ""),
            timestamp=str(data.get("timestamp") or ""),
            attachments=[
                TranscriptAttachment(
                    url=str(att.get("url", "")),
                    name=str(att.get("name", "")),
                    content_type=att.get("contentType", att.get("content_type")),
                )
                for att in list(data.get("attachments") or [])
            ],
            embeds=[
                TranscriptEmbed(
                    title=emb.get("title"),
                    description=emb.get("description"),
                    color=emb.get("color"),
                    fields=list(emb.get("fields") or []),
                )
                for emb in list(data.get("embeds") or [])
            ],
        )


@dataclass(slots=True)
class Transcript:
    ticket_id: int
    messages: list[TranscriptMessage]
    captured_at: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return len(self.messages) == 1 and self.messages[0].is_placeholder

    def to_payload(self) -> list[dict[str, Any]]:
        return [message.to_dict() for message in self.messages]


@dataclass(slots=True)
class TranscriptStats:
    total_tickets: int
    tickets_with_transcripts: int
    tickets_without_transcripts: int
    transcript_coverage: int
