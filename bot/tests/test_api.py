from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from core.api import create_api_app
from core.config import FastApiConfig
from core.errors import InvalidTransitionError, PersistenceFailureError, TicketNotFoundError
from database.models import MessageAuthor, TicketRecord, Transcript, TranscriptMessage, TranscriptStats
from services.ticket_service import TicketActor
from services.transcript_backfill import BackfillResult

API_KEY = "secret"


def _ticket(status: str = "closed") -> TicketRecord:
    return TicketRecord(
        id=42, guild_id=1, channel_id=555, user_id=321, ticket_number=42, status=status, closed_by="900"
    )


def _client(service: MagicMock, api_key: str = API_KEY) -> TestClient:
    app = create_api_app(service, FastApiConfig(enabled=True, api_key=api_key))
    return TestClient(app)


def _headers() -> dict[str, str]:
    return {"X-API-Key": API_KEY}


def test_health_needs_no_key() -> None:
    response = _client(MagicMock()).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_rejects_missing_api_key() -> None:
    service = MagicMock()
    service.get_ticket = AsyncMock(return_value=_ticket())
    response = _client(service).get("/tickets/42")
    assert response.status_code == 401


def test_close_passes_reason_and_actor() -> None:
    service = MagicMock()
    service.close_ticket = AsyncMock(return_value=_ticket())

    response = _client(service).put(
        "/tickets/42/close",
        json={"reason": "resolved"},
        headers={**_headers(), "X-User-Id": "900", "X-Username": "mod"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "closed"
    service.close_ticket.assert_awaited_once_with(42, "resolved", TicketActor(id="900", username="mod"))


def test_error_kinds_map_to_status_codes() -> None:
    service = MagicMock()
    client = _client(service)

    service.reopen_ticket = AsyncMock(side_effect=TicketNotFoundError())
    not_found = client.put("/tickets/1/reopen", headers=_headers())
    assert not_found.status_code == 404
    assert not_found.json() == {"error": "Ticket not found.", "kind": "not_found"}

    service.reopen_ticket = AsyncMock(side_effect=InvalidTransitionError("Cannot modify a deleted ticket."))
    invalid = client.put("/tickets/1/reopen", headers=_headers())
    assert invalid.status_code == 400

    service.delete_ticket = AsyncMock(side_effect=PersistenceFailureError())
    failed = client.delete("/tickets/1", headers=_headers())
    assert failed.status_code == 500
    assert failed.json()["kind"] == "persistence_failure"


def test_transcript_formats() -> None:
    service = MagicMock()
    service.get_ticket = AsyncMock(return_value=_ticket())
    service.get_transcript = AsyncMock(
        return_value=Transcript(
            ticket_id=42,
            messages=[
                TranscriptMessage(
                    id="1",
                    author=MessageAuthor(id="321", username="alice"),
                    content="<b>hi</b>",
                    timestamp="2024-05-01T12:00:00+00:00",
                )
            ],
        )
    )
    client = _client(service)

    payload = client.get("/tickets/42/transcript", headers=_headers()).json()
    assert payload["messages"][0]["content"] == "<b>hi</b>"
    assert payload["is_placeholder"] is False

    text = client.get("/tickets/42/transcript?format=txt", headers=_headers())
    assert "alice: <b>hi</b>" in text.text
    assert "ticket-42-transcript.txt" in text.headers["content-disposition"]

    html_page = client.get("/tickets/42/transcript?format=html", headers=_headers())
    assert "&lt;b&gt;hi&lt;/b&gt;" in html_page.text

    service.get_transcript = AsyncMock(return_value=None)
    assert client.get("/tickets/42/transcript", headers=_headers()).status_code == 404


def test_stats_store_and_regenerate() -> None:
    service = MagicMock()
    service.get_transcript_stats = AsyncMock(return_value=TranscriptStats(4, 3, 1, 75))
    service.store_transcript = AsyncMock(return_value=False)
    service.run_transcript_backfill = AsyncMock(return_value=BackfillResult(processed=2, generated=1, errors=1))
    client = _client(service)

    assert client.get("/transcripts/stats", headers=_headers()).json()["transcript_coverage"] == 75
    assert client.put("/tickets/7/transcript", headers=_headers()).json() == {"ticket_id": 7, "stored": False}
    service.store_transcript.assert_awaited_once_with(7, None)

    result = client.post("/transcripts/regenerate", json={"batch_size": 2}, headers=_headers())
    assert result.json() == {"processed": 2, "generated": 1, "errors": 1}
    service.run_transcript_backfill.assert_awaited_once_with(2)
