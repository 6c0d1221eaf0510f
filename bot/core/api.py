from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from core.config import FastApiConfig
from core.errors import BotError
from database.models import TicketRecord
from services.ticket_service import TicketActor, TicketService
from utils.transcripts import render_html, render_text, transcript_filename

if TYPE_CHECKING:
    from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)


class ActionRequest(BaseModel):
    reason: str | None = None


class StoreTranscriptRequest(BaseModel):
    channel_id: int | None = None


class RegenerateRequest(BaseModel):
    batch_size: int | None = None


def _auth(x_api_key: str | None, expected: str) -> None:
    if not expected:
        return
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")


def _actor(x_user_id: str | None, x_username: str | None) -> TicketActor | None:
    if not x_user_id and not x_username:
        return None
    return TicketActor(id=x_user_id, username=x_username)


def _ticket_payload(ticket: TicketRecord) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "guild_id": str(ticket.guild_id),
        "channel_id": str(ticket.channel_id),
        "user_id": str(ticket.user_id),
        "ticket_number": ticket.ticket_number,
        "status": ticket.status,
        "subject": ticket.subject,
        "created_at": ticket.created_at,
        "closed_at": ticket.closed_at,
        "closed_by": ticket.closed_by,
        "notes": ticket.notes,
    }


def create_api_app(service: TicketService, config: FastApiConfig) -> FastAPI:
    """REST pass-through to ``TicketService``. Error kinds map to HTTP status codes."""
    app = FastAPI(title="Ticket Bot API", version="1.0.0")

    @app.exception_handler(BotError)
    async def bot_error_handler(request: Request, exc: BotError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.user_message, exc_info=exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.user_message, "kind": exc.kind.value},
        )

    async def authorized(x_api_key: str | None = Header(default=None)) -> None:
        _auth(x_api_key, config.api_key)

    async def actor(
        x_user_id: str | None = Header(default=None),
        x_username: str | None = Header(default=None),
    ) -> TicketActor | None:
        return _actor(x_user_id, x_username)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/tickets/{ticket_id}", dependencies=[Depends(authorized)])
    async def get_ticket(ticket_id: int) -> dict[str, Any]:
        ticket = await service.get_ticket(ticket_id)
        return _ticket_payload(ticket)

    @app.get("/tickets/{ticket_id}/transcript", dependencies=[Depends(authorized)])
    async def get_transcript(ticket_id: int, format: Literal["json", "txt", "html"] = "json") -> Response:
        ticket = await service.get_ticket(ticket_id)
        transcript = await service.get_transcript(ticket_id)
        if transcript is None:
            return JSONResponse(status_code=404, content={"error": "Transcript not found", "kind": "not_found"})
        if format == "txt":
            return PlainTextResponse(
                render_text(transcript),
                headers={"Content-Disposition": f'attachment; filename="{transcript_filename(ticket)}"'},
            )
        if format == "html":
            return HTMLResponse(render_html(ticket, transcript))
        return JSONResponse(
            content={
                "ticket_id": ticket_id,
                "captured_at": transcript.captured_at,
                "is_placeholder": transcript.is_placeholder,
                "messages": transcript.to_payload(),
            }
        )

    @app.put("/tickets/{ticket_id}/transcript", dependencies=[Depends(authorized)])
    async def store_transcript(ticket_id: int, body: StoreTranscriptRequest | None = None) -> dict[str, Any]:
        stored = await service.store_transcript(ticket_id, body.channel_id if body else None)
        return {"ticket_id": ticket_id, "stored": stored}

    @app.put("/tickets/{ticket_id}/close", dependencies=[Depends(authorized)])
    async def close_ticket(
        ticket_id: int,
        body: ActionRequest | None = None,
        requested_by: TicketActor | None = Depends(actor),
    ) -> dict[str, Any]:
        ticket = await service.close_ticket(ticket_id, body.reason if body else None, requested_by)
        return _ticket_payload(ticket)

    @app.put("/tickets/{ticket_id}/reopen", dependencies=[Depends(authorized)])
    async def reopen_ticket(
        ticket_id: int,
        body: ActionRequest | None = None,
        requested_by: TicketActor | None = Depends(actor),
    ) -> dict[str, Any]:
        ticket = await service.reopen_ticket(ticket_id, body.reason if body else None, requested_by)
        return _ticket_payload(ticket)

    @app.delete("/tickets/{ticket_id}", dependencies=[Depends(authorized)])
    async def delete_ticket(
        ticket_id: int,
        reason: str | None = None,
        requested_by: TicketActor | None = Depends(actor),
    ) -> dict[str, Any]:
        ticket = await service.delete_ticket(ticket_id, reason, requested_by)
        return _ticket_payload(ticket)

    @app.get("/transcripts/stats", dependencies=[Depends(authorized)])
    async def transcript_stats() -> dict[str, int]:
        stats = await service.get_transcript_stats()
        return {
            "total_tickets": stats.total_tickets,
            "tickets_with_transcripts": stats.tickets_with_transcripts,
            "tickets_without_transcripts": stats.tickets_without_transcripts,
            "transcript_coverage": stats.transcript_coverage,
        }

    @app.post("/transcripts/regenerate", dependencies=[Depends(authorized)])
    async def regenerate_transcripts(body: RegenerateRequest | None = None) -> dict[str, int]:
        result = await service.run_transcript_backfill(body.batch_size if body else None)
        return result.to_dict()

    return app


def create_bot_api_app(bot: TicketBot) -> FastAPI:
    return create_api_app(bot.ticket_service, bot.config.fastapi)
