from __future__ import annotations

import html

from database.models import TicketRecord, Transcript
from utils.time import format_display


def transcript_filename(ticket: TicketRecord, extension: str = "txt") -> str:
    return f"ticket-{ticket.ticket_number}-transcript.{extension}"


def render_text(transcript: Transcript) -> str:
    lines: list[str] = []
    for msg in transcript.messages:
        author = f"{msg.author.username} (Bot)" if msg.author.bot else msg.author.username
        lines.append(f"[{format_display(msg.timestamp)}] {author}: {msg.content}")
        for attach in msg.attachments:
            lines.append(f"  attachment: {attach.name} <{attach.url}>")
        for embed in msg.embeds:
            if embed.title or embed.description:
                lines.append(f"  embed: {embed.title or ''} {embed.description or ''}".rstrip())
    return "\n".join(lines)


def render_html(ticket: TicketRecord, transcript: Transcript) -> str:
    rows: list[str] = []
    for msg in transcript.messages:
        escaped_content = html.escape(msg.content)
        attachment_html = ""
        if msg.attachments:
            links = "".join(
                f'<li><a href="{html.escape(a.url)}">{html.escape(a.name)}</a></li>'
                for a in msg.attachments
            )
            attachment_html = f"<ul>{links}</ul>"
        embed_html = "".join(
            "<div class='embed'>"
            f"<strong>{html.escape(e.title or '')}</strong>"
            f"<div>{html.escape(e.description or '')}</div>"
            "</div>"
            for e in msg.embeds
        )
        author = html.escape(msg.author.username) + (" <span class='bot'>BOT</span>" if msg.author.bot else "")
        rows.append(
            "<div class='msg'>"
            f"<div class='meta'>{author} | {html.escape(format_display(msg.timestamp))}</div>"
            f"<div class='content'>{escaped_content}</div>"
            f"{attachment_html}{embed_html}"
            "</div>"
        )

    return (
        "<!doctype html><html><head><meta charset='utf-8'>"
        f"<title>Ticket #{ticket.ticket_number} Transcript</title>"
        "<style>"
        "body{font-family:Arial,sans-serif;background:#f5f7fb;color:#1f2937;padding:16px;}"
        ".msg{background:white;border:1px solid #e5e7eb;border-radius:8px;padding:10px;margin-bottom:8px;}"
        ".meta{font-size:12px;color:#6b7280;margin-bottom:6px;}"
        ".content{white-space:pre-wrap;}"
        ".embed{border-left:4px solid #5865f2;padding-left:8px;margin-top:6px;}"
        ".bot{background:#5865f2;color:white;font-size:10px;padding:1px 4px;border-radius:3px;}"
        "ul{margin-top:8px;}"
        "</style></head><body>"
        f"<h1>Ticket #{ticket.ticket_number} Transcript</h1>"
        + "".join(rows)
        + "</body></html>"
    )
