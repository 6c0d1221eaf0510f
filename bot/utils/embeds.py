from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import discord

from utils.constants import ACTION_CLOSED, ACTION_DELETED, ACTION_REOPENED

if TYPE_CHECKING:
    from services.chat_gateway import NoticeEmbed

SUCCESS_COLOR = discord.Color.green().value
WARNING_COLOR = discord.Color.orange().value
INFO_COLOR = discord.Color.blurple().value

ACTION_COLORS: dict[str, int] = {
    ACTION_REOPENED: SUCCESS_COLOR,
    ACTION_CLOSED: WARNING_COLOR,
    ACTION_DELETED: INFO_COLOR,
}

ACTION_TITLES: dict[str, str] = {
    ACTION_REOPENED: "🔓 Ticket Reopened",
    ACTION_CLOSED: "🔒 Ticket Closed",
    ACTION_DELETED: "🗑️ Ticket Deleted",
}


def action_color(action: str) -> int:
    return ACTION_COLORS.get(action, INFO_COLOR)


def make_embed(
    title: str,
    description: str,
    color: discord.Color | None = None,
    footer: str | None = None,
) -> discord.Embed:
    resolved_color = color if color is not None else discord.Color.blurple()
    embed = discord.Embed(
        title=title,
        description=description,
        color=resolved_color,
        timestamp=datetime.now(UTC),
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def success_embed(message: str) -> discord.Embed:
    return make_embed(title="Success", description=message, color=discord.Color.green())


def error_embed(message: str) -> discord.Embed:
    return make_embed(title="Error", description=message, color=discord.Color.red())


def to_discord_embed(notice: NoticeEmbed) -> discord.Embed:
    embed = discord.Embed(
        title=notice.title,
        description=notice.description,
        color=discord.Color(notice.color),
        timestamp=notice.timestamp,
    )
    for item in notice.fields:
        embed.add_field(name=item.name, value=item.value, inline=item.inline)
    if notice.footer:
        embed.set_footer(text=notice.footer)
    return embed
