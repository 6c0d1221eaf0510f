from __future__ import annotations

import io
import logging

import discord
from discord.ext import commands, tasks

from core.bot import TicketBot
from core.errors import PermissionDenied, TicketNotFound, TranscriptNotFoundError, ValidationError
from database.models import TicketRecord
from utils.embeds import make_embed, success_embed
from utils.transcripts import render_html, render_text, transcript_filename
from views.ticket_controls import actor_from_user, is_staff

LOGGER = logging.getLogger(__name__)


class TicketsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        config = self.bot.config.transcripts
        if config.backfill_enabled:
            self.transcript_backfill.change_interval(minutes=config.backfill_interval_minutes)
            self.transcript_backfill.start()

    async def cog_unload(self) -> None:
        self.transcript_backfill.cancel()

    async def _current_ticket(self, ctx: commands.Context[TicketBot]) -> tuple[TicketRecord, discord.Member]:
        if not ctx.guild or not isinstance(ctx.author, discord.Member):
            raise ValidationError("Guild context is required.")
        ticket = await self.bot.ticket_service.get_ticket_by_channel(ctx.guild.id, ctx.channel.id)
        if not ticket or ticket.id is None:
            raise TicketNotFound("This channel is not a ticket channel.")
        return ticket, ctx.author

    async def _current_ticket_for_staff(self, ctx: commands.Context[TicketBot]) -> TicketRecord:
        ticket, member = await self._current_ticket(ctx)
        if not is_staff(member):
            raise PermissionDenied("Staff permission required.")
        return ticket

    @commands.hybrid_group(name="ticket", with_app_command=True, description="Ticket command group.")
    async def ticket(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Commands",
                    "`/ticket close <reason>` to close\n"
                    "`/ticket reopen` to reopen\n"
                    "`/ticket delete` to delete the ticket and its channel\n"
                    "`/ticket transcript` to download the stored transcript",
                ),
                mention_author=False,
            )

    @ticket.command(name="close", description="Close the current ticket.")
    async def ticket_close(self, ctx: commands.Context[TicketBot], *, reason: str | None = None) -> None:
        ticket = await self._current_ticket_for_staff(ctx)
        await ctx.defer()
        await self.bot.ticket_service.close_ticket(ticket.id, reason=reason, actor=actor_from_user(ctx.author))
        await ctx.reply(embed=success_embed(f"Ticket #{ticket.ticket_number} closed."), mention_author=False)

    @ticket.command(name="reopen", description="Reopen the current ticket.")
    async def ticket_reopen(self, ctx: commands.Context[TicketBot], *, reason: str | None = None) -> None:
        ticket = await self._current_ticket_for_staff(ctx)
        await ctx.defer()
        await self.bot.ticket_service.reopen_ticket(ticket.id, reason=reason, actor=actor_from_user(ctx.author))
        await ctx.reply(embed=success_embed(f"Ticket #{ticket.ticket_number} reopened."), mention_author=False)

    @ticket.command(name="delete", description="Delete the current ticket and its channel.")
    async def ticket_delete(self, ctx: commands.Context[TicketBot], *, reason: str | None = None) -> None:
        ticket = await self._current_ticket_for_staff(ctx)
        await ctx.reply(
            embed=success_embed(f"Deleting ticket #{ticket.ticket_number}..."), mention_author=False
        )
        await self.bot.ticket_service.delete_ticket(ticket.id, reason=reason, actor=actor_from_user(ctx.author))

    @ticket.command(name="transcript", description="Download the stored transcript of the current ticket.")
    async def ticket_transcript(self, ctx: commands.Context[TicketBot]) -> None:
        ticket = await self._current_ticket_for_staff(ctx)
        transcript = await self.bot.ticket_service.get_transcript(ticket.id)
        if transcript is None:
            raise TranscriptNotFoundError()
        files = [
            discord.File(io.BytesIO(render_text(transcript).encode("utf-8")), filename=transcript_filename(ticket)),
            discord.File(
                io.BytesIO(render_html(ticket, transcript).encode("utf-8")),
                filename=transcript_filename(ticket, "html"),
            ),
        ]
        await ctx.reply(
            content=f"Transcript for ticket #{ticket.ticket_number} ({len(transcript.messages)} messages)",
            files=files,
            ephemeral=True,
            mention_author=False,
        )

    @tasks.loop(minutes=60)
    async def transcript_backfill(self) -> None:
        try:
            await self.bot.ticket_service.run_transcript_backfill()
        except Exception:
            LOGGER.exception("Scheduled transcript backfill failed")

    @transcript_backfill.before_loop
    async def before_transcript_backfill(self) -> None:
        await self.bot.wait_until_ready()


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
