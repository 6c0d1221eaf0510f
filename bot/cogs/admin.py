from __future__ import annotations

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.extensions import reload_extensions
from utils.embeds import error_embed, make_embed, success_embed


def _is_admin(member: discord.Member) -> bool:
    return member.guild_permissions.administrator


class AdminCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def _assert_admin(self, ctx: commands.Context[TicketBot]) -> None:
        if not ctx.guild or not isinstance(ctx.author, discord.Member) or not _is_admin(ctx.author):
            raise commands.CheckFailure("Administrator permission required.")

    @commands.hybrid_group(name="ticketlogs", with_app_command=True, description="Ticket log and transcript administration.")
    async def ticketlogs(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Log Commands",
                    "`/ticketlogs set <channel>`\n"
                    "`/ticketlogs backfill [batch_size]`\n"
                    "`/ticketlogs stats`\n"
                    "`/ticketlogs reload`",
                ),
                mention_author=False,
            )

    @ticketlogs.command(name="set", description="Set the channel that receives ticket status updates.")
    async def ticketlogs_set(self, ctx: commands.Context[TicketBot], channel: discord.TextChannel) -> None:
        await self._assert_admin(ctx)
        await self.bot.ticket_service.set_log_channel(ctx.guild.id, channel.id)  # type: ignore[union-attr]
        await ctx.reply(embed=success_embed(f"Ticket logs will be posted in {channel.mention}."), mention_author=False)

    @ticketlogs.command(name="backfill", description="Generate transcripts for closed tickets that have none.")
    async def ticketlogs_backfill(self, ctx: commands.Context[TicketBot], batch_size: int | None = None) -> None:
        await self._assert_admin(ctx)
        await ctx.defer(ephemeral=True)
        result = await self.bot.ticket_service.run_transcript_backfill(batch_size)
        await ctx.reply(
            embed=make_embed(
                "Transcript Backfill",
                f"Processed: `{result.processed}`\nGenerated: `{result.generated}`\nErrors: `{result.errors}`",
                color=discord.Color.green() if not result.errors else discord.Color.orange(),
            ),
            mention_author=False,
        )

    @ticketlogs.command(name="stats", description="Show transcript coverage for closed tickets.")
    async def ticketlogs_stats(self, ctx: commands.Context[TicketBot]) -> None:
        await self._assert_admin(ctx)
        stats = await self.bot.ticket_service.get_transcript_stats()
        await ctx.reply(
            embed=make_embed(
                "Transcript Coverage",
                f"Closed or deleted tickets: `{stats.total_tickets}`\n"
                f"With transcript: `{stats.tickets_with_transcripts}`\n"
                f"Without transcript: `{stats.tickets_without_transcripts}`\n"
                f"Coverage: `{stats.transcript_coverage}%`",
            ),
            mention_author=False,
        )

    @ticketlogs.command(name="reload", description="Reload bot extensions.")
    async def ticketlogs_reload(self, ctx: commands.Context[TicketBot]) -> None:
        await self._assert_admin(ctx)
        failed = await reload_extensions(self.bot, self.bot.config.enabled_extensions)
        if failed:
            await ctx.reply(embed=error_embed(f"Failed to reload: {', '.join(failed)}"), mention_author=False)
            return
        await ctx.reply(embed=success_embed("Extensions reloaded."), mention_author=False)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(AdminCog(bot))
