from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, cast

import discord

from core.errors import BotError
from services.ticket_service import TicketActor
from utils.constants import DELETE_BUTTON_PREFIX
from utils.embeds import error_embed

if TYPE_CHECKING:
    from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)

STAFF_ROLE_NAMES = {"support", "staff", "moderator", "admin"}


def is_staff(member: discord.Member) -> bool:
    if member.guild_permissions.administrator or member.guild_permissions.manage_channels:
        return True
    return any(role.name.lower() in STAFF_ROLE_NAMES for role in member.roles)


def actor_from_user(user: discord.abc.User) -> TicketActor:
    return TicketActor(id=str(user.id), username=str(user))


class DeleteTicketButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=DELETE_BUTTON_PREFIX + r"(?P<ticket_id>\d+)",
):
    """Persistent delete button posted in a ticket channel when the ticket is closed."""

    def __init__(self, ticket_id: int) -> None:
        super().__init__(
            discord.ui.Button(
                label="Delete Ticket",
                style=discord.ButtonStyle.danger,
                custom_id=f"{DELETE_BUTTON_PREFIX}{ticket_id}",
            )
        )
        self.ticket_id = ticket_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> DeleteTicketButton:
        return cls(int(match.group("ticket_id")))

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if isinstance(interaction.user, discord.Member) and is_staff(interaction.user):
            return True
        await interaction.response.send_message(
            embed=error_embed("Only staff can delete tickets."), ephemeral=True
        )
        return False

    async def callback(self, interaction: discord.Interaction) -> None:
        bot = cast("TicketBot", interaction.client)
        await interaction.response.send_message(
            f"Deleting ticket `{self.ticket_id}`...", ephemeral=True
        )
        try:
            await bot.ticket_service.delete_ticket(
                self.ticket_id,
                reason=f"Deleted by {interaction.user}",
                actor=actor_from_user(interaction.user),
            )
        except BotError as exc:
            LOGGER.info(
                "Delete button rejected for ticket %s: %s",
                self.ticket_id,
                exc.user_message,
                extra={"ticket_id": self.ticket_id, "user_id": interaction.user.id},
            )
            await interaction.followup.send(embed=error_embed(exc.user_message), ephemeral=True)
