from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

import discord
from discord import app_commands
from discord.ext import commands

LOGGER = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    EXTERNAL_UNAVAILABLE = "external_unavailable"
    PERSISTENCE_FAILURE = "persistence_failure"
    VALIDATION = "validation"
    PERMISSION = "permission"
    INTERNAL = "internal"


class BotError(RuntimeError):
    user_message: str = "An unexpected error occurred."
    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500

    def __str__(self) -> str:
        return self.user_message


@dataclass(slots=True, eq=False)
class PermissionDeniedError(BotError):
    user_message: str = "You do not have permission to run this action."
    kind: ErrorKind = ErrorKind.PERMISSION
    status_code: int = 403


@dataclass(slots=True, eq=False)
class TicketNotFoundError(BotError):
    user_message: str = "Ticket not found."
    kind: ErrorKind = ErrorKind.NOT_FOUND
    status_code: int = 404


@dataclass(slots=True, eq=False)
class TranscriptNotFoundError(BotError):
    user_message: str = "No transcript is stored for this ticket."
    kind: ErrorKind = ErrorKind.NOT_FOUND
    status_code: int = 404


@dataclass(slots=True, eq=False)
class InvalidTransitionError(BotError):
    user_message: str = "The ticket is not in a valid state for this action."
    kind: ErrorKind = ErrorKind.INVALID_TRANSITION
    status_code: int = 400


@dataclass(slots=True, eq=False)
class ExternalUnavailableError(BotError):
    """A chat-platform resource is missing, unreachable, rate limited or timed out.

    ``missing`` marks the expected "no longer exists" class (unknown channel,
    unknown user, DMs closed). Lifecycle code downgrades those to INFO logs.
    """

    user_message: str = "The chat platform resource is unavailable."
    kind: ErrorKind = ErrorKind.EXTERNAL_UNAVAILABLE
    status_code: int = 503
    missing: bool = False
    code: int | None = None


@dataclass(slots=True, eq=False)
class PersistenceFailureError(BotError):
    user_message: str = "The ticket store could not be updated."
    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE
    status_code: int = 500


@dataclass(slots=True, eq=False)
class ValidationError(BotError):
    user_message: str = "The provided input is not valid."
    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400


# Short aliases used by the cogs.
PermissionDenied = PermissionDeniedError
TicketNotFound = TicketNotFoundError


async def send_error_response(
    target: commands.Context[commands.Bot] | discord.Interaction[commands.Bot], message: str
) -> None:
    embed = discord.Embed(title="Error", description=message, color=discord.Color.red())
    if isinstance(target, commands.Context):
        await target.reply(embed=embed, mention_author=False)
        return
    if target.response.is_done():
        await target.followup.send(embed=embed, ephemeral=True)
    else:
        await target.response.send_message(embed=embed, ephemeral=True)


def _unwrap(error: Exception) -> Exception:
    original = getattr(error, "original", None)
    return original if isinstance(original, Exception) else error


def _humanize_command_error(error: Exception) -> str:
    error = _unwrap(error)
    if isinstance(error, BotError):
        return error.user_message
    if isinstance(error, commands.CommandOnCooldown):
        return f"Cooldown active. Retry in {error.retry_after:.1f} seconds."
    if isinstance(error, commands.MissingPermissions):
        return "You are missing required Discord permissions."
    if isinstance(error, commands.CheckFailure):
        return "You are not authorized for this command."
    if isinstance(error, commands.BadArgument):
        return "Command argument was invalid."
    return "An unexpected command error occurred."


async def handle_prefix_command_error(
    ctx: commands.Context[commands.Bot], error: commands.CommandError
) -> None:
    message = _humanize_command_error(error)
    if isinstance(_unwrap(error), BotError):
        LOGGER.info(
            "Prefix command rejected. command=%s guild=%s user=%s reason=%s",
            getattr(ctx.command, "qualified_name", None),
            getattr(ctx.guild, "id", None),
            ctx.author.id,
            message,
        )
    else:
        LOGGER.exception(
            "Prefix command failed. command=%s guild=%s user=%s",
            getattr(ctx.command, "qualified_name", None),
            getattr(ctx.guild, "id", None),
            ctx.author.id,
            exc_info=error,
        )
    await send_error_response(ctx, message)


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    message = "An unexpected slash-command error occurred."
    cause = _unwrap(error)
    if isinstance(cause, BotError):
        message = cause.user_message
    elif isinstance(error, app_commands.CheckFailure):
        message = "You are not authorized for this command."
    elif isinstance(error, app_commands.CommandOnCooldown):
        message = f"Cooldown active. Retry in {error.retry_after:.1f} seconds."

    if isinstance(cause, BotError) and cause.status_code < 500:
        LOGGER.info(
            "Slash command rejected. command=%s guild=%s user=%s reason=%s",
            getattr(interaction.command, "qualified_name", None),
            getattr(interaction.guild, "id", None),
            interaction.user.id if interaction.user else None,
            message,
        )
    else:
        LOGGER.exception(
            "Slash command failed. command=%s guild=%s user=%s",
            getattr(interaction.command, "qualified_name", None),
            getattr(interaction.guild, "id", None),
            interaction.user.id if interaction.user else None,
            exc_info=error,
        )
    await send_error_response(interaction, message)
