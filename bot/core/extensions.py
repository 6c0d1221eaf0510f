from __future__ import annotations

import logging

from discord.ext import commands

LOGGER = logging.getLogger(__name__)


async def load_extensions(bot: commands.Bot, extension_names: list[str]) -> list[str]:
    """Load each cog; returns the names that failed so callers can report them."""
    failed: list[str] = []
    for name in extension_names:
        if name in bot.extensions:
            LOGGER.debug("Extension %s already loaded", name)
            continue
        try:
            await bot.load_extension(name)
        except commands.ExtensionError:
            LOGGER.exception("Could not load ticket extension %s", name)
            failed.append(name)
        else:
            LOGGER.info("Loaded ticket extension %s", name)
    return failed


async def reload_extensions(bot: commands.Bot, extension_names: list[str]) -> list[str]:
    # Extensions missing from the bot (removed or failed at start) are loaded fresh.
    failed: list[str] = []
    for name in extension_names:
        try:
            if name in bot.extensions:
                await bot.reload_extension(name)
            else:
                await bot.load_extension(name)
        except commands.ExtensionError:
            LOGGER.exception("Could not reload ticket extension %s", name)
            failed.append(name)
        else:
            LOGGER.info("Reloaded ticket extension %s", name)
    return failed
