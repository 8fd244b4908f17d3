"""Helper utilities for Discord bot operations.

Includes template rendering for member mentions and channel / direct-message
delivery used by the room plugins.
"""

from typing import Any, Optional, Protocol, Union
import discord
import structlog

logger = structlog.get_logger()

MENTION_PLACEHOLDER = "(@)"


class Messenger(Protocol):
    """Delivery interface the plugins depend on."""

    async def send_channel(self, channel_id: Optional[int], content: str) -> bool:
        ...

    async def send_private(self, user_id: Union[int, str], content: str) -> bool:
        ...


def mention(user_id: Union[int, str]) -> str:
    return f"<@{user_id}>"


def render_message(template: str, user_id: Union[int, str]) -> str:
    """
    Replace every (@) in template with a mention of the user.

    Args:
        template: Message template, e.g. "Welcome (@)!"
        user_id: Discord user ID to mention

    Returns:
        Rendered text; templates without (@) are returned unchanged
    """
    if MENTION_PLACEHOLDER not in template:
        return template
    return template.replace(MENTION_PLACEHOLDER, mention(user_id))


async def send_to_channel(bot: Any, channel_id: Optional[int], content: str) -> bool:
    """
    Helper to send text to a specific channel.

    Args:
        bot: DiscordBot instance
        channel_id: Discord channel ID
        content: Text to send

    Returns:
        True if the message was sent
    """
    if not channel_id:
        logger.warning("send_to_channel_no_channel")
        return False

    try:
        channel = bot.get_channel(channel_id)
        if channel is None:
            channel = await bot.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            logger.error("send_to_channel_invalid_channel_type", channel_id=channel_id)
            return False
        await channel.send(content)
        logger.debug("channel_message_sent", channel_id=channel_id, length=len(content))
        return True
    except discord.errors.Forbidden:
        logger.warning("send_to_channel_forbidden", channel_id=channel_id)
    except discord.errors.HTTPException as e:
        logger.error("send_to_channel_http_error", channel_id=channel_id, error=str(e))
    except Exception as e:
        logger.error("send_to_channel_failed", channel_id=channel_id, error=str(e), exc_info=True)
    return False


async def send_private(bot: Any, user_id: Union[int, str], content: str) -> bool:
    """
    Helper to send a direct message to a user.

    Returns:
        True if the message was sent
    """
    try:
        user = bot.get_user(int(user_id))
        if user is None:
            user = await bot.fetch_user(int(user_id))
        await user.send(content)
        logger.debug("private_message_sent", user_id=str(user_id), length=len(content))
        return True
    except discord.errors.Forbidden:
        logger.warning("send_private_forbidden", user_id=str(user_id))
    except discord.errors.HTTPException as e:
        logger.error("send_private_http_error", user_id=str(user_id), error=str(e))
    except Exception as e:
        logger.error("send_private_failed", user_id=str(user_id), error=str(e), exc_info=True)
    return False


class DiscordMessenger:
    """Messenger backed by a discord.py client."""

    def __init__(self, bot: Any) -> None:
        self.bot = bot

    async def send_channel(self, channel_id: Optional[int], content: str) -> bool:
        return await send_to_channel(self.bot, channel_id, content)

    async def send_private(self, user_id: Union[int, str], content: str) -> bool:
        return await send_private(self.bot, user_id, content)
