"""/iirose slash command group registration.

Command Breakdown:
- Self Cut: cut, allcut
- Welcome (subgroup): wb-set, wb-rm, lr-set, lr-rm, rf-set, rf-rm, toggle
"""

from typing import Any, Optional, Protocol, runtime_checkable
import discord
from discord import app_commands
import structlog

from bot.commands.command_handlers import (
    CommandResult,
    CutCommandHandler,
    WelcomeTemplateClearHandler,
    WelcomeTemplateSetHandler,
    WelcomeToggleHandler,
)
from bot.member_events import DISCORD_PLATFORM, MemberEventKind

logger = structlog.get_logger()

IGNORED_COMMAND_TEXT = "This command is not available on this platform."


@runtime_checkable
class IiroseBot(Protocol):
    """Protocol defining expected bot attributes for /iirose commands."""

    tree: app_commands.CommandTree
    welcome: Any
    welcome_store: Any
    supported_platforms: Any


async def send_command_response(
    interaction: discord.Interaction,
    result: CommandResult,
) -> None:
    """
    Send a handler result. Ignored commands still get an ephemeral notice
    because Discord requires every interaction to be answered.
    """
    content = result.content if result.content is not None else IGNORED_COMMAND_TEXT
    ephemeral = result.ephemeral or result.content is None

    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=ephemeral)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral)


async def _run(interaction: discord.Interaction, name: str, call: Any) -> None:
    """Await a handler call and deliver its result; log instead of crashing."""
    try:
        result = await call
        await send_command_response(interaction, result)
    except Exception as e:
        logger.error("command_exception", command=name, error=str(e), exc_info=True)
        if not interaction.response.is_done():
            await interaction.response.send_message(
                f"Command error: {e}", ephemeral=True
            )


def build_iirose_group(bot: IiroseBot) -> app_commands.Group:
    """
    Build the /iirose group with all handlers wired to the bot's services.

    Args:
        bot: Bot exposing welcome (WelcomeService), welcome_store and
             supported_platforms
    """
    cut_handler = CutCommandHandler("cut", bot.supported_platforms)
    allcut_handler = CutCommandHandler("cut all", bot.supported_platforms)

    set_handlers = {
        kind: WelcomeTemplateSetHandler(kind, bot.welcome_store, bot.welcome)
        for kind in (MemberEventKind.ADD, MemberEventKind.REMOVE, MemberEventKind.REFRESH)
    }
    clear_handlers = {
        kind: WelcomeTemplateClearHandler(kind, bot.welcome_store, bot.welcome)
        for kind in (MemberEventKind.ADD, MemberEventKind.REMOVE, MemberEventKind.REFRESH)
    }
    toggle_handler = WelcomeToggleHandler(bot.welcome_store)

    iirose_group = app_commands.Group(
        name="iirose",
        description="IIROSE room tools",
    )
    welcome_group = app_commands.Group(
        name="welcome",
        description="Personal welcome, farewell and refresh messages",
        parent=iirose_group,
    )

    # ════════════════════════════════════════════════════════════════════════
    # SELF CUT (2)
    # ════════════════════════════════════════════════════════════════════════

    @iirose_group.command(name="cut", description="Cut the song the bot is playing")
    async def cut_command(interaction: discord.Interaction) -> None:
        await _run(interaction, "cut", cut_handler.execute(interaction, DISCORD_PLATFORM))

    @iirose_group.command(name="allcut", description="Cut every song the bot queued")
    async def allcut_command(interaction: discord.Interaction) -> None:
        await _run(interaction, "allcut", allcut_handler.execute(interaction, DISCORD_PLATFORM))

    # ════════════════════════════════════════════════════════════════════════
    # WELCOME (7)
    # ════════════════════════════════════════════════════════════════════════

    @welcome_group.command(name="wb-set", description="Set your own welcome message")
    @app_commands.describe(message="Message text; (@) becomes a mention of you")
    async def wb_set_command(interaction: discord.Interaction, message: str) -> None:
        await _run(
            interaction,
            "wb-set",
            set_handlers[MemberEventKind.ADD].execute(interaction, message, DISCORD_PLATFORM),
        )

    @welcome_group.command(name="wb-rm", description="Clear your own welcome message")
    async def wb_rm_command(interaction: discord.Interaction) -> None:
        await _run(
            interaction,
            "wb-rm",
            clear_handlers[MemberEventKind.ADD].execute(interaction, DISCORD_PLATFORM),
        )

    @welcome_group.command(name="lr-set", description="Set your own farewell message")
    @app_commands.describe(message="Message text; (@) becomes a mention of you")
    async def lr_set_command(interaction: discord.Interaction, message: str) -> None:
        await _run(
            interaction,
            "lr-set",
            set_handlers[MemberEventKind.REMOVE].execute(interaction, message, DISCORD_PLATFORM),
        )

    @welcome_group.command(name="lr-rm", description="Clear your own farewell message")
    async def lr_rm_command(interaction: discord.Interaction) -> None:
        await _run(
            interaction,
            "lr-rm",
            clear_handlers[MemberEventKind.REMOVE].execute(interaction, DISCORD_PLATFORM),
        )

    @welcome_group.command(name="rf-set", description="Set your own refresh message")
    @app_commands.describe(message="Message text; (@) becomes a mention of you")
    async def rf_set_command(interaction: discord.Interaction, message: str) -> None:
        await _run(
            interaction,
            "rf-set",
            set_handlers[MemberEventKind.REFRESH].execute(interaction, message, DISCORD_PLATFORM),
        )

    @welcome_group.command(name="rf-rm", description="Clear your own refresh message")
    async def rf_rm_command(interaction: discord.Interaction) -> None:
        await _run(
            interaction,
            "rf-rm",
            clear_handlers[MemberEventKind.REFRESH].execute(interaction, DISCORD_PLATFORM),
        )

    @welcome_group.command(
        name="toggle", description="Turn your own welcome messages on or off per event"
    )
    @app_commands.describe(
        event='"add", "remove" or "refresh"; omit to show your settings',
        enable="true / false; omit to flip the current setting",
    )
    async def toggle_command(
        interaction: discord.Interaction,
        event: Optional[str] = None,
        enable: Optional[bool] = None,
    ) -> None:
        await _run(interaction, "toggle", toggle_handler.execute(interaction, event, enable))

    return iirose_group


def register_iirose_commands(bot: IiroseBot) -> app_commands.Group:
    """
    Register the /iirose command group on the bot's command tree.

    Args:
        bot: IiroseBot instance with tree, welcome, welcome_store and
             supported_platforms attributes
    """
    group = build_iirose_group(bot)
    bot.tree.add_command(group)
    logger.info("iirose_commands_registered", commands=len(group.commands))
    return group
