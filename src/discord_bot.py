# Copyright (c) 2025 Stephen Clau
#
# This file is part of IIROSE Room Plugins.
#
# IIROSE Room Plugins is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""Discord bot client hosting the room plugins.

Delegates concerns to specialized modules:
- bot.member_events: Discord member changes -> MemberEvent
- bot.welcome: welcome / farewell / refresh messages with cooldown
- bot.event_trigger: word triggers on join / move / leave
- bot.commands.iirose: /iirose slash commands
"""

import asyncio
from typing import Optional, Any

import discord
from discord import app_commands
import structlog

from bot import DiscordMessenger, EventTriggerService, MemberEvent, MemberEventKind, WelcomeService
from bot.commands import register_iirose_commands
from bot.member_events import from_discord_member, is_reconnect, is_room_switch
from utils.rate_limiting import CooldownTracker

logger = structlog.get_logger()


class DiscordBot(discord.Client):
    """Discord bot client with slash commands and member event plugins."""

    def __init__(
        self,
        token: str,
        config: Any,
        welcome_store: Any,
        *,
        word_driver: Optional[Any] = None,
        tracker: Optional[CooldownTracker] = None,
        intents: Optional[discord.Intents] = None,
    ):
        """
        Initialize Discord bot.

        Args:
            token: Discord bot token
            config: Config (welcome settings, supported platforms, trigger toggle)
            welcome_store: WelcomeStore for per-user settings
            word_driver: WordDriver for event triggers (None disables them)
            tracker: Cooldown tracker shared with the owner for disposal
            intents: Discord intents (auto-configured if None)
        """
        if intents is None:
            intents = discord.Intents.default()
            intents.guilds = True
            intents.members = True  # join / leave events
            intents.presences = True  # reconnect (refresh) events
            intents.voice_states = True  # room switches

        super().__init__(intents=intents)

        self.token = token
        self.config = config
        self.bot_name = config.bot_name
        self.tree = app_commands.CommandTree(self)
        self._ready = asyncio.Event()
        self._connected = False
        self._connection_task: Optional[asyncio.Task] = None

        self.supported_platforms = list(config.supported_platforms)
        self.welcome_store = welcome_store
        self.messenger = DiscordMessenger(self)

        # A tracker passed in is disposed by its owner; one built here is ours
        self._owns_tracker = tracker is None
        self.welcome = WelcomeService(
            config=config.welcome,
            store=welcome_store,
            messenger=self.messenger,
            tracker=tracker if tracker is not None else CooldownTracker(config.welcome.cooldown),
        )
        self.event_triggers = EventTriggerService(
            driver=word_driver if config.event_triggers_enabled else None,
            messenger=self.messenger,
        )

        logger.info(
            "discord_bot_initialized",
            bot_name=self.bot_name,
            cooldown=config.welcome.cooldown,
            event_triggers=self.event_triggers.driver is not None,
        )

    # ========================================================================
    # Bot Lifecycle
    # ========================================================================

    async def setup_hook(self) -> None:
        """Called when the bot is starting up. Set up commands here."""
        register_iirose_commands(self)
        logger.info("discord_bot_setup_complete")

    async def on_ready(self) -> None:
        """Called when bot is ready (fires on initial connect AND reconnects)."""
        if self.user is None:
            logger.error("discord_bot_ready_but_no_user")
            return

        logger.info(
            "discord_bot_ready",
            bot_name=self.user.name,
            bot_id=self.user.id,
            guilds=len(self.guilds),
        )

        self._connected = True
        self._ready.set()

        try:
            synced = await self.tree.sync()
            logger.info(
                "commands_synced_globally",
                count=len(synced),
                commands=[cmd.name for cmd in synced],
            )
        except Exception as e:
            logger.error("command_sync_failed", error=str(e), exc_info=True)

    async def on_disconnect(self) -> None:
        """Called when bot disconnects."""
        self._connected = False
        logger.warning("discord_bot_disconnected")

    async def on_error(self, event: str, *args, **kwargs) -> None:
        """Called when an error occurs."""
        logger.error("discord_bot_error", event_name=event, exc_info=True)

    async def close(self) -> None:
        """Close the client and dispose the cooldown tracker if this bot built it."""
        await super().close()
        if self._owns_tracker:
            self._owns_tracker = False
            self.welcome.dispose()
            logger.debug("cooldown_tracker_disposed")

    # ========================================================================
    # Member Events
    # ========================================================================

    def _member_event(self, kind: MemberEventKind, member: Any) -> MemberEvent:
        self_id = self.user.id if self.user is not None else None
        return from_discord_member(kind, member, self_id, self.config.welcome.channel_id)

    async def dispatch_member_event(self, event: MemberEvent) -> None:
        """Run every plugin for a member event; one plugin failing never stops the next."""
        try:
            await self.welcome.handle(event)
        except Exception as e:
            logger.error(
                "welcome_handler_failed",
                kind=event.kind.value,
                user_id=event.user_id,
                error=str(e),
                exc_info=True,
            )

        try:
            await self.event_triggers.handle(event)
        except Exception as e:
            logger.error(
                "event_trigger_handler_failed",
                kind=event.kind.value,
                user_id=event.user_id,
                error=str(e),
                exc_info=True,
            )

    async def on_member_join(self, member: discord.Member) -> None:
        await self.dispatch_member_event(self._member_event(MemberEventKind.ADD, member))

    async def on_member_remove(self, member: discord.Member) -> None:
        await self.dispatch_member_event(self._member_event(MemberEventKind.REMOVE, member))

    async def on_presence_update(self, before: discord.Member, after: discord.Member) -> None:
        if is_reconnect(before, after):
            await self.dispatch_member_event(self._member_event(MemberEventKind.REFRESH, after))

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if is_room_switch(before, after):
            await self.dispatch_member_event(
                self._member_event(MemberEventKind.SWITCH_ROOM, member)
            )

    # ========================================================================
    # Connection Management
    # ========================================================================

    async def connect_bot(self) -> None:
        """Connect the bot to Discord and wait until it is ready."""
        try:
            logger.info("connecting_to_discord")
            await self.login(self.token)
            self._connection_task = asyncio.create_task(self.connect())

            try:
                await asyncio.wait_for(self._ready.wait(), timeout=30.0)
                logger.info("discord_bot_connected")
                self._connected = True
            except asyncio.TimeoutError:
                logger.error("discord_bot_connection_timeout")
                if self._connection_task is not None:
                    self._connection_task.cancel()
                    try:
                        await self._connection_task
                    except asyncio.CancelledError:
                        pass
                raise ConnectionError("Discord bot connection timed out after 30 seconds")
        except discord.errors.LoginFailure as e:
            logger.error("discord_login_failed", error=str(e))
            raise ConnectionError(f"Discord login failed: {e}")
        except Exception as e:
            logger.error("discord_bot_connection_failed", error=str(e), exc_info=True)
            raise

    async def disconnect_bot(self) -> None:
        """Disconnect the bot from Discord."""
        if self._connected or self._connection_task is not None:
            logger.info("disconnecting_from_discord")
            self._connected = False

            if self._connection_task is not None:
                if not self._connection_task.done():
                    self._connection_task.cancel()
                    try:
                        await self._connection_task
                    except asyncio.CancelledError:
                        pass
                self._connection_task = None

            if not self.is_closed():
                await self.close()
            logger.info("discord_bot_disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if bot is connected to Discord."""
        return self._connected
