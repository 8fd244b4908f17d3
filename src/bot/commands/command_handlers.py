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

"""
Command handlers for the /iirose command group.

Each handler encapsulates business logic with explicit dependency injection;
the Discord closures in bot.commands.iirose only translate the interaction
and send the returned CommandResult.

Handler Categories:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  ✂️ Self Cut (2):      cut, allcut
  👋 Welcome (7):       wb-set, wb-rm, lr-set, lr-rm, rf-set, rf-rm, toggle
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

from typing import Any, Iterable, Optional, Protocol
from dataclasses import dataclass
import discord
import structlog

from bot.helpers import mention
from bot.member_events import COOLDOWN_KINDS, DISCORD_PLATFORM, MemberEventKind
from bot.welcome import TEMPLATE_FIELDS, TOGGLE_FIELDS

logger = structlog.get_logger()


# ═════════════════════════════════════════════════════════════════════════════
# DEPENDENCY PROTOCOLS
# ═════════════════════════════════════════════════════════════════════════════


class WelcomeStoreProvider(Protocol):
    """Interface for per-user welcome settings."""

    async def get(self, uid: str) -> Any:
        ...

    async def upsert(self, uid: str, **changes: Any) -> Any:
        ...


class PlatformPolicy(Protocol):
    """Interface for deciding whether a platform is served."""

    def platform_allowed(self, platform: str) -> bool:
        ...


# ═════════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class CommandResult:
    """Result type for all command handlers.

    content None means the command was ignored and nothing should be posted.
    """

    success: bool
    content: Optional[str] = None
    ephemeral: bool = False


KIND_LABELS = {
    MemberEventKind.ADD: "welcome message",
    MemberEventKind.REMOVE: "farewell message",
    MemberEventKind.REFRESH: "refresh message",
}

UNSUPPORTED_PLATFORM_TEXT = "This platform is not supported yet~"


# ═════════════════════════════════════════════════════════════════════════════
# ✂️ SELF CUT HANDLERS (2)
# ═════════════════════════════════════════════════════════════════════════════


class CutCommandHandler:
    """
    Handler for /iirose cut and /iirose allcut.

    Posts the cut text the music bot listens for, on supported platforms only.
    """

    def __init__(self, text: str, supported_platforms: Iterable[str]):
        self.text = text
        self.supported_platforms = frozenset(supported_platforms)

    async def execute(
        self,
        interaction: discord.Interaction,
        platform: str = DISCORD_PLATFORM,
    ) -> CommandResult:
        logger.info(
            "handler_invoked",
            handler="CutCommandHandler",
            text=self.text,
            user_id=interaction.user.id,
        )
        if platform not in self.supported_platforms:
            return CommandResult(success=False, content=UNSUPPORTED_PLATFORM_TEXT)
        return CommandResult(success=True, content=self.text)


# ═════════════════════════════════════════════════════════════════════════════
# 👋 WELCOME HANDLERS (7)
# ═════════════════════════════════════════════════════════════════════════════


class WelcomeTemplateSetHandler:
    """Handler for wb-set / lr-set / rf-set: store a custom template."""

    def __init__(
        self,
        kind: MemberEventKind,
        store: WelcomeStoreProvider,
        policy: PlatformPolicy,
    ):
        self.kind = kind
        self.field = TEMPLATE_FIELDS[kind]
        self.store = store
        self.policy = policy

    async def execute(
        self,
        interaction: discord.Interaction,
        message: Optional[str],
        platform: str = DISCORD_PLATFORM,
    ) -> CommandResult:
        user_id = str(interaction.user.id)
        logger.info(
            "handler_invoked",
            handler="WelcomeTemplateSetHandler",
            kind=self.kind.value,
            user_id=user_id,
        )

        if not self.policy.platform_allowed(platform):
            return CommandResult(success=False)

        label = KIND_LABELS[self.kind]
        if not message:
            return CommandResult(
                success=False,
                content=f"{mention(user_id)} you did not provide a {label}",
                ephemeral=True,
            )

        await self.store.upsert(user_id, **{self.field: message})
        logger.info("welcome_template_set", kind=self.kind.value, user_id=user_id)
        return CommandResult(success=True, content=f"{mention(user_id)} {label} saved")


class WelcomeTemplateClearHandler:
    """Handler for wb-rm / lr-rm / rf-rm: clear a custom template."""

    def __init__(
        self,
        kind: MemberEventKind,
        store: WelcomeStoreProvider,
        policy: PlatformPolicy,
    ):
        self.kind = kind
        self.field = TEMPLATE_FIELDS[kind]
        self.store = store
        self.policy = policy

    async def execute(
        self,
        interaction: discord.Interaction,
        platform: str = DISCORD_PLATFORM,
    ) -> CommandResult:
        user_id = str(interaction.user.id)
        logger.info(
            "handler_invoked",
            handler="WelcomeTemplateClearHandler",
            kind=self.kind.value,
            user_id=user_id,
        )

        if not self.policy.platform_allowed(platform):
            return CommandResult(success=False)

        label = KIND_LABELS[self.kind]
        record = await self.store.get(user_id)
        if record is None or not getattr(record, self.field):
            return CommandResult(
                success=False,
                content=f"{mention(user_id)} you have not set a {label}",
                ephemeral=True,
            )

        # "" (not None) so the default list stays silenced for this user
        await self.store.upsert(user_id, **{self.field: ""})
        logger.info("welcome_template_cleared", kind=self.kind.value, user_id=user_id)
        return CommandResult(success=True, content=f"{mention(user_id)} {label} removed")


class WelcomeToggleHandler:
    """Handler for /iirose welcome toggle [event] [enable]."""

    def __init__(self, store: WelcomeStoreProvider):
        self.store = store

    @staticmethod
    def _state_label(enabled: bool) -> str:
        return "on" if enabled else "off"

    async def execute(
        self,
        interaction: discord.Interaction,
        event: Optional[str] = None,
        enable: Optional[bool] = None,
    ) -> CommandResult:
        user_id = str(interaction.user.id)
        logger.info(
            "handler_invoked",
            handler="WelcomeToggleHandler",
            user_id=user_id,
            member_event=event,
            enable=enable,
        )

        record = await self.store.get(user_id)
        # Unset toggles count as enabled
        current = {
            kind: getattr(record, TOGGLE_FIELDS[kind], None) is not False
            for kind in COOLDOWN_KINDS
        }

        if not event:
            lines = ["Your personal welcome settings:"]
            for kind in COOLDOWN_KINDS:
                lines.append(
                    f"- {KIND_LABELS[kind]} ({kind.value}): {self._state_label(current[kind])}"
                )
            lines.append("")
            lines.append('Use "toggle <event> [true/false]" to change them.')
            return CommandResult(success=True, content="\n".join(lines), ephemeral=True)

        try:
            kind = MemberEventKind.parse(event)
        except ValueError:
            kind = None
        if kind not in COOLDOWN_KINDS:
            return CommandResult(
                success=False,
                content='Invalid event name. Use "add", "remove" or "refresh".',
                ephemeral=True,
            )

        new_state = (not current[kind]) if enable is None else bool(enable)

        await self.store.upsert(user_id, **{TOGGLE_FIELDS[kind]: new_state})
        logger.info("welcome_toggle_changed", kind=kind.value, user_id=user_id, enabled=new_state)
        return CommandResult(
            success=True,
            content=f"Your {kind.value} messages are now {self._state_label(new_state)}.",
            ephemeral=True,
        )
