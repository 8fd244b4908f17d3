"""Platform-neutral member events and their Discord adapters.

Plugins only ever see MemberEvent; the functions at the bottom of this module
translate discord.py member objects into it.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Tuple
import discord
import structlog

logger = structlog.get_logger()

DISCORD_PLATFORM = "discord"


class MemberEventKind(str, Enum):
    """Room membership events plugins can react to."""

    ADD = "add"
    REMOVE = "remove"
    REFRESH = "refresh"
    SWITCH_ROOM = "switch_room"

    @classmethod
    def parse(cls, text: str) -> "MemberEventKind":
        """
        Parse a user-supplied event name (case-insensitive).

        Raises:
            ValueError: If text is not a known event name
        """
        try:
            return cls(text.strip().lower())
        except (AttributeError, ValueError):
            raise ValueError(f"Unknown member event: {text!r}")


# Kinds that carry a per-user cooldown and a per-user toggle.
COOLDOWN_KINDS: Tuple[MemberEventKind, ...] = (
    MemberEventKind.ADD,
    MemberEventKind.REMOVE,
    MemberEventKind.REFRESH,
)


@dataclass(frozen=True)
class MemberEvent:
    """A member entering, leaving, reconnecting to or moving inside a room."""

    kind: MemberEventKind
    user_id: str
    username: str
    guild_id: Optional[int] = None
    channel_id: Optional[int] = None
    platform: str = DISCORD_PLATFORM
    self_id: Optional[str] = None
    content: str = ""

    @property
    def is_self(self) -> bool:
        """True when the event was caused by the bot account itself."""
        return self.self_id is not None and self.user_id == self.self_id

    @property
    def is_guest(self) -> bool:
        """Guest accounts carry an 'X' prefixed user ID."""
        return self.user_id.startswith("X")

    def with_content(self, content: str) -> "MemberEvent":
        return replace(self, content=content)


# ========================================================================
# DISCORD ADAPTERS
# ========================================================================


def _room_channel_id(member: Any, override: Optional[int]) -> Optional[int]:
    if override:
        return override
    guild = getattr(member, "guild", None)
    system_channel = getattr(guild, "system_channel", None)
    return getattr(system_channel, "id", None)


def from_discord_member(
    kind: MemberEventKind,
    member: discord.abc.User,
    self_id: Optional[int],
    channel_override: Optional[int] = None,
) -> MemberEvent:
    """
    Build a MemberEvent from a discord.py member.

    Args:
        kind: Which membership change happened
        member: Member (or User, for removals from uncached guilds)
        self_id: The bot's own user ID
        channel_override: Configured room channel, else the guild system channel

    Returns:
        MemberEvent with the member's display name as username
    """
    guild = getattr(member, "guild", None)
    event = MemberEvent(
        kind=kind,
        user_id=str(member.id),
        username=getattr(member, "display_name", None) or member.name,
        guild_id=getattr(guild, "id", None),
        channel_id=_room_channel_id(member, channel_override),
        platform=DISCORD_PLATFORM,
        self_id=str(self_id) if self_id is not None else None,
        content=kind.value,
    )
    logger.debug(
        "member_event_built",
        kind=kind.value,
        user_id=event.user_id,
        guild_id=event.guild_id,
    )
    return event


def is_reconnect(before: discord.Member, after: discord.Member) -> bool:
    """Presence went from offline to anything else."""
    return before.status == discord.Status.offline and after.status != discord.Status.offline


def is_room_switch(
    before: discord.VoiceState, after: discord.VoiceState
) -> bool:
    """Member moved between two voice channels (not a plain join or leave)."""
    return (
        before.channel is not None
        and after.channel is not None
        and before.channel.id != after.channel.id
    )
