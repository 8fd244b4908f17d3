"""Discord bot module - room plugins behind the DiscordBot client."""

from .helpers import DiscordMessenger
from .member_events import MemberEvent, MemberEventKind
from .welcome import WelcomeService
from .event_trigger import EventTriggerService

__all__ = [
    "DiscordMessenger",
    "MemberEvent",
    "MemberEventKind",
    "WelcomeService",
    "EventTriggerService",
]
