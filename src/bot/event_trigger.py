"""Fire word triggers when members join, move between or leave rooms."""

from typing import Any, List, Optional, Tuple
import structlog

from bot.helpers import Messenger
from bot.member_events import MemberEvent, MemberEventKind

logger = structlog.get_logger()

EVENT_VERBS = {
    MemberEventKind.ADD: "join room",
    MemberEventKind.SWITCH_ROOM: "switch room",
    MemberEventKind.REMOVE: "leave room",
}

PUBLIC = "public"
PRIVATE = "private"
GUEST = "guest"


def trigger_phrases(event: MemberEvent) -> List[Tuple[str, str]]:
    """
    Trigger phrases for an event, in firing order.

    Returns:
        List of (phrase, target) where target is "public" or "private"
    """
    verb = EVENT_VERBS[event.kind]
    prefixes = ["", f"{event.user_id} "]
    if event.is_guest:
        prefixes.append(f"{GUEST} ")

    return [
        (f"{prefix}{verb} {target}", target)
        for prefix in prefixes
        for target in (PUBLIC, PRIVATE)
    ]


class EventTriggerService:
    """Run room event triggers through the shared word driver."""

    def __init__(self, driver: Optional[Any], messenger: Messenger) -> None:
        """
        Initialize event trigger service.

        Args:
            driver: WordDriver, or None when the word trigger extension is absent
            messenger: Delivery for room and private messages
        """
        self.driver = driver
        self.messenger = messenger

    async def handle(self, event: MemberEvent) -> int:
        """
        Fire every trigger phrase for the event.

        Returns:
            Number of replies delivered
        """
        if event.kind not in EVENT_VERBS:
            return 0
        if self.driver is None:
            return 0
        if not event.content:
            return 0
        if event.is_self:
            return 0

        delivered = 0
        for phrase, target in trigger_phrases(event):
            session = event.with_content(phrase)

            if target == PUBLIC:
                async def send(text: str) -> Any:
                    return await self.messenger.send_channel(event.channel_id, text)
            else:
                async def send(text: str) -> Any:
                    return await self.messenger.send_private(event.user_id, text)

            delivered += await self.driver.start(session, send)

        if delivered:
            logger.info(
                "event_triggers_fired",
                kind=event.kind.value,
                user_id=event.user_id,
                replies=delivered,
            )
        return delivered
