"""Welcome / farewell / refresh messages for room members.

Handles member events against the configured template lists, per-user custom
templates and toggles from the welcome store, and the per-user cooldown.
"""

from typing import Any, Dict, List, Optional
import random
import structlog

from bot.helpers import Messenger, render_message
from bot.member_events import MemberEvent, MemberEventKind, COOLDOWN_KINDS
from utils.rate_limiting import CooldownTracker

logger = structlog.get_logger()

# Per-kind names of the stored template and toggle fields.
TEMPLATE_FIELDS: Dict[MemberEventKind, str] = {
    MemberEventKind.ADD: "welcome_msg",
    MemberEventKind.REMOVE: "leave_msg",
    MemberEventKind.REFRESH: "refresh_msg",
}

TOGGLE_FIELDS: Dict[MemberEventKind, str] = {
    MemberEventKind.ADD: "add_enabled",
    MemberEventKind.REMOVE: "remove_enabled",
    MemberEventKind.REFRESH: "refresh_enabled",
}


class WelcomeService:
    """React to add / remove / refresh member events with templated messages."""

    def __init__(
        self,
        config: Any,
        store: Any,
        messenger: Messenger,
        tracker: Optional[CooldownTracker] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialize welcome service.

        Args:
            config: WelcomeConfig
            store: WelcomeStore holding per-user settings
            messenger: Delivery for room and private messages
            tracker: Cooldown tracker (built from config.cooldown if None)
            rng: Random source for picking default templates
        """
        self.config = config
        self.store = store
        self.messenger = messenger
        self.tracker = tracker if tracker is not None else CooldownTracker(config.cooldown)
        self._rng = rng or random.Random()

    def _globally_enabled(self, kind: MemberEventKind) -> bool:
        return {
            MemberEventKind.ADD: self.config.enable_add,
            MemberEventKind.REMOVE: self.config.enable_remove,
            MemberEventKind.REFRESH: self.config.enable_refresh,
        }.get(kind, False)

    def _default_templates(self, kind: MemberEventKind) -> List[str]:
        return {
            MemberEventKind.ADD: self.config.welcome_list,
            MemberEventKind.REMOVE: self.config.exit_list,
            MemberEventKind.REFRESH: self.config.refresh_list,
        }[kind]

    def platform_allowed(self, platform: str) -> bool:
        return not self.config.only_platform or platform == self.config.platform

    async def get_message(self, kind: MemberEventKind, user_id: str) -> Optional[str]:
        """
        Resolve the rendered message for a user and event kind.

        A stored custom template wins; an explicitly cleared one ("") means
        silence. Otherwise a random configured template is used.

        Returns:
            Rendered message, or None when nothing should be sent
        """
        record = await self.store.get(user_id)
        if record is not None:
            custom = getattr(record, TEMPLATE_FIELDS[kind])
            if isinstance(custom, str):
                if custom == "":
                    return None
                return render_message(custom, user_id)

        templates = self._default_templates(kind)
        if not templates:
            return None

        return render_message(self._rng.choice(templates), user_id)

    async def handle(self, event: MemberEvent) -> bool:
        """
        Handle a member event.

        Returns:
            True if a message was delivered
        """
        kind = event.kind
        if kind not in COOLDOWN_KINDS:
            return False

        if not self._globally_enabled(kind):
            return False

        if self.tracker.should_suppress(event.user_id, kind.value):
            logger.debug("welcome_suppressed_by_cooldown", kind=kind.value, user_id=event.user_id)
            return False

        if not self.platform_allowed(event.platform):
            return False

        if kind is not MemberEventKind.REFRESH and event.is_self:
            return False

        record = await self.store.get(event.user_id)
        if record is not None and getattr(record, TOGGLE_FIELDS[kind]) is False:
            logger.debug("welcome_disabled_by_user", kind=kind.value, user_id=event.user_id)
            return False

        message = await self.get_message(kind, event.user_id)
        if not message:
            return False

        if kind is MemberEventKind.ADD and self.config.be_private:
            sent = await self.messenger.send_private(event.user_id, message)
        else:
            sent = await self.messenger.send_channel(
                self.config.channel_id or event.channel_id, message
            )

        if sent:
            logger.info("welcome_sent", kind=kind.value, user_id=event.user_id)
        else:
            logger.error("welcome_send_failed", kind=kind.value, user_id=event.user_id)
        return sent

    def dispose(self) -> None:
        self.tracker.dispose()
