"""pytest configuration for the room plugin tests.

This module provides:
- src/ on sys.path for flat imports (from bot.welcome import ...)
- A manual clock and scheduler so cooldown windows can be driven in tests
- Mock messenger, in-memory welcome store and interaction fixtures
"""

from unittest.mock import MagicMock, AsyncMock
from typing import Any, Callable, List, Optional
import sys
from pathlib import Path
import random
import pytest

# Add src/ to Python path for absolute imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from config import WelcomeConfig  # noqa: E402
from utils.rate_limiting import CooldownTracker  # noqa: E402
from welcome_store import MemoryWelcomeStore  # noqa: E402


# ════════════════════════════════════════════════════════════════════════════
# MANUAL TIME
# ════════════════════════════════════════════════════════════════════════════


class ManualTimer:
    """Handle returned by ManualScheduler."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Clock plus scheduler; advance() fires due callbacks in order."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.timers: List[ManualTimer] = []

    def clock(self) -> float:
        return self.now

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance_to(self, when: float) -> None:
        for timer in sorted(self.timers, key=lambda t: t.due):
            if timer.due > when:
                break
            self.now = timer.due
            self.timers.remove(timer)
            if not timer.cancelled:
                timer.callback()
        self.now = when

    def advance(self, seconds: float) -> None:
        self.advance_to(self.now + seconds)


@pytest.fixture
def manual_time() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def make_tracker(manual_time: ManualScheduler) -> Callable[[float], CooldownTracker]:
    """Factory for trackers driven by manual_time."""

    def _make(window: float) -> CooldownTracker:
        return CooldownTracker(window, clock=manual_time.clock, scheduler=manual_time)

    return _make


# ════════════════════════════════════════════════════════════════════════════
# PLUGIN FIXTURES
# ════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def messenger() -> MagicMock:
    """Mock Messenger; both methods report successful delivery."""
    mock = MagicMock()
    mock.send_channel = AsyncMock(return_value=True)
    mock.send_private = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def store() -> MemoryWelcomeStore:
    return MemoryWelcomeStore()


@pytest.fixture
def welcome_config() -> WelcomeConfig:
    return WelcomeConfig(
        welcome_list=["Welcome (@)!"],
        exit_list=["Bye (@)"],
        refresh_list=["(@) refreshed"],
    )


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


def make_interaction(user_id: int = 42, name: str = "alice", done: bool = False) -> MagicMock:
    """Mock discord.Interaction with an async response and followup."""
    interaction = MagicMock()
    interaction.user.id = user_id
    interaction.user.name = name
    interaction.response.is_done = MagicMock(return_value=done)
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


@pytest.fixture
def interaction() -> MagicMock:
    return make_interaction()
