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
Per-entity, per-event-kind cooldown tracking with self-expiring state.

Framework-agnostic: the welcome plugin uses it for member events, but any
caller that needs "one accepted event per key per window" can reuse it.
"""

import asyncio
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Protocol, Tuple
import structlog

logger = structlog.get_logger()

CooldownKey = Tuple[str, str]


class CancelHandle(Protocol):
    """Anything returned by a scheduler that can be cancelled."""

    def cancel(self) -> Any:
        ...


Scheduler = Callable[[float, Callable[[], None]], CancelHandle]


def default_scheduler(delay: float, callback: Callable[[], None]) -> CancelHandle:
    """
    Schedule callback after delay seconds.

    Uses the running asyncio loop when there is one, otherwise a daemon
    threading.Timer.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, callback)


class CooldownTracker:
    """Suppress repeated events of the same kind for the same entity."""

    def __init__(
        self,
        window: float = 0.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Scheduler] = None,
    ):
        """
        Initialize cooldown tracker.

        Args:
            window: Cooldown duration in seconds (<= 0 disables suppression)
            clock: Monotonic time source in seconds
            scheduler: Callable(delay, callback) returning a cancellable handle
        """
        self.window = float(window)
        self._clock = clock
        self._scheduler: Scheduler = scheduler or default_scheduler
        self._last_accepted: Dict[CooldownKey, float] = {}
        self._cleanup_handles: Dict[CooldownKey, CancelHandle] = {}
        self._lock = threading.RLock()
        logger.debug("cooldown_tracker_initialized", window=self.window)

    @property
    def enabled(self) -> bool:
        return self.window > 0

    def should_suppress(self, entity: Hashable, kind: str) -> bool:
        """
        Decide whether an event should be dropped.

        Args:
            entity: Subject being rate limited (e.g. user ID)
            kind: Event category; each kind has its own cooldown bucket

        Returns:
            True if an event of this kind for this entity was accepted less
            than ``window`` seconds ago. False otherwise, in which case the
            event is recorded as accepted and its expiry is scheduled.
        """
        if not self.enabled:
            return False

        key = (str(entity), str(kind))
        with self._lock:
            now = self._clock()
            last = self._last_accepted.get(key)

            if last is not None and (now - last) < self.window:
                logger.debug(
                    "cooldown_suppressed",
                    entity=key[0],
                    kind=key[1],
                    remaining=round(self.window - (now - last), 3),
                )
                return True

            self._last_accepted[key] = now

            stale = self._cleanup_handles.pop(key, None)
            if stale is not None:
                stale.cancel()

            self._cleanup_handles[key] = self._scheduler(
                self.window, lambda: self._expire(key, now)
            )
            return False

    def _expire(self, key: CooldownKey, accepted_at: float) -> None:
        """Forget a record once its window has elapsed."""
        with self._lock:
            # A newer acceptance owns the key now; its own timer will clean up.
            if self._last_accepted.get(key) != accepted_at:
                return
            del self._last_accepted[key]
            self._cleanup_handles.pop(key, None)
        logger.debug("cooldown_expired", entity=key[0], kind=key[1])

    def last_accepted_at(self, entity: Hashable, kind: str) -> Optional[float]:
        """Timestamp of the active record for (entity, kind), if any."""
        with self._lock:
            return self._last_accepted.get((str(entity), str(kind)))

    @property
    def active_count(self) -> int:
        """Number of keys currently inside a cooldown window."""
        with self._lock:
            return len(self._last_accepted)

    def __len__(self) -> int:
        return self.active_count

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        with self._lock:
            return (str(key[0]), str(key[1])) in self._last_accepted

    def dispose(self) -> None:
        """Cancel every pending cleanup, then clear all state. Idempotent."""
        with self._lock:
            pending = len(self._cleanup_handles)
            for handle in self._cleanup_handles.values():
                handle.cancel()
            self._cleanup_handles.clear()
            self._last_accepted.clear()
        if pending:
            logger.debug("cooldown_tracker_disposed", cancelled=pending)
