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
Unit tests for rate_limiting.CooldownTracker.

Covers disabled windows, independent kinds, suppression windows, expiry
without extension, automatic cleanup, dispose, and the default scheduler.
"""

import asyncio
import threading
import time

import pytest

from utils.rate_limiting import CooldownTracker, default_scheduler


class TestDisabledCooldown:
    """window <= 0 is a stateless pass-through."""

    @pytest.mark.parametrize("window", [0, 0.0, -1, -30.5])
    def test_never_suppresses_and_never_records(self, make_tracker, manual_time, window) -> None:
        tracker = make_tracker(window)

        for _ in range(50):
            assert tracker.should_suppress("u1", "add") is False

        assert tracker.active_count == 0
        assert manual_time.timers == []
        assert tracker.enabled is False


class TestSuppressionWindow:
    """Accepted events open a window during which repeats are suppressed."""

    def test_independent_kinds(self, make_tracker) -> None:
        tracker = make_tracker(10)

        assert tracker.should_suppress("u1", "add") is False
        assert tracker.should_suppress("u1", "remove") is False
        assert tracker.active_count == 2

    def test_independent_entities(self, make_tracker) -> None:
        tracker = make_tracker(10)

        assert tracker.should_suppress("u1", "add") is False
        assert tracker.should_suppress("u2", "add") is False

    def test_suppressed_inside_window_then_accepted(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)

        assert tracker.should_suppress("u1", "add") is False

        manual_time.advance_to(5)
        assert tracker.should_suppress("u1", "add") is True

        manual_time.advance_to(11)
        assert tracker.should_suppress("u1", "add") is False

    def test_suppressed_attempt_does_not_extend_window(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)

        assert tracker.should_suppress("u1", "add") is False
        manual_time.advance_to(5)
        assert tracker.should_suppress("u1", "add") is True
        assert tracker.last_accepted_at("u1", "add") == 0
        assert len(manual_time.pending) == 1

        manual_time.advance_to(10.5)
        assert tracker.should_suppress("u1", "add") is False
        assert tracker.last_accepted_at("u1", "add") == 10.5

    def test_exact_window_boundary_is_accepted(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)

        assert tracker.should_suppress("u1", "add") is False
        manual_time.now = 10  # clock moves without firing the cleanup timer
        assert tracker.should_suppress("u1", "add") is False

    def test_bob_scenario(self, make_tracker, manual_time) -> None:
        """window 1000ms expressed in seconds."""
        tracker = make_tracker(1.0)

        assert tracker.should_suppress("bob", "refresh") is False
        manual_time.advance_to(0.5)
        assert tracker.should_suppress("bob", "refresh") is True
        assert tracker.should_suppress("bob", "add") is False
        manual_time.advance_to(1.5)
        assert tracker.should_suppress("bob", "refresh") is False

    def test_entity_is_stringified(self, make_tracker) -> None:
        tracker = make_tracker(10)

        assert tracker.should_suppress(123, "add") is False
        assert tracker.should_suppress("123", "add") is True
        assert ("123", "add") in tracker
        assert (123, "add") in tracker
        assert "123" not in tracker


class TestAutomaticCleanup:
    """Records forget themselves once the window elapses."""

    def test_record_removed_after_window(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)

        tracker.should_suppress("u1", "add")
        assert ("u1", "add") in tracker

        manual_time.advance(10)
        assert ("u1", "add") not in tracker
        assert tracker.active_count == 0
        assert len(tracker) == 0

    def test_one_record_per_key(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)

        for second in range(0, 40, 3):
            manual_time.advance_to(second)
            tracker.should_suppress("u1", "add")
            assert tracker.active_count <= 1
            assert len(manual_time.pending) <= 1

    def test_stale_timer_cancelled_on_overwrite(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)

        tracker.should_suppress("u1", "add")
        first = manual_time.timers[0]

        # Clock passes the window before the cleanup gets to run
        manual_time.now = 12
        assert tracker.should_suppress("u1", "add") is False

        assert first.cancelled is True
        assert len(manual_time.pending) == 1

        # The old callback firing late must not remove the new record
        first.callback()
        assert ("u1", "add") in tracker

        manual_time.advance_to(22)
        assert ("u1", "add") not in tracker


class TestDispose:
    """dispose() cancels pending cleanups and clears state."""

    def test_dispose_cancels_then_clears(self, make_tracker, manual_time) -> None:
        tracker = make_tracker(10)
        tracker.should_suppress("u1", "add")
        tracker.should_suppress("u1", "refresh")
        tracker.should_suppress("u2", "remove")

        tracker.dispose()

        assert tracker.active_count == 0
        assert all(t.cancelled for t in manual_time.timers)
        assert manual_time.pending == []

    def test_dispose_is_idempotent(self, make_tracker) -> None:
        tracker = make_tracker(10)
        tracker.should_suppress("u1", "add")

        tracker.dispose()
        tracker.dispose()

        assert tracker.active_count == 0

    def test_dispose_empty_tracker(self, make_tracker) -> None:
        tracker = make_tracker(10)
        tracker.dispose()
        assert tracker.active_count == 0

    def test_tracker_usable_after_dispose(self, make_tracker) -> None:
        tracker = make_tracker(10)
        tracker.should_suppress("u1", "add")
        tracker.dispose()

        assert tracker.should_suppress("u1", "add") is False
        assert tracker.should_suppress("u1", "add") is True


class TestDefaultScheduler:
    """Real scheduling primitives."""

    def test_uses_threading_timer_without_loop(self) -> None:
        fired = threading.Event()
        handle = default_scheduler(0.01, fired.set)

        assert isinstance(handle, threading.Timer)
        assert fired.wait(2.0)

    def test_threading_timer_can_be_cancelled(self) -> None:
        fired = threading.Event()
        handle = default_scheduler(0.2, fired.set)
        handle.cancel()

        assert not fired.wait(0.4)

    @pytest.mark.asyncio
    async def test_uses_loop_call_later_inside_loop(self) -> None:
        fired = asyncio.Event()
        handle = default_scheduler(0.01, fired.set)

        assert isinstance(handle, asyncio.TimerHandle)
        await asyncio.wait_for(fired.wait(), timeout=2.0)

    @pytest.mark.asyncio
    async def test_real_expiry_inside_loop(self) -> None:
        tracker = CooldownTracker(0.05, clock=time.monotonic)

        assert tracker.should_suppress("u1", "add") is False
        assert tracker.should_suppress("u1", "add") is True

        await asyncio.sleep(0.15)
        assert tracker.active_count == 0
        assert tracker.should_suppress("u1", "add") is False
        tracker.dispose()
