from __future__ import annotations

import time

from nochicken.session.manager import ConversationContextManager
from nochicken.session.scheduler import CleanupScheduler


def test_run_once_evicts_idle_contexts(manager: ConversationContextManager, clock) -> None:
    manager.get_context("idle")
    clock.advance(hours=25)
    manager.get_context("active")

    scheduler = CleanupScheduler(manager)

    assert scheduler.run_once() == 1
    assert "idle" not in manager
    assert "active" in manager


def test_background_thread_runs_cleanup_until_stopped(manager: ConversationContextManager, clock) -> None:
    manager.get_context("idle")
    clock.advance(hours=30)

    scheduler = CleanupScheduler(manager, interval_seconds=0.01)
    scheduler.start()
    scheduler.start()  # second start is a no-op
    try:
        deadline = time.time() + 2.0
        while "idle" in manager and time.time() < deadline:
            time.sleep(0.01)
        assert "idle" not in manager
        assert scheduler.is_running
    finally:
        scheduler.stop(timeout=2.0)

    assert not scheduler.is_running


def test_failing_tick_does_not_kill_the_loop(clock) -> None:
    class FlakyManager(ConversationContextManager):
        calls = 0

        def cleanup(self) -> int:
            FlakyManager.calls += 1
            if FlakyManager.calls == 1:
                raise RuntimeError("boom")
            return 0

    scheduler = CleanupScheduler(FlakyManager(clock=clock), interval_seconds=0.01)
    scheduler.start()
    try:
        deadline = time.time() + 2.0
        while FlakyManager.calls < 3 and time.time() < deadline:
            time.sleep(0.01)
    finally:
        scheduler.stop(timeout=2.0)

    assert FlakyManager.calls >= 3


def test_run_once_cleans_extra_targets(manager: ConversationContextManager) -> None:
    class Target:
        calls = 0

        def cleanup(self) -> int:
            Target.calls += 1
            return 0

    scheduler = CleanupScheduler(manager, extra_targets=[Target(), Target()])

    assert scheduler.run_once() == 0
    assert Target.calls == 2
