"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from nochicken.session.manager import ConversationContextManager


class FakeClock:
    """Manually advanced stand-in for datetime.now."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    # 03:00 falls outside every meal window
    return FakeClock(datetime(2026, 3, 2, 3, 0, 0))


@pytest.fixture
def manager(clock: FakeClock) -> ConversationContextManager:
    return ConversationContextManager(clock=clock)
