"""
Background eviction of idle conversation contexts
"""

import threading
from typing import Any, Iterable, Optional
import logging

from .manager import ConversationContextManager

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """
    Calls ``ConversationContextManager.cleanup()`` on a fixed interval from a
    daemon thread, along with ``cleanup()`` on any ``extra_targets`` (such as
    the rate limiter). Owned by the process composition root, which must call
    ``stop()`` on shutdown.
    """

    def __init__(self, manager: ConversationContextManager, interval_seconds: float = 3600,
                 extra_targets: Iterable[Any] = ()):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.extra_targets = list(extra_targets)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the cleanup loop"""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="context-cleanup", daemon=True
        )
        self._thread.start()
        logger.info(f"Context cleanup scheduled every {self.interval_seconds}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to exit and wait for the thread"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Context cleanup stopped")

    def run_once(self) -> int:
        """Run a single cleanup tick in the calling thread; returns contexts evicted"""
        evicted = self.manager.cleanup()
        for target in self.extra_targets:
            target.cleanup()
        return evicted

    def _run_loop(self) -> None:
        # Event.wait returns True once stop() is called
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Context cleanup tick failed")
