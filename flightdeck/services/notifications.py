"""
Change Notification Module

The remote store signals "project changed" without saying what changed.
Signals arriving in bursts are coalesced: the refresh callback runs once,
after the debounce window has passed without a new signal.
"""
import logging
import threading
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)


class RefreshDebouncer:
    """
    Debounce change signals into refresh calls.

    Args:
        refresh: Called with the set of project IDs signalled in the window
            (empty when a signal carried no ID)
        delay: Debounce window in seconds
        timer_factory: Builds the timer; threading.Timer by default
    """

    def __init__(
        self,
        refresh: Callable[[Set[str]], None],
        delay: float = 0.5,
        timer_factory: Callable = threading.Timer,
    ):
        self.refresh = refresh
        self.delay = delay
        self.timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer = None
        self._pending: Set[str] = set()

    def signal(self, project_id: Optional[str] = None) -> None:
        with self._lock:
            if project_id:
                self._pending.add(project_id)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self.timer_factory(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        with self._lock:
            pending, self._pending = self._pending, set()
            self._timer = None
        logger.debug("Refreshing after change signal (%d projects)", len(pending))
        try:
            self.refresh(pending)
        except Exception:
            logger.exception("Refresh after change signal failed")

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = set()
