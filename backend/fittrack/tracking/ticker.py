import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Calls `callback` every `interval` seconds on a daemon thread until cancelled.

    Once started the timer keeps firing regardless of what the callback does
    with the tick; callers gate their own work.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "fittrack-ticker"):
        self.interval = interval
        self.callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        # No join: cancel() is called while the session lock is held and the
        # tick callback needs that lock. The thread exits at its next wakeup.
        self._stop.set()

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("tick callback failed; timer stays armed")
