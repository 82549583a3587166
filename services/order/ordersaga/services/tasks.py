import logging
import threading
import time
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)

class TaskLauncher:
    """
    Runs side effects (push events, mail) on daemon threads.

    The caller gets nothing back to wait on and failures only reach the log.
    Live threads are tracked so shutdown can drain whatever is in flight.
    """

    def __init__(self):
        self._threads: Set[threading.Thread] = set()
        self._lock = threading.Lock()

    def launch(self, name: str, fn: Callable, *args, **kwargs) -> None:
        def _run():
            try:
                fn(*args, **kwargs)
            except Exception:
                logger.warning("detached task %s failed", name, exc_info=True, extra={"task": name})
            finally:
                with self._lock:
                    self._threads.discard(threading.current_thread())

        t = threading.Thread(target=_run, name=f"detached-{name}", daemon=True)
        # started under the lock so wait() never sees an unstarted thread
        with self._lock:
            self._threads.add(t)
            t.start()

    def pending(self) -> int:
        with self._lock:
            return len(self._threads)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join in-flight tasks. False if some were still running at the deadline."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                running = list(self._threads)
            if not running:
                return True
            for t in running:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                t.join(remaining)
            if deadline is not None and time.monotonic() >= deadline:
                with self._lock:
                    return not self._threads
