import concurrent.futures
import logging
import threading
from typing import Any, Callable, List, Optional

from config.constants import DEFAULT_CONFIG

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Detached work submitted from a request path.

    Contract: the submitter never waits on the task. An exception raised by
    the task is logged at debug level and discarded; it never reaches the
    caller that submitted it. ``drain()`` exists for shutdown and for callers
    that want an install-style "wait until" on everything pending.
    """

    def __init__(self, max_workers: int = DEFAULT_CONFIG["background_workers"]):
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="swcache-bg"
        )
        self._pending: List[concurrent.futures.Future] = []
        self._lock = threading.Lock()
        self.failures = 0
        self.completed = 0

    def submit(self, label: str, fn: Callable[..., Any], *args, **kwargs) -> Optional[concurrent.futures.Future]:
        def _run():
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                with self._lock:
                    self.failures += 1
                logger.debug(f"Background task '{label}' failed: {e}")
                return None
            with self._lock:
                self.completed += 1
            return result

        try:
            fut = self._executor.submit(_run)
        except RuntimeError as e:
            # pool already shut down: the work is abandoned, as a host abort would
            logger.debug(f"Background task '{label}' dropped: {e}")
            return None

        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(fut)
        return fut

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for f in self._pending if not f.done())

    def drain(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            futures = list(self._pending)
        done, not_done = concurrent.futures.wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
