"""Worker pool for proof requests and the serialized callback thread.

Every verifier shares one bounded pool so the number of concurrent outbound
connections stays small no matter how many trades are being verified. Results
are then handed to a ``UserThread``, a single-threaded context on which all
callbacks and re-scheduling decisions run one after another.
"""

import atexit
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Protocol, Set

logger = logging.getLogger(__name__)

MAX_WORKERS = 3
QUEUE_DEPTH = 5


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class CallbackSink(Protocol):
    def execute(self, fn: Callable[[], None]) -> None: ...

    def run_after(self, fn: Callable[[], None], delay_sec: float) -> Cancellable: ...


class TaskSubmitter(Protocol):
    def submit(self, fn: Callable, *args, **kwargs) -> Future: ...


class BoundedExecutor:
    """ThreadPoolExecutor whose submit() blocks once workers and queue are full.

    Idle workers are never reaped (ThreadPoolExecutor has no keep-alive); at
    most max_workers threads stay parked.
    """

    def __init__(self, name: str, max_workers: int = MAX_WORKERS, queue_depth: int = QUEUE_DEPTH):
        self.name = name
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(max_workers + queue_depth)

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        self._slots.acquire()
        try:
            future = self._pool.submit(fn, *args, **kwargs)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _f: self._slots.release())
        return future

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down %s", self.name)
        self._pool.shutdown(wait=wait)


class UserThread:
    """Runs callbacks one at a time on a dedicated thread."""

    def __init__(self, name: str = "UserThread"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._timers_lock = threading.Lock()
        self._timers: Set[threading.Timer] = set()
        self._shut_down = False

    def _run(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            logger.exception("Error in callback on %s", self.name)

    def execute(self, fn: Callable[[], None]) -> None:
        if self._shut_down:
            logger.warning("%s is shut down, dropping callback", self.name)
            return
        self._executor.submit(self._run, fn)

    def _fire(self, timer: threading.Timer, fn: Callable[[], None]) -> None:
        with self._timers_lock:
            self._timers.discard(timer)
        self.execute(fn)

    def run_after(self, fn: Callable[[], None], delay_sec: float) -> threading.Timer:
        with self._timers_lock:
            if self._shut_down:
                raise RuntimeError(f"{self.name} is shut down")
            timer = threading.Timer(delay_sec, lambda: self._fire(timer, fn))
            timer.daemon = True
            self._timers.add(timer)
        timer.start()
        return timer

    def shutdown(self, wait: bool = True) -> None:
        with self._timers_lock:
            self._shut_down = True
            timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=wait)


_lock = threading.Lock()
_proof_executor: Optional[BoundedExecutor] = None
_user_thread: Optional[UserThread] = None


def get_proof_executor() -> BoundedExecutor:
    """Process-wide pool for proof requests, shut down at interpreter exit."""
    global _proof_executor
    with _lock:
        if _proof_executor is None:
            _proof_executor = BoundedExecutor("XmrTransferProofRequester")
            atexit.register(_proof_executor.shutdown, False)
        return _proof_executor


def get_user_thread() -> UserThread:
    global _user_thread
    with _lock:
        if _user_thread is None:
            _user_thread = UserThread()
            atexit.register(_user_thread.shutdown, False)
        return _user_thread
