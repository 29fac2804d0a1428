"""
Background job handles.

Crawls, query refreshes and open actions run on a shared thread pool. Each
submission returns a JobHandle that the control thread polls every tick;
workers never touch session state directly. Cancellation is cooperative:
the worker receives a threading.Event and is expected to check it.
"""

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class JobState(Enum):
    """Lifecycle states of a background job."""
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class JobHandle:
    """
    Handle to one background job.

    A job that was cancelled, or whose worker returned None, never exposes a
    result. The result is only readable once the state is COMPLETED.
    """

    def __init__(self, name: str, generation: int, future: Future, cancel_event: threading.Event):
        self.name = name
        self.generation = generation
        self._future = future
        self._cancel_event = cancel_event

    def cancel(self) -> None:
        """Ask the worker to stop; a job not yet started is dropped."""
        self._cancel_event.set()
        self._future.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._future.done()

    @property
    def state(self) -> JobState:
        if self._future.cancelled():
            return JobState.CANCELLED
        if not self._future.done():
            return JobState.RUNNING
        if self._future.exception() is not None:
            return JobState.FAILED
        if self._cancel_event.is_set() or self._future.result() is None:
            return JobState.CANCELLED
        return JobState.COMPLETED

    @property
    def result(self) -> Any:
        """The worker's return value when COMPLETED, otherwise None."""
        if self.state is not JobState.COMPLETED:
            return None
        return self._future.result()

    @property
    def error(self) -> Optional[BaseException]:
        if self._future.cancelled() or not self._future.done():
            return None
        return self._future.exception()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the job finishes. Returns False on timeout."""
        try:
            self._future.exception(timeout=timeout)
        except CancelledError:
            return True
        except FutureTimeoutError:
            return False
        return True

    def __repr__(self) -> str:
        return f"JobHandle({self.name!r}, generation={self.generation}, state={self.state.value})"


class JobRunner:
    """
    Submits workers to a thread pool and wraps them in JobHandles.

    Args:
        max_workers: Thread pool size
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="filescout-job")

    def submit(self, name: str, generation: int,
               worker: Callable[[threading.Event], Any]) -> JobHandle:
        """
        Start a worker in the background.

        Args:
            name: Job name used in logs
            generation: Generation tag the caller uses to detect staleness
            worker: Callable receiving the job's cancel event

        Returns:
            Handle for polling and cancelling the job
        """
        cancel_event = threading.Event()

        def run() -> Any:
            try:
                return worker(cancel_event)
            except Exception:
                logger.exception(f"Background job {name} (generation {generation}) failed")
                raise

        future = self._executor.submit(run)
        logger.debug(f"Started job {name} (generation {generation})")
        return JobHandle(name, generation, future, cancel_event)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
