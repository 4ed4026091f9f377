from __future__ import annotations
"""Background execution of backend calls with dispatched completions."""
import logging
import threading
from typing import Callable, TypeVar

from .storage import StorageError

T = TypeVar("T")

DispatchFn = Callable[[Callable[[], None]], None]
SpawnFn = Callable[[Callable[[], None]], None]
ErrorFn = Callable[[Exception], None]
DoneFn = Callable[[], None]

LOGGER = logging.getLogger(__name__)


def start_daemon_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


class TaskRunner:
    """Runs work off the caller's thread and hands results back via ``dispatch``.

    ``dispatch`` hops back onto the UI thread (a Tk ``after`` or Qt queued
    call); the default invokes the callback directly on the worker thread.
    ``spawn`` decides where the work runs and defaults to a daemon thread.
    """

    def __init__(self, *, dispatch: DispatchFn | None = None, spawn: SpawnFn | None = None):
        self._dispatch = dispatch or (lambda func: func())
        self._spawn = spawn or start_daemon_thread

    def submit(
        self,
        work: Callable[[], T],
        *,
        on_success: Callable[[T], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
        description: str = "task",
    ) -> None:
        def task() -> None:
            try:
                result = work()
            except StorageError as exc:
                LOGGER.warning("%s failed: %s", description, exc)
                self._dispatch(lambda: on_error(exc))
            except Exception as exc:
                LOGGER.exception("Unexpected error during %s", description)
                self._dispatch(lambda: on_error(exc))
            else:
                self._dispatch(lambda: on_success(result))
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._spawn(task)


def run_inline(task: Callable[[], None]) -> None:
    task()


def synchronous_runner() -> TaskRunner:
    """Runner that completes every task before ``submit`` returns."""

    return TaskRunner(spawn=run_inline)
