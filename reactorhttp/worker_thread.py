"""A thread that owns and runs its own event loop."""

from __future__ import annotations

import threading
from typing import Optional

from .event_loop import EventLoop


class WorkerThread:
    """Runs an :class:`EventLoop` in a dedicated daemon thread.

    :meth:`run` starts the thread and returns once the loop exists, so
    ``loop`` can be used straight away by the caller.
    """

    def __init__(self, index: int) -> None:
        self.name = f"SubThread-{index}"
        self.loop: Optional[EventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self._cond = threading.Condition()
        self._error: Optional[BaseException] = None

    def _running(self) -> None:
        try:
            loop = EventLoop(self.name)
        except BaseException as exc:
            with self._cond:
                self._error = exc
                self._cond.notify_all()
            return
        with self._cond:
            self.loop = loop
            self._cond.notify_all()
        try:
            loop.run()
        finally:
            loop.close()

    def run(self) -> None:
        """Start the thread and wait until its event loop has been created."""
        if self.thread is not None:
            raise RuntimeError(f"worker {self.name!r} is already running")
        self.thread = threading.Thread(target=self._running, name=self.name, daemon=True)
        self.thread.start()
        with self._cond:
            self._cond.wait_for(lambda: self.loop is not None or self._error is not None)
        if self._error is not None:
            raise RuntimeError(f"worker {self.name!r} failed to start") from self._error

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the loop to quit and wait for the thread to end."""
        if self.thread is None or not self.thread.is_alive():
            return
        if self.loop is not None:
            self.loop.quit()
        self.thread.join(timeout)