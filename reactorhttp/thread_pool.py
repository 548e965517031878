"""A fixed set of worker threads handed out round-robin."""

from __future__ import annotations

import threading
from typing import Optional

from .event_loop import EventLoop
from .worker_thread import WorkerThread


class ThreadPool:
    """Worker event loops for the main loop to hand connections to.

    With no workers, the main loop itself takes every connection.
    """

    def __init__(self, main_loop: EventLoop, thread_num: int) -> None:
        if thread_num < 0:
            raise ValueError("thread_num must not be negative")
        self.main_loop = main_loop
        self.index = 0
        self.is_start = False
        self.thread_num = thread_num
        self.workers: list[WorkerThread] = []

    def _check_thread(self) -> None:
        if self.main_loop.thread_id != threading.get_ident():
            raise RuntimeError("thread pool must be used from the main loop's thread")

    def run(self) -> None:
        """Start every worker thread."""
        if self.is_start:
            raise RuntimeError("thread pool is already running")
        self._check_thread()
        self.is_start = True
        for index in range(self.thread_num):
            worker = WorkerThread(index)
            worker.run()
            self.workers.append(worker)

    def take_worker_event_loop(self) -> EventLoop:
        """Event loop of the next worker in turn, or the main loop if none."""
        if not self.is_start:
            raise RuntimeError("thread pool is not running")
        self._check_thread()
        if not self.workers:
            return self.main_loop
        loop = self.workers[self.index].loop
        self.index = (self.index + 1) % len(self.workers)
        assert loop is not None
        return loop

    def stop(self, timeout: Optional[float] = None) -> None:
        """Quit every worker loop and wait for the threads to end."""
        for worker in self.workers:
            worker.stop(timeout)