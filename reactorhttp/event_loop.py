"""Reactor event loop: a dispatcher, the channels it watches and a task queue."""

from __future__ import annotations

import enum
import logging
import os
import socket
import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional

from .channel import Channel, ChannelMap, FDEvent
from .dispatcher import Dispatcher, default_dispatcher

log = logging.getLogger(__name__)

_DISPATCH_TIMEOUT = 2
_WAKEUP_MESSAGE = b"wakeup"
_WAKEUP_READ_SIZE = 256


class ElemType(enum.IntEnum):
    """What a queued task does with its channel."""

    ADD = 0
    DELETE = 1
    MODIFY = 2


@dataclass(frozen=True)
class _Task:
    channel: Channel
    task_type: ElemType


class EventLoop:
    """A reactor owned by one thread.

    Channel changes are queued with :meth:`add_task`.  Tasks queued by the
    owning thread run at once; tasks queued by other threads wake the loop,
    which runs them after its current dispatch.
    """

    def __init__(
        self,
        thread_name: Optional[str] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.is_quit = False
        self.dispatcher = dispatcher if dispatcher is not None else default_dispatcher()
        self.channel_map = ChannelMap(128)
        self.thread_id = threading.get_ident()
        self.thread_name = "MainThread" if thread_name is None else thread_name
        self._lock = threading.Lock()
        self._tasks: deque[_Task] = deque()

        self._wake_writer, self._wake_reader = socket.socketpair()
        self._wake_writer.setblocking(False)
        self._wake_reader.setblocking(False)
        wake_channel = Channel(
            self._wake_reader.fileno(),
            FDEvent.READ,
            read_callback=self._read_local_message,
        )
        self.add_task(wake_channel, ElemType.ADD)

    @property
    def wakeup_fd(self) -> int:
        """Descriptor the loop watches to be woken from other threads."""
        return self._wake_reader.fileno()

    def _in_owner_thread(self) -> bool:
        return threading.get_ident() == self.thread_id

    def _wakeup(self) -> None:
        try:
            self._wake_writer.send(_WAKEUP_MESSAGE)
        except BlockingIOError:
            pass  # a wakeup is already pending

    def _read_local_message(self) -> None:
        try:
            self._wake_reader.recv(_WAKEUP_READ_SIZE)
        except BlockingIOError:
            pass

    def run(self) -> None:
        """Dispatch events and run queued tasks until :meth:`quit` is called."""
        if not self._in_owner_thread():
            raise RuntimeError(
                f"event loop {self.thread_name!r} must run in the thread that created it"
            )
        while not self.is_quit:
            for fd, events in self.dispatcher.dispatch(_DISPATCH_TIMEOUT):
                if fd in self.channel_map:
                    self.activate(fd, events)
            self.process_tasks()

    def quit(self) -> None:
        """Ask the loop to stop after its current iteration."""
        self.is_quit = True
        if not self._in_owner_thread():
            self._wakeup()

    def activate(self, fd: int, event: FDEvent) -> None:
        """Run the callbacks of the channel on ``fd`` for ``event``."""
        if fd < 0:
            raise ValueError(f"invalid file descriptor {fd}")
        channel = self.channel_map.get(fd)
        if channel is None:
            raise KeyError(fd)
        assert channel.fd == fd
        if event & FDEvent.READ and channel.read_callback is not None:
            channel.read_callback()
        if event & FDEvent.WRITE and channel.write_callback is not None:
            channel.write_callback()

    def add_task(self, channel: Channel, task_type: ElemType) -> None:
        """Queue a change to ``channel``; run it now if in the owner thread."""
        with self._lock:
            self._tasks.append(_Task(channel, ElemType(task_type)))
        if self._in_owner_thread():
            self.process_tasks()
        else:
            self._wakeup()

    def process_tasks(self) -> None:
        """Run every queued task in the order it was queued."""
        while True:
            with self._lock:
                if not self._tasks:
                    return
                task = self._tasks.popleft()
            if task.task_type is ElemType.ADD:
                self.add(task.channel)
            elif task.task_type is ElemType.DELETE:
                self.remove(task.channel)
            elif task.task_type is ElemType.MODIFY:
                self.modify(task.channel)

    def add(self, channel: Channel) -> None:
        """Store ``channel`` and start watching it, unless its fd is taken."""
        fd = channel.fd
        if fd >= self.channel_map.size:
            self.channel_map.make_room(fd + 1)
        if fd not in self.channel_map:
            self.channel_map.set(fd, channel)
            self.dispatcher.add(channel)

    def remove(self, channel: Channel) -> None:
        """Stop watching ``channel``; the dispatcher runs its destroy callback."""
        if channel.fd >= self.channel_map.size:
            raise KeyError(channel.fd)
        self.dispatcher.remove(channel)

    def modify(self, channel: Channel) -> None:
        """Update the events watched for a stored channel."""
        if channel.fd >= self.channel_map.size or channel.fd not in self.channel_map:
            raise KeyError(channel.fd)
        self.dispatcher.modify(channel)

    def destroy_channel(self, channel: Channel) -> None:
        """Forget ``channel`` and close its descriptor."""
        self.channel_map.pop(channel.fd)
        try:
            os.close(channel.fd)
        except OSError as exc:
            log.debug("closing fd %d failed: %s", channel.fd, exc)

    def close(self) -> None:
        """Release the dispatcher and the wakeup sockets."""
        self.dispatcher.clear()
        self._wake_writer.close()
        self._wake_reader.close()

    def __enter__(self) -> "EventLoop":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()