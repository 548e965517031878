"""I/O multiplexers that watch channels and report which are ready."""

from __future__ import annotations

import abc
import select

from .channel import Channel, FDEvent

Ready = list[tuple[int, FDEvent]]

_EPOLL_MAX_EVENTS = 520
_POLL_MAX = 1024
_SELECT_MAX = 1024


class Dispatcher(abc.ABC):
    """Watches channels for the events they ask for.

    ``dispatch`` waits up to ``timeout`` seconds (``None`` blocks) and
    returns ``(fd, events)`` pairs for the descriptors that became ready.
    Removing a channel runs its destroy callback.
    """

    def __init__(self) -> None:
        pass

    @abc.abstractmethod
    def add(self, channel: Channel) -> None:
        """Start watching ``channel``."""

    @abc.abstractmethod
    def remove(self, channel: Channel) -> None:
        """Stop watching ``channel`` and run its destroy callback."""

    @abc.abstractmethod
    def modify(self, channel: Channel) -> None:
        """Update the events watched for ``channel``."""

    @abc.abstractmethod
    def dispatch(self, timeout: float | None) -> Ready:
        """Wait for events and return the ready descriptors."""

    @abc.abstractmethod
    def clear(self) -> None:
        """Release everything the dispatcher holds."""

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clear()

    @staticmethod
    def _destroy(channel: Channel) -> None:
        if channel.destroy_callback is not None:
            channel.destroy_callback()


class EpollDispatcher(Dispatcher):
    """Dispatcher built on Linux epoll."""

    def __init__(self) -> None:
        super().__init__()
        self._epoll = select.epoll()

    @staticmethod
    def _mask(channel: Channel) -> int:
        mask = 0
        if channel.events & FDEvent.READ:
            mask |= select.EPOLLIN
        if channel.events & FDEvent.WRITE:
            mask |= select.EPOLLOUT
        return mask

    def add(self, channel: Channel) -> None:
        self._epoll.register(channel.fd, self._mask(channel))

    def remove(self, channel: Channel) -> None:
        self._epoll.unregister(channel.fd)
        self._destroy(channel)

    def modify(self, channel: Channel) -> None:
        self._epoll.modify(channel.fd, self._mask(channel))

    def dispatch(self, timeout: float | None) -> Ready:
        wait = -1 if timeout is None else timeout
        ready: Ready = []
        for fd, mask in self._epoll.poll(wait, _EPOLL_MAX_EVENTS):
            if mask & (select.EPOLLERR | select.EPOLLHUP):
                continue
            events = FDEvent(0)
            if mask & select.EPOLLIN:
                events |= FDEvent.READ
            if mask & select.EPOLLOUT:
                events |= FDEvent.WRITE
            if events:
                ready.append((fd, events))
        return ready

    def clear(self) -> None:
        self._epoll.close()


class PollDispatcher(Dispatcher):
    """Dispatcher built on poll(), limited to 1024 descriptors."""

    def __init__(self) -> None:
        super().__init__()
        self._poll = select.poll()
        self._fds: dict[int, int] = {}

    @staticmethod
    def _mask(channel: Channel) -> int:
        mask = 0
        if channel.events & FDEvent.READ:
            mask |= select.POLLIN
        if channel.events & FDEvent.WRITE:
            mask |= select.POLLOUT
        return mask

    def add(self, channel: Channel) -> None:
        if channel.fd not in self._fds and len(self._fds) >= _POLL_MAX:
            raise ValueError(f"poll dispatcher is full ({_POLL_MAX} descriptors)")
        mask = self._mask(channel)
        self._poll.register(channel.fd, mask)
        self._fds[channel.fd] = mask

    def remove(self, channel: Channel) -> None:
        found = self._fds.pop(channel.fd, None) is not None
        if found:
            self._poll.unregister(channel.fd)
        self._destroy(channel)
        if not found:
            raise KeyError(channel.fd)

    def modify(self, channel: Channel) -> None:
        if channel.fd not in self._fds:
            raise KeyError(channel.fd)
        mask = self._mask(channel)
        self._poll.modify(channel.fd, mask)
        self._fds[channel.fd] = mask

    def dispatch(self, timeout: float | None) -> Ready:
        wait = None if timeout is None else timeout * 1000
        ready: Ready = []
        for fd, mask in self._poll.poll(wait):
            events = FDEvent(0)
            if mask & select.POLLIN:
                events |= FDEvent.READ
            if mask & select.POLLOUT:
                events |= FDEvent.WRITE
            if events:
                ready.append((fd, events))
        return ready

    def clear(self) -> None:
        for fd in list(self._fds):
            self._poll.unregister(fd)
        self._fds.clear()


class SelectDispatcher(Dispatcher):
    """Dispatcher built on select(), for descriptors below 1024."""

    def __init__(self) -> None:
        super().__init__()
        self._read: set[int] = set()
        self._write: set[int] = set()

    def _set(self, channel: Channel) -> None:
        if channel.events & FDEvent.READ:
            self._read.add(channel.fd)
        if channel.events & FDEvent.WRITE:
            self._write.add(channel.fd)

    def _clear(self, channel: Channel) -> None:
        self._read.discard(channel.fd)
        self._write.discard(channel.fd)

    def add(self, channel: Channel) -> None:
        if channel.fd >= _SELECT_MAX:
            raise ValueError(f"descriptor {channel.fd} exceeds select limit")
        self._set(channel)

    def remove(self, channel: Channel) -> None:
        self._clear(channel)
        self._destroy(channel)

    def modify(self, channel: Channel) -> None:
        self._clear(channel)
        self._set(channel)

    def dispatch(self, timeout: float | None) -> Ready:
        readable, writeable, _ = select.select(
            sorted(self._read), sorted(self._write), [], timeout
        )
        events: dict[int, FDEvent] = {}
        for fd in readable:
            events[fd] = events.get(fd, FDEvent(0)) | FDEvent.READ
        for fd in writeable:
            events[fd] = events.get(fd, FDEvent(0)) | FDEvent.WRITE
        return sorted(events.items())

    def clear(self) -> None:
        self._read.clear()
        self._write.clear()


def default_dispatcher() -> Dispatcher:
    """The best dispatcher the platform offers: epoll, then poll, then select."""
    if hasattr(select, "epoll"):
        return EpollDispatcher()
    if hasattr(select, "poll"):
        return PollDispatcher()
    return SelectDispatcher()