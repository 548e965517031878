"""Channels pairing a file descriptor with its events and callbacks."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

Callback = Callable[[], object]


class FDEvent(enum.IntFlag):
    """Events a channel can be watched for."""

    TIMEOUT = 0x01
    READ = 0x02
    WRITE = 0x04


@dataclass(eq=False)
class Channel:
    """A file descriptor, the events to watch on it and what to call."""

    fd: int
    events: FDEvent
    read_callback: Optional[Callback] = None
    write_callback: Optional[Callback] = None
    destroy_callback: Optional[Callback] = None

    def __post_init__(self) -> None:
        self.events = FDEvent(self.events)

    def write_event_enable(self, flag: bool) -> None:
        """Start or stop watching for writeability."""
        if flag:
            self.events |= FDEvent.WRITE
        else:
            self.events &= ~FDEvent.WRITE

    def is_write_event_enabled(self) -> bool:
        return bool(self.events & FDEvent.WRITE)


class ChannelMap:
    """Channels indexed by file descriptor.

    ``size`` is the number of slots; it doubles whenever a larger
    descriptor has to be stored.
    """

    def __init__(self, size: int = 128) -> None:
        if size < 0:
            raise ValueError("size must not be negative")
        self.size = size
        self._channels: dict[int, Channel] = {}

    def make_room(self, new_size: int) -> None:
        """Grow, by doubling, until there are at least ``new_size`` slots."""
        if self.size >= new_size:
            return
        size = max(self.size, 1)
        while size < new_size:
            size *= 2
        self.size = size

    def get(self, fd: int) -> Channel | None:
        return self._channels.get(fd)

    def set(self, fd: int, channel: Channel) -> None:
        if fd < 0:
            raise ValueError(f"invalid file descriptor {fd}")
        self.make_room(fd + 1)
        self._channels[fd] = channel

    def pop(self, fd: int) -> Channel | None:
        return self._channels.pop(fd, None)

    def clear(self) -> None:
        self._channels.clear()
        self.size = 0

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, fd: object) -> bool:
        return fd in self._channels

    def __iter__(self) -> Iterator[int]:
        return iter(self._channels)