"""Growable byte buffer with separate read and write positions."""

from __future__ import annotations

import socket

_EXTRA_READ = 40960
_CRLF = b"\r\n"


class Buffer:
    """Byte buffer that is written at its tail and consumed from its head.

    Bytes between ``read_pos`` and ``write_pos`` are readable; the space
    after ``write_pos`` is writeable.  Already consumed space at the front
    is reused before the buffer grows.
    """

    def __init__(self, capacity: int = 10240) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.data = bytearray(capacity)
        self.read_pos = 0
        self.write_pos = 0

    @property
    def capacity(self) -> int:
        return len(self.data)

    def writeable_size(self) -> int:
        """Free space after the written data."""
        return self.capacity - self.write_pos

    def readable_size(self) -> int:
        """Number of bytes written but not yet read."""
        return self.write_pos - self.read_pos

    def extend_room(self, size: int) -> None:
        """Make sure at least ``size`` bytes can be written."""
        if self.writeable_size() >= size:
            return
        if self.read_pos + self.writeable_size() >= size:
            readable = self.readable_size()
            self.data[:readable] = self.data[self.read_pos:self.write_pos]
            self.read_pos = 0
            self.write_pos = readable
        else:
            self.data.extend(bytes(size))

    def append(self, data: bytes | bytearray | memoryview | str) -> None:
        """Copy ``data`` to the end of the buffer; text is UTF-8 encoded."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        size = len(data)
        if size <= 0:
            raise ValueError("cannot append empty data")
        self.extend_room(size)
        self.data[self.write_pos:self.write_pos + size] = data
        self.write_pos += size

    def socket_read(self, sock: socket.socket) -> int:
        """Receive what the socket has and append it; return the byte count.

        A return value of 0 means the peer closed the connection.
        """
        chunk = sock.recv(self.writeable_size() + _EXTRA_READ)
        if chunk:
            self.append(chunk)
        return len(chunk)

    def send_data(self, sock: socket.socket) -> int:
        """Send readable bytes and consume what was sent; return the count."""
        if self.readable_size() <= 0:
            return 0
        count = sock.send(bytes(self.data[self.read_pos:self.write_pos]))
        if count > 0:
            self.read_pos += count
        return count

    def find_crlf(self) -> int | None:
        """Offset of the first CRLF within the readable bytes, or None."""
        index = self.data.find(_CRLF, self.read_pos, self.write_pos)
        if index < 0:
            return None
        return index - self.read_pos

    def peek(self) -> bytes:
        """Readable bytes, without consuming them."""
        return bytes(self.data[self.read_pos:self.write_pos])

    def retrieve(self, size: int) -> bytes:
        """Consume and return ``size`` readable bytes."""
        if size < 0 or size > self.readable_size():
            raise ValueError(
                f"cannot retrieve {size} bytes, {self.readable_size()} readable"
            )
        out = bytes(self.data[self.read_pos:self.read_pos + size])
        self.read_pos += size
        return out