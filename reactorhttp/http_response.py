"""HTTP response: status line, headers and a body writer."""

from __future__ import annotations

import enum
import socket
from typing import Callable, Optional

from .buffer import Buffer

BodyWriter = Callable[[str, Buffer, Optional[socket.socket]], None]


class HttpStatusCode(enum.IntEnum):
    UNKNOWN = 0
    OK = 200
    MOVED_PERMANENTLY = 301
    MOVED_TEMPORARILY = 302
    BAD_REQUEST = 400
    NOT_FOUND = 404


class HttpResponse:
    """A response being assembled for one request.

    ``send_data_func`` writes the body; it is called with ``file_name``,
    the send buffer and the client socket.
    """

    def __init__(self) -> None:
        self.status_code: int = HttpStatusCode.UNKNOWN
        self.status_msg = ""
        self.headers: list[tuple[str, str]] = []
        self.send_data_func: Optional[BodyWriter] = None
        self.file_name = ""

    def add_header(self, key: Optional[str], value: Optional[str]) -> None:
        """Append a header; a missing key or value is ignored."""
        if key is None or value is None:
            return
        self.headers.append((key, value))

    def prepare_msg(self, send_buf: Buffer, sock: Optional[socket.socket]) -> None:
        """Write the status line, headers and body into ``send_buf``.

        The head is sent on ``sock`` before the body is written; with no
        socket everything stays in the buffer.
        """
        send_buf.append(f"HTTP/1.1 {int(self.status_code)} {self.status_msg}\r\n")
        for key, value in self.headers:
            send_buf.append(f"{key}: {value}\r\n")
        send_buf.append("\r\n")
        if sock is not None:
            send_buf.send_data(sock)
        if self.send_data_func is not None:
            self.send_data_func(self.file_name, send_buf, sock)