"""One client connection: its channel, buffers and HTTP state."""

from __future__ import annotations

import logging
import socket

from .buffer import Buffer
from .channel import Channel, FDEvent
from .event_loop import ElemType, EventLoop
from .http_request import HttpRequest
from .http_response import HttpResponse

log = logging.getLogger(__name__)

_BUFFER_SIZE = 10240
_BAD_REQUEST = "Http/1.1 400 Bad Request\r\n\r\n"


class TcpConnection:
    """Serves one HTTP request on ``sock`` from the given event loop.

    The connection registers itself with the loop on creation and is
    removed from it once the request has been answered.
    """

    def __init__(self, sock: socket.socket, loop: EventLoop) -> None:
        self.sock = sock
        self.loop = loop
        fd = sock.fileno()
        self.name = f"TcpConnection-{fd}"
        self.read_buf = Buffer(_BUFFER_SIZE)
        self.write_buf = Buffer(_BUFFER_SIZE)
        self.request = HttpRequest()
        self.response = HttpResponse()
        self.closed = False
        self.channel = Channel(
            fd,
            FDEvent.READ,
            read_callback=self.process_read,
            write_callback=self.process_write,
            destroy_callback=self.destroy,
        )
        loop.add_task(self.channel, ElemType.ADD)

    def process_read(self) -> None:
        """Read the request, answer it, then ask the loop to drop the connection."""
        try:
            count = self.read_buf.socket_read(self.sock)
        except OSError as exc:
            log.debug("%s: receive failed: %s", self.name, exc)
            count = 0
        if count > 0:
            try:
                ok = self.request.parse_request(
                    self.read_buf, self.response, self.write_buf, self.sock
                )
            except ValueError as exc:
                log.debug("%s: bad request: %s", self.name, exc)
                ok = False
            if not ok:
                self.write_buf.append(_BAD_REQUEST)
                self.write_buf.send_data(self.sock)
        self.loop.add_task(self.channel, ElemType.DELETE)

    def process_write(self) -> None:
        """Send pending data; once all is sent stop watching and drop the connection."""
        count = self.write_buf.send_data(self.sock)
        if count > 0 and self.write_buf.readable_size() == 0:
            self.channel.write_event_enable(False)
            self.loop.add_task(self.channel, ElemType.MODIFY)
            self.loop.add_task(self.channel, ElemType.DELETE)

    def destroy(self) -> None:
        """Close the connection if nothing is left unread or unsent."""
        if self.closed:
            return
        if self.read_buf.readable_size() == 0 and self.write_buf.readable_size() == 0:
            self.sock.detach()
            self.loop.destroy_channel(self.channel)
            self.closed = True
            log.debug("connection closed, resources released: %s", self.name)
        else:
            log.debug("%s: data pending, connection kept", self.name)