"""Multi-reactor HTTP server: a main loop accepts, worker loops serve."""

from __future__ import annotations

import argparse
import logging
import os
import socket
from typing import Optional, Sequence

from .channel import Channel, FDEvent
from .event_loop import ElemType, EventLoop
from .tcp_connection import TcpConnection
from .thread_pool import ThreadPool

log = logging.getLogger(__name__)

_BACKLOG = 128
_DEFAULT_PORT = 10000
_DEFAULT_THREADS = 4


class Listener:
    """A listening TCP socket on every interface."""

    def __init__(self, port: int) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", port))
            sock.listen(_BACKLOG)
        except OSError:
            sock.close()
            raise
        self.sock = sock
        self.lfd = sock.fileno()
        self.port: int = sock.getsockname()[1]

    def close(self) -> None:
        self.sock.close()


class TcpServer:
    """Accepts connections on the main loop and gives each to a worker loop.

    :meth:`run` must be called from the thread that created the server.
    """

    def __init__(self, port: int, thread_num: int) -> None:
        self.listener = Listener(port)
        self.main_loop = EventLoop()
        self.thread_pool = ThreadPool(self.main_loop, thread_num)
        self.thread_num = thread_num

    def accept_connection(self) -> Optional[TcpConnection]:
        """Accept one client and register it with the next worker loop."""
        try:
            conn, _ = self.listener.sock.accept()
        except OSError as exc:
            log.warning("accept failed: %s", exc)
            return None
        loop = self.thread_pool.take_worker_event_loop()
        return TcpConnection(conn, loop)

    def run(self) -> None:
        """Start the workers and serve until :meth:`stop` is called."""
        self.thread_pool.run()
        channel = Channel(
            self.listener.lfd, FDEvent.READ, read_callback=self.accept_connection
        )
        self.main_loop.add_task(channel, ElemType.ADD)
        try:
            self.main_loop.run()
        finally:
            self.thread_pool.stop()
            self.main_loop.close()
            self.listener.close()

    def stop(self) -> None:
        """Ask the server to stop; safe to call from any thread."""
        self.main_loop.quit()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="reactorhttp", description="Serve a directory over HTTP."
    )
    parser.add_argument("port", nargs="?", type=int, default=_DEFAULT_PORT)
    parser.add_argument("path", nargs="?", help="directory to serve")
    parser.add_argument("-t", "--threads", type=int, default=_DEFAULT_THREADS)
    args = parser.parse_args(argv)
    if args.path:
        os.chdir(args.path)
    server = TcpServer(args.port, args.threads)
    try:
        server.run()
    except KeyboardInterrupt:
        pass
    return 0