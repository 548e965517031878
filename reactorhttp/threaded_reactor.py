"""Static HTTP server that hands every ready socket to a new thread."""

from __future__ import annotations

import logging
import os
import selectors
import socket
import sys
import threading
from typing import Callable, NoReturn, Optional, Sequence

from .single_reactor import init_listen_fd, parse_request_line

log = logging.getLogger(__name__)

_RECV_CHUNK = 1024
_REQUEST_MAX = 4096
_SELECT_TIMEOUT = 1.0
_USAGE = "usage: port path"

# Guards selector changes made from handler threads.
_selector_lock = threading.Lock()

Handler = Callable[[socket.socket, selectors.BaseSelector], object]


def _watch(selector: selectors.BaseSelector, sock: socket.socket) -> None:
    """Watch ``sock`` for reading unless it is already watched or closed."""
    if sock.fileno() < 0:
        return
    with _selector_lock:
        try:
            selector.get_key(sock)
        except KeyError:
            selector.register(sock, selectors.EVENT_READ)


def _forget(selector: selectors.BaseSelector, sock: socket.socket) -> bool:
    """Stop watching ``sock``; False if it was not watched."""
    with _selector_lock:
        try:
            selector.unregister(sock)
        except (KeyError, ValueError):
            return False
    return True


def _run_handler(
    handler: Handler, sock: socket.socket, selector: selectors.BaseSelector
) -> None:
    try:
        handler(sock, selector)
    except Exception:
        log.exception("handler %s failed", handler.__name__)
    log.debug("%s threadId: %d", handler.__name__, threading.get_ident())


def epoll_run(listener: socket.socket) -> NoReturn:
    """Wait for ready sockets forever and serve each in its own thread.

    A socket is not watched while its thread handles it, so each arrival
    is handled once; the thread watches it again when it is done.
    """
    with selectors.DefaultSelector() as selector:
        selector.register(listener, selectors.EVENT_READ)
        while True:
            for key, _ in selector.select(_SELECT_TIMEOUT):
                sock = key.fileobj
                if not _forget(selector, sock):
                    continue
                handler: Handler = (
                    accept_client if sock is listener else recv_http_request
                )
                threading.Thread(
                    target=_run_handler,
                    args=(handler, sock, selector),
                    daemon=True,
                ).start()


def accept_client(
    listener: socket.socket, selector: selectors.BaseSelector
) -> Optional[socket.socket]:
    """Accept a client, make it non-blocking and watch both sockets."""
    try:
        try:
            conn, _ = listener.accept()
        except OSError as exc:
            log.warning("accept failed: %s", exc)
            return None
        conn.setblocking(False)
        _watch(selector, conn)
        return conn
    finally:
        _watch(selector, listener)


def recv_http_request(conn: socket.socket, selector: selectors.BaseSelector) -> None:
    """Drain what the client sent and answer its request line.

    A closed peer is forgotten and its socket closed; otherwise the socket
    is watched again for the next request.
    """
    received = bytearray()
    total = 0
    while True:
        try:
            data = conn.recv(_RECV_CHUNK)
        except BlockingIOError:
            break
        except OSError as exc:
            log.warning("recv failed: %s", exc)
            _watch(selector, conn)
            return
        if not data:
            _forget(selector, conn)
            conn.close()
            return
        if total + len(data) < _REQUEST_MAX:
            received += data
        total += len(data)
    if received:
        end = received.find(b"\r\n")
        line = bytes(received if end < 0 else received[:end])
        try:
            parse_request_line(line.decode("utf-8", "surrogateescape"), conn)
        except (ValueError, OSError) as exc:
            log.warning("request failed: %s", exc)
    _watch(selector, conn)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Serve the directory ``path`` on ``port``: ``main([port, path])``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(_USAGE)
        return -1
    port = int(args[0])
    os.chdir(args[1])
    listener = init_listen_fd(port)
    try:
        epoll_run(listener)
    except KeyboardInterrupt:
        pass
    finally:
        listener.close()
    return 0