"""Single-reactor static HTTP server driven by one selector."""

from __future__ import annotations

import logging
import os
import select
import selectors
import socket
import stat
from typing import NoReturn, Optional, Union

from .buffer import Buffer
from .http_request import decode_msg, get_file_type
from .http_request import send_dir as _write_dir

log = logging.getLogger(__name__)

_BACKLOG = 128
_RECV_CHUNK = 1024
_REQUEST_MAX = 4096
_FILE_CHUNK = 65536
_WHITESPACE = " \t\n\v\f\r"
_PLAIN_TEXT = "text/plain; charset=utf-8"


def init_listen_fd(port: int) -> socket.socket:
    """A listening TCP socket on every interface, with address reuse."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("", port))
        sock.listen(_BACKLOG)
    except OSError:
        sock.close()
        raise
    return sock


def epoll_run(listener: socket.socket) -> NoReturn:
    """Accept clients and answer their requests forever."""
    with selectors.DefaultSelector() as selector:
        selector.register(listener, selectors.EVENT_READ)
        while True:
            for key, _ in selector.select():
                if key.fileobj is listener:
                    accept_client(listener, selector)
                else:
                    recv_http_request(key.fileobj, selector)


def accept_client(
    listener: socket.socket, selector: selectors.BaseSelector
) -> Optional[socket.socket]:
    """Accept a client, make it non-blocking and watch it for reading."""
    try:
        conn, _ = listener.accept()
    except OSError as exc:
        log.warning("accept failed: %s", exc)
        return None
    conn.setblocking(False)
    selector.register(conn, selectors.EVENT_READ)
    return conn


def recv_http_request(conn: socket.socket, selector: selectors.BaseSelector) -> None:
    """Drain what the client sent and answer its request line.

    A closed peer is unregistered and its socket closed.
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
            return
        if not data:
            selector.unregister(conn)
            conn.close()
            return
        if total + len(data) < _REQUEST_MAX:
            received += data
        total += len(data)
    end = received.find(b"\r\n")
    line = bytes(received if end < 0 else received[:end])
    try:
        parse_request_line(line.decode("utf-8", "surrogateescape"), conn)
    except (ValueError, OSError) as exc:
        log.warning("request failed: %s", exc)


def _parse_line(line: str) -> tuple[str, str]:
    space = line.find(" ")
    method = line if space < 0 else line[:space]
    rest = "" if space < 0 else line[space:].lstrip(_WHITESPACE)
    end = rest.find(" ")
    path = rest if end < 0 else rest[:end]
    if not method or not path:
        raise ValueError(f"malformed request line: {line!r}")
    return method, path


def parse_request_line(line: str, conn: socket.socket) -> bool:
    """Answer a GET request line; False for any other method."""
    method, path = _parse_line(line)
    log.debug("method: %s, path: %s", method, path)
    if method.lower() != "get":
        return False
    path = decode_msg(path)
    file = "./" if path == "/" else path[1:]
    try:
        st = os.stat(file)
    except OSError:
        send_head_msg(conn, 404, "Not Found", _file_type(".html"), -1)
        send_file("404.html", conn)
        return True
    if stat.S_ISDIR(st.st_mode):
        send_head_msg(conn, 200, "OK", _file_type(".html"), -1)
        send_dir(file, conn)
    else:
        send_head_msg(conn, 200, "OK", _file_type(file), st.st_size)
        send_file(file, conn)
    return True


def _file_type(name: str) -> str:
    dot = name.rfind(".")
    if dot >= 0 and name[dot:] == ".pdf":
        return _PLAIN_TEXT
    return get_file_type(name)


def _send_all(conn: socket.socket, data: Union[bytes, bytearray]) -> None:
    view = memoryview(data)
    while view:
        try:
            sent = conn.send(view)
        except BlockingIOError:
            select.select([], [conn], [])
            continue
        view = view[sent:]


def send_head_msg(
    conn: socket.socket, status: int, descr: str, content_type: str, length: int
) -> None:
    """Send the status line and the content-type and content-length headers."""
    head = (
        f"http/1.1 {status} {descr}\r\n"
        f"content-type: {content_type}\r\n"
        f"content-length: {length}\r\n\r\n"
    )
    _send_all(conn, head.encode("utf-8", "surrogateescape"))


def send_file(file_name: str, conn: socket.socket) -> bool:
    """Send a file's contents; False if it cannot be opened."""
    try:
        handle = open(file_name, "rb")
    except OSError as exc:
        log.warning("cannot open %s: %s", file_name, exc)
        return False
    with handle:
        for chunk in iter(lambda: handle.read(_FILE_CHUNK), b""):
            _send_all(conn, chunk)
    return True


def send_dir(dir_name: str, conn: socket.socket) -> None:
    """Send an HTML table listing a directory's entries and sizes."""
    page = Buffer(_REQUEST_MAX)
    _write_dir(dir_name, page, None)
    _send_all(conn, page.peek())