"""HTTP request parsing and static file / directory responses."""

from __future__ import annotations

import enum
import logging
import os
import socket
import stat
from typing import Optional

from .buffer import Buffer
from .http_response import HttpResponse, HttpStatusCode

log = logging.getLogger(__name__)

_READ_CHUNK = 1024
_HEX_DIGITS = "0123456789abcdefABCDEF"
_PLAIN_TEXT = "text/plain; charset=utf-8"

_MIME_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".htm": "text/html; charset=utf-8",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".png": "image/png",
    ".css": "text/css",
    ".au": "audio/basic",
    ".wav": "audio/wav",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".qt": "video/quicktime",
    ".mpeg": "video/mpeg",
    ".mpe": "video/mpeg",
    ".vrml": "model/vrml",
    ".wrl": "model/vrml",
    ".midi": "audio/midi",
    ".mid": "audio/midi",
    ".mp3": "audio/mpeg",
    ".ogg": "application/ogg",
    ".pac": "application/x-ns-proxy-autoconfig",
    ".pdf": "application/pdf",
}


class HttpRequestState(enum.Enum):
    """Which part of the request is being parsed."""

    PARSE_REQ_LINE = enum.auto()
    PARSE_REQ_HEADERS = enum.auto()
    PARSE_REQ_BODY = enum.auto()
    PARSE_REQ_DONE = enum.auto()


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _wire(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


class HttpRequest:
    """An HTTP request parsed incrementally from a read buffer."""

    def __init__(self) -> None:
        self.cur_state = HttpRequestState.PARSE_REQ_LINE
        self.method: Optional[str] = None
        self.url: Optional[str] = None
        self.version: Optional[str] = None
        self.headers: list[tuple[str, str]] = []

    def reset(self) -> None:
        """Forget everything parsed so far."""
        self.cur_state = HttpRequestState.PARSE_REQ_LINE
        self.method = None
        self.url = None
        self.version = None
        self.headers = []

    def add_header(self, key: str, value: str) -> None:
        self.headers.append((key, value))

    def get_header(self, key: str) -> Optional[str]:
        """Value of the first header whose name starts with ``key``, ignoring case."""
        wanted = key.lower()
        for name, value in self.headers:
            if name.lower().startswith(wanted):
                return value
        return None

    def parse_request_line(self, read_buf: Buffer) -> bool:
        """Parse the request line; False if no complete line is buffered.

        Raises ValueError if the line does not hold method, URL and version.
        """
        end = read_buf.find_crlf()
        if end is None or end <= 0:
            return False
        line = _text(read_buf.peek()[:end])
        method, sep, rest = line.partition(" ")
        if not sep:
            raise ValueError(f"malformed request line: {line!r}")
        url, sep, version = rest.partition(" ")
        if not sep:
            raise ValueError(f"malformed request line: {line!r}")
        self.method, self.url, self.version = method, url, version
        read_buf.retrieve(end + 2)
        self.cur_state = HttpRequestState.PARSE_REQ_HEADERS
        return True

    def parse_request_header(self, read_buf: Buffer) -> bool:
        """Parse one header line; a line without ``": "`` ends the headers."""
        end = read_buf.find_crlf()
        if end is None:
            return False
        line = _text(read_buf.peek()[:end])
        key, sep, value = line.partition(": ")
        if sep:
            self.add_header(key, value)
            read_buf.retrieve(end + 2)
        else:
            read_buf.retrieve(2)
            # Request bodies are ignored: every request is served like a GET.
            self.cur_state = HttpRequestState.PARSE_REQ_DONE
        return True

    def parse_request(
        self,
        read_buf: Buffer,
        response: HttpResponse,
        send_buf: Buffer,
        sock: Optional[socket.socket],
    ) -> bool:
        """Parse a whole request and write its response into ``send_buf``.

        Returns False if the buffered data does not hold a complete request.
        """
        while self.cur_state is not HttpRequestState.PARSE_REQ_DONE:
            if self.cur_state is HttpRequestState.PARSE_REQ_LINE:
                flag = self.parse_request_line(read_buf)
            elif self.cur_state is HttpRequestState.PARSE_REQ_HEADERS:
                flag = self.parse_request_header(read_buf)
            else:
                self.cur_state = HttpRequestState.PARSE_REQ_DONE
                flag = True
            if not flag:
                return False
            if self.cur_state is HttpRequestState.PARSE_REQ_DONE:
                self.process_request(response)
                response.prepare_msg(send_buf, sock)
        self.cur_state = HttpRequestState.PARSE_REQ_LINE
        return True

    def process_request(self, response: HttpResponse) -> bool:
        """Fill ``response`` for a GET of a file or directory under the cwd.

        Returns False for methods other than GET, leaving the response alone.
        """
        if (self.method or "").lower() != "get":
            return False
        self.url = decode_msg(self.url or "")
        file = "./" if self.url == "/" else self.url[1:]
        try:
            st = os.stat(file)
        except OSError:
            response.file_name = "404.html"
            response.status_code = HttpStatusCode.NOT_FOUND
            response.status_msg = "Not Found"
            response.add_header("Content-Type", get_file_type(".html"))
            response.send_data_func = send_file
            return True
        response.file_name = file
        response.status_code = HttpStatusCode.OK
        response.status_msg = "OK!"
        if stat.S_ISDIR(st.st_mode):
            response.add_header("Content-Type", get_file_type(".html"))
            response.send_data_func = send_dir
        else:
            response.add_header("content-type", get_file_type(file))
            response.add_header("content-length", str(st.st_size))
            response.send_data_func = send_file
        return True


def hex_to_dec(c: str) -> int:
    """Value of a hexadecimal digit; 0 for any other character."""
    if len(c) == 1 and c in _HEX_DIGITS:
        return int(c, 16)
    return 0


def decode_msg(text: str) -> str:
    """Decode ``%XX`` escapes; the resulting bytes are read as UTF-8."""
    out = bytearray()
    i = 0
    while i < len(text):
        ch = text[i]
        if (
            ch == "%"
            and i + 2 < len(text) + 0
            and text[i + 1] in _HEX_DIGITS
            and text[i + 2] in _HEX_DIGITS
        ):
            out.append((hex_to_dec(text[i + 1]) << 4) + hex_to_dec(text[i + 2]))
            i += 3
        else:
            out += _wire(ch)
            i += 1
    return _text(bytes(out))


def get_file_type(name: str) -> str:
    """Content-Type for a file name, chosen by its last extension."""
    dot = name.rfind(".")
    if dot < 0:
        return _PLAIN_TEXT
    return _MIME_TYPES.get(name[dot:], _PLAIN_TEXT)


def _flush(send_buf: Buffer, sock: Optional[socket.socket]) -> None:
    if sock is not None:
        send_buf.send_data(sock)


def send_file(file_name: str, send_buf: Buffer, sock: Optional[socket.socket]) -> None:
    """Append a file's contents to ``send_buf``, sending as it goes."""
    try:
        handle = open(file_name, "rb")
    except OSError as exc:
        log.warning("cannot open %s: %s", file_name, exc)
        return
    with handle:
        try:
            for chunk in iter(lambda: handle.read(_READ_CHUNK), b""):
                send_buf.append(chunk)
                _flush(send_buf, sock)
        except OSError as exc:
            log.warning("cannot read %s: %s", file_name, exc)


def send_dir(dir_name: str, send_buf: Buffer, sock: Optional[socket.socket]) -> None:
    """Append an HTML table listing a directory to ``send_buf``."""
    send_buf.append(
        _wire(f"<html><head><title>{dir_name}</title></head><body><table>")
    )
    for name in sorted([".", "..", *os.listdir(dir_name)]):
        try:
            st = os.stat(f"{dir_name}/{name}")
            is_dir, size = stat.S_ISDIR(st.st_mode), st.st_size
        except OSError:
            is_dir, size = False, 0
        href = f"{name}/" if is_dir else name
        row = f'<tr><td><a href="{href}">{name}</a></td><td>{size}</td></tr>'
        send_buf.append(_wire(row))
        _flush(send_buf, sock)
    send_buf.append("</table></body></html>")
    _flush(send_buf, sock)