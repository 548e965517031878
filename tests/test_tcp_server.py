import socket
import threading

import pytest

from reactorhttp.tcp_server import Listener, TcpServer, main


def _start_server(factory):
    """Build the server inside its own thread, since its main loop belongs to that thread."""
    ready = threading.Event()
    holder = []

    def serve():
        try:
            server = factory()
            holder.append(server)
        finally:
            ready.set()
        server.run()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    assert ready.wait(5)
    return holder[0], thread


def test_listener_binds_and_accepts():
    listener = Listener(0)
    try:
        assert listener.port == listener.sock.getsockname()[1]
        assert listener.lfd == listener.sock.fileno()
        with socket.create_connection(("127.0.0.1", listener.port), timeout=5):
            conn, _ = listener.sock.accept()
            conn.close()
        assert listener.port > 0
    finally:
        listener.close()
    assert listener.sock.fileno() == -1


@pytest.mark.parametrize("thread_num", [0, 2])
def test_serves_file(tmp_path, monkeypatch, thread_num):
    (tmp_path / "hello.txt").write_bytes(b"hello")
    monkeypatch.chdir(tmp_path)
    server, thread = _start_server(lambda: TcpServer(0, thread_num))
    try:
        port = server.listener.port
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            client.sendall(b"GET /hello.txt HTTP/1.1\r\nHost: localhost\r\n\r\n")
            client.settimeout(5)
            response = b""
            while True:
                data = client.recv(4096)
                if not data:
                    break
                response += data
    finally:
        server.stop()
        thread.join(5)
    assert port > 0
    assert response.startswith(b"HTTP/1.1 200 OK!\r\n")
    assert b"content-type: text/plain; charset=utf-8\r\n" in response
    assert b"content-length: 5\r\n" in response
    assert response.endswith(b"\r\n\r\nhello")
    assert not thread.is_alive()


def test_missing_file_gets_404(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    server, thread = _start_server(lambda: TcpServer(0, 1))
    try:
        port = server.listener.port
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            client.sendall(b"GET /missing.txt HTTP/1.1\r\nHost: localhost\r\n\r\n")
            client.settimeout(5)
            response = b""
            while True:
                data = client.recv(4096)
                if not data:
                    break
                response += data
    finally:
        server.stop()
        thread.join(5)
    assert response.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"Content-Type: text/html; charset=utf-8\r\n" in response
    assert not thread.is_alive()


def test_serves_directory_listing(tmp_path, monkeypatch):
    (tmp_path / "a.txt").write_bytes(b"x")
    monkeypatch.chdir(tmp_path)
    server, thread = _start_server(lambda: TcpServer(0, 1))
    try:
        port = server.listener.port
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            client.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
            client.settimeout(5)
            response = b""
            while True:
                data = client.recv(4096)
                if not data:
                    break
                response += data
    finally:
        server.stop()
        thread.join(5)
    assert response.startswith(b"HTTP/1.1 200 OK!\r\n")
    assert b'<a href="a.txt">a.txt</a>' in response
    assert response.endswith(b"</table></body></html>")
    assert not thread.is_alive()


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as info:
        main(["notaport"])
    assert info.value.code == 2


def test_main_rejects_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        main(["0", str(tmp_path / "nope")])