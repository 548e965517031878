# reactorhttp

A small HTTP server that serves files and directory listings from its working
directory. It serves `GET` requests. A file comes back with its content type
and, from the multi-reactor server, its length. A directory comes back as an
HTML table of its entries and their sizes. A missing path comes back as
`404 Not Found` with the contents of `404.html` from the working directory,
if that file exists. Percent-encoded paths such as `/%E6%96%87%E4%BB%B6.txt`
are decoded before the lookup.

Two servers are included.

- **Multi-reactor server** (`reactorhttp.tcp_server`). One main `EventLoop`
  accepts connections through a `Listener`. A `ThreadPool` of `WorkerThread`s
  hands each connection to a worker's event loop, in turn. With no workers,
  the main loop serves the connections itself. Every connection is a
  `TcpConnection` with its own read and write `Buffer`, an `HttpRequest`
  parser and an `HttpResponse`. A request that cannot be parsed gets
  `400 Bad Request`. The connection is closed once the request has been
  answered.
- **Single reactor with per-event threads** (`reactorhttp.threaded_reactor`,
  built on the helpers in `reactorhttp.single_reactor`). One selector watches
  the listening socket and the clients. Each ready socket is handled in a
  short-lived thread, then watched again.

## Installing

```
pip install .
```

The package needs only the standard library. Its event loops use the best
dispatcher the platform offers: epoll, then poll, then select. It is meant
for POSIX systems.

## Running

Start the multi-reactor server. It listens on port 10000 with 4 worker
threads by default:

```
reactorhttp-server
```

It takes an optional port, an optional directory to serve, and `-t` /
`--threads` for the number of worker threads:

```
reactorhttp-server 8080 /srv/www --threads 2
```

Start the threaded single-reactor server. It needs a port and a directory:

```
reactorhttp-threaded 8080 /srv/www
```

Then browse to `http://localhost:8080/`. Stop either server with Ctrl-C.

From Python, `TcpServer(port, thread_num).run()` serves until `stop()` is
called from another thread.

## Using the parts

The building blocks can be used on their own.

```python
from reactorhttp.buffer import Buffer
from reactorhttp.http_request import HttpRequest, decode_msg, get_file_type

buf = Buffer(1024)
buf.append(b"GET /index.html HTTP/1.1\r\nHost: localhost\r\n\r\n")

request = HttpRequest()
request.parse_request_line(buf)
request.parse_request_header(buf)
print(request.method, request.url)   # GET /index.html
print(request.get_header("Host"))    # localhost

print(get_file_type("photo.jpg"))    # image/jpeg
print(decode_msg("/a%20b.txt"))      # /a b.txt
```

- `Buffer` (`reactorhttp.buffer`) is a growable byte buffer with separate read
  and write positions. It can read from and send to a socket, find the next
  `\r\n`, and `peek` at or `retrieve` its readable bytes.
- `Channel` (`reactorhttp.channel`) pairs a file descriptor with the events it
  watches (`FDEvent`) and its read, write and destroy callbacks. `ChannelMap`
  maps descriptors to channels.
- `EpollDispatcher`, `PollDispatcher` and `SelectDispatcher`
  (`reactorhttp.dispatcher`) watch channels for readiness.
  `default_dispatcher()` picks one.
- `EventLoop` (`reactorhttp.event_loop`) runs a dispatcher and a queue of add,
  delete and modify tasks (`ElemType`). Tasks posted from other threads wake
  the loop; `quit()` stops it.
- `HttpRequest` and `HttpResponse` (`reactorhttp.http_request`,
  `reactorhttp.http_response`) parse a request and build its response;
  `send_file` and `send_dir` write a response body into a `Buffer`.
- `TcpServer`, `Listener`, `ThreadPool` and `WorkerThread` make up the
  multi-reactor server.

## What it does not do

- Only the request line and headers are read; request bodies are ignored,
  and methods other than `GET` are not served.
- The multi-reactor server answers one request per connection; there is no
  keep-alive.
- There is no TLS, no authentication, no caching headers and no
  configuration file.

## Tests

```
pip install .[test]
pytest
```