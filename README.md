# epollweb

A small event-driven HTTP/1.1 server. It serves static pages over keep-alive
connections and handles form-based user registration and login, with the
accounts kept in a MySQL `user` table. It also comes with a command-line
benchmark tool that can load any HTTP server.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
epollweb [--port PORT] [--resources DIR] [--log-file FILE]
```

The defaults are port 8080, the `resources` directory under the current
working directory, and `running.log` as the log file. Log lines are appended
to that file by a background writer thread. The server keeps running until it
is interrupted.

The server handles these routes:

| Path        | Page served       |
|-------------|-------------------|
| `/`         | `index.html`      |
| `/picture`  | `picture.html`    |
| `/video`    | `video.html`      |
| `/login`    | `login.html`      |
| `/register` | `register.html`   |
| `/welcome`  | `welcome.html`    |

For any other path, the path is appended to the resources directory and that
file is served. When no such file exists, the server replies with status 404
and the contents of `404.html`. The `Content-Type` is chosen from the file
extension by `epollweb.util.get_content_type`.

A `POST` to `/register` or `/login` carries an
`application/x-www-form-urlencoded` body with `username` and `password`. It
adds the user or checks the stored password. On success the reply is
`302 Found` with `Location: /welcome`. On failure, or for a `POST` to any
other path, the page for that path is served as for a `GET`.

When a connection sits idle for 60 seconds, its keep-alive timer expires and
the connection is closed. If a request sends `Connection: close`, the
connection is closed once the response has been sent.

### Database

By default `epollweb.user_store.UserStore` connects to MySQL at
`127.0.0.1:3306` as `root`, using database `WebServer_DB`. It expects a table
`user` with `username` and `password` columns. The package does not create
that table, and it does not ship the HTML pages. Both have to be provided.
When the database cannot be reached, the error is printed to stderr and every
registration or login fails.

## Using the pieces as a library

```python
from epollweb.http_request import try_parse_http_request
from epollweb.util import parse_form_urlencoded

raw = "POST /login HTTP/1.1\r\nContent-Length: 32\r\n\r\nusername=alice&password=password"
parsed = try_parse_http_request(raw)
if parsed is not None:
    request, consumed = parsed
    print(request.method, request.path, parse_form_urlencoded(request.body))
```

`try_parse_http_request` returns `None` until the whole request, body
included, has arrived. Otherwise it returns the request and the number of
characters that request takes up.

The server can be embedded as well. `epollweb.server.WebServer(port,
resources_root=..., user_store=...)` takes any object that has `insert_user`
and `verify_user`. Its `run()` serves until `stop()` is called, and its
`process_request(request)` returns the response bytes for a parsed request.

The following classes can also be used on their own:

- `epollweb.log.Logger`: a file logger, synchronous or queued.
- `epollweb.timer_task.TimerTask`: a one-shot timer that can be reset or cancelled.
- `epollweb.block_queue.BlockQueue`: a bounded blocking queue.

## Benchmarking

```
epollweb-bench -c 10 -t 30 http://localhost:8080/
```

Options:

```
  -f|--force               Don't wait for reply from server.
  -r|--reload              Send reload request - Pragma: no-cache.
  -t|--time <sec>          Run benchmark for <sec> seconds. Default 30.
  -p|--proxy <server:port> Use proxy server for request.
  -c|--clients <n>         Run <n> HTTP clients at once. Default one.
  -9|--http09              Use HTTP/0.9 style requests.
  -1|--http10              Use HTTP/1.0 protocol.
  -2|--http11              Use HTTP/1.1 protocol.
  --get                    Use GET request method.
  --head                   Use HEAD request method.
  --options                Use OPTIONS request method.
  --trace                  Use TRACE request method.
  -?|-h|--help             This information.
  -V|--version             Display program version.
```

Each client runs in its own thread. A client opens a new connection for every
request and, unless `--force` is given, reads the reply until the server
closes the connection. At the end the tool prints pages per minute, bytes per
second, and the number of requests that succeeded and failed.

Exit status:

- 0: success, or the version was printed
- 1: the server could not be reached
- 2: bad arguments or an unusable URL