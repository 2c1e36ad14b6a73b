"""Non-blocking static file server with login and registration forms."""

from __future__ import annotations

import os
import selectors
import socket
import sys
import threading
from collections import deque
from pathlib import Path
from typing import Protocol

from epollweb.http_request import HttpRequest, try_parse_http_request
from epollweb.log import Logger
from epollweb.timer_task import TimerTask
from epollweb.user_store import UserStore
from epollweb.util import (
    get_content_type,
    parse_form_urlencoded,
    read_file,
)

READ_BUFFER = 4096
KEEP_ALIVE_TIMEOUT_MS = 60000
POLL_INTERVAL = 0.1
SEND_TIMEOUT = 10.0
DEFAULT_RESOURCES_ROOT = Path("resources")
REDIRECT_LOCATION = "/welcome"

ROUTES = {
    "/": "index.html",
    "/picture": "picture.html",
    "/video": "video.html",
    "/login": "login.html",
    "/register": "register.html",
    "/welcome": "welcome.html",
}


class _Accounts(Protocol):
    def insert_user(self, username: str, password: str) -> bool: ...

    def verify_user(self, username: str, password: str) -> bool: ...


def _log(message: str) -> None:
    Logger.get_instance().log("INFO", message)


class WebServer:
    """Serves files under ``resources_root`` and handles /login and /register posts."""

    def __init__(
        self,
        port: int,
        resources_root: str | os.PathLike[str] = DEFAULT_RESOURCES_ROOT,
        user_store: _Accounts | None = None,
        keep_alive_timeout_ms: int = KEEP_ALIVE_TIMEOUT_MS,
        host: str = "",
    ) -> None:
        self.port = port
        self.host = host
        self.resources_root = Path(resources_root)
        self.keep_alive_timeout_ms = keep_alive_timeout_ms
        self._accounts: _Accounts = user_store if user_store is not None else UserStore()
        self._selector: selectors.BaseSelector | None = None
        self._listener: socket.socket | None = None
        self._clients: dict[int, socket.socket] = {}
        self._buffers: dict[int, bytearray] = {}
        self._timers: dict[int, TimerTask] = {}
        self._close_queue: deque[tuple[int, TimerTask]] = deque()
        self._close_lock = threading.Lock()
        self._stopping = threading.Event()
        self.ready = threading.Event()

    def run(self) -> None:
        """Listen and serve until ``stop`` is called.

        Raises OSError when the listening socket cannot be set up.
        """
        self._open()
        print(f"Listening on port {self.port}...", flush=True)
        _log(f"Listening on port {self.port}...")
        self.ready.set()
        assert self._selector is not None
        try:
            while not self._stopping.is_set():
                try:
                    events = self._selector.select(timeout=POLL_INTERVAL)
                except OSError as exc:
                    print(f"select failed: {exc}", file=sys.stderr)
                    break
                for key, _ in events:
                    if key.fileobj is self._listener:
                        self._accept_all()
                    else:
                        self._handle_connection(key.fd)
                self._process_close_queue()
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask a running server to finish its loop."""
        self._stopping.set()

    def close_client(self, fd: int) -> None:
        """Drop a client connection and its keep-alive timer."""
        conn = self._clients.pop(fd, None)
        if conn is None:
            return
        self._buffers.pop(fd, None)
        if self._selector is not None:
            try:
                self._selector.unregister(conn)
            except (KeyError, ValueError):
                pass
        conn.close()
        timer = self._timers.pop(fd, None)
        if timer is not None:
            timer.cancel()
        _log(f"Client[{fd}] closed")

    def handle_post(self, request: HttpRequest) -> bool:
        """Register or log in from a form body; True on success."""
        account = parse_form_urlencoded(request.body)
        username = account.get("username", "")
        password = account.get("password", "")
        if request.path == "/register":
            return self._accounts.insert_user(username, password)
        if request.path == "/login":
            return self._accounts.verify_user(username, password)
        return False

    def process_request(self, request: HttpRequest) -> bytes:
        """Build the full response bytes for ``request``."""
        if request.method == "POST" and self.handle_post(request):
            head = f"HTTP/1.1 302 Found\r\nLocation: {REDIRECT_LOCATION}\r\n"
            return (head + "Content-Length: 0\r\n" + self._connection_headers()).encode(
                "latin-1"
            )

        file_path = self._resolve(request.path)
        if file_path.is_file():
            status = "HTTP/1.1 200 OK\r\n"
            body = read_file(file_path)
            content_type = get_content_type(file_path)
        else:
            status = "HTTP/1.1 404 Not Found\r\n"
            body = read_file(self.resources_root / "404.html")
            content_type = "text/html"
        head = (
            status
            + f"Content-Type: {content_type}\r\n"
            + f"Content-Length: {len(body)}\r\n"
            + self._connection_headers()
        )
        return head.encode("latin-1") + body

    def _connection_headers(self) -> str:
        if self.keep_alive_timeout_ms == 0:
            return "Connection: close\r\n\r\n"
        return "Connection: keep-alive\r\nKeep-Alive: timeout=5\r\n\r\n"

    def _resolve(self, path: str) -> Path:
        page = ROUTES.get(path)
        if page is not None:
            return self.resources_root / page
        return Path(str(self.resources_root) + path)

    def _open(self) -> None:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.host, self.port))
            listener.listen(socket.SOMAXCONN)
            listener.setblocking(False)
        except OSError:
            listener.close()
            raise
        self.port = listener.getsockname()[1]
        self._listener = listener
        self._selector = selectors.DefaultSelector()
        self._selector.register(listener, selectors.EVENT_READ)

    def _shutdown(self) -> None:
        for fd in list(self._clients):
            self.close_client(fd)
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def _accept_all(self) -> None:
        assert self._listener is not None and self._selector is not None
        while True:
            try:
                conn, _ = self._listener.accept()
            except OSError:
                break
            conn.setblocking(False)
            fd = conn.fileno()
            self._clients[fd] = conn
            self._selector.register(conn, selectors.EVENT_READ)
            _log(f"Client[{fd}] in!")
            self._touch_timer(fd)

    def _handle_connection(self, fd: int) -> None:
        conn = self._clients.get(fd)
        if conn is None:
            return
        buffer = self._buffers.setdefault(fd, bytearray())
        while True:
            try:
                chunk = conn.recv(READ_BUFFER)
            except (BlockingIOError, InterruptedError):
                break
            except OSError:
                self.close_client(fd)
                return
            if not chunk:
                self.close_client(fd)
                return
            buffer.extend(chunk)

        while True:
            try:
                parsed = try_parse_http_request(buffer.decode("latin-1"))
            except ValueError:
                self.close_client(fd)
                return
            if parsed is None:
                break
            request, consumed = parsed
            request.body = request.body.encode("latin-1").decode("utf-8", "replace")
            if not self._send(conn, self.process_request(request)):
                self.close_client(fd)
                return
            if request.path in ROUTES:
                _log(f"Response to Client[{fd}]")
            del buffer[:consumed]
            if request.headers.get("Connection") == "close":
                self.close_client(fd)
                return
            self._touch_timer(fd)

    @staticmethod
    def _send(conn: socket.socket, data: bytes) -> bool:
        try:
            conn.settimeout(SEND_TIMEOUT)
            conn.sendall(data)
            conn.setblocking(False)
        except OSError:
            return False
        return True

    def _touch_timer(self, fd: int) -> None:
        timer = self._timers.get(fd)
        if timer is not None:
            timer.reset(self.keep_alive_timeout_ms)
            return

        def expire() -> None:
            _log(f"Client[{fd}] timed out")
            with self._close_lock:
                self._close_queue.append((fd, timer))

        timer = TimerTask(fd, self.keep_alive_timeout_ms, expire)
        self._timers[fd] = timer
        timer.start()

    def _process_close_queue(self) -> None:
        with self._close_lock:
            expired = list(self._close_queue)
            self._close_queue.clear()
        for fd, timer in expired:
            if self._timers.get(fd) is timer:
                self.close_client(fd)