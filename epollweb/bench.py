"""Simple multi-client HTTP load generator for benchmarking a web server."""

from __future__ import annotations

import argparse
import enum
import re
import socket
import sys
import time
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

PROGRAM_VERSION = "1.5"
DEFAULT_PORT = 80
DEFAULT_BENCHTIME = 30
ZERO_BENCHTIME = 60
MAX_URL_LENGTH = 1500
READ_CHUNK = 1500

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

_USAGE = (
    "webbench [option]... URL\n"
    "  -f|--force               Don't wait for reply from server.\n"
    "  -r|--reload              Send reload request - Pragma: no-cache.\n"
    "  -t|--time <sec>          Run benchmark for <sec> seconds. Default 30.\n"
    "  -p|--proxy <server:port> Use proxy server for request.\n"
    "  -c|--clients <n>         Run <n> HTTP clients at once. Default one.\n"
    "  -9|--http09              Use HTTP/0.9 style requests.\n"
    "  -1|--http10              Use HTTP/1.0 protocol.\n"
    "  -2|--http11              Use HTTP/1.1 protocol.\n"
    "  --get                    Use GET request method.\n"
    "  --head                   Use HEAD request method.\n"
    "  --options                Use OPTIONS request method.\n"
    "  --trace                  Use TRACE request method.\n"
    "  -?|-h|--help             This information.\n"
    "  -V|--version             Display program version.\n"
)


class Method(enum.Enum):
    """Request methods the benchmark can send."""

    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"


@dataclass
class BenchConfig:
    """Benchmark settings.

    ``http_version`` is 0 for HTTP/0.9, 1 for HTTP/1.0 and 2 for HTTP/1.1.
    """

    url: str = ""
    method: Method = Method.GET
    http_version: int = 1
    clients: int = 1
    benchtime: int = DEFAULT_BENCHTIME
    force: bool = False
    force_reload: bool = False
    proxy_host: str | None = None
    proxy_port: int = DEFAULT_PORT

    @property
    def effective_http_version(self) -> int:
        """Protocol version raised to what the method and options require."""
        version = self.http_version
        if self.force_reload and self.proxy_host is not None and version < 1:
            version = 1
        if self.method is Method.HEAD and version < 1:
            version = 1
        if self.method in (Method.OPTIONS, Method.TRACE) and version < 2:
            version = 2
        return version


@dataclass
class BenchResult:
    """Counts of completed and failed requests and bytes read."""

    speed: int = 0
    failed: int = 0
    bytes: int = 0
    benchtime: int = DEFAULT_BENCHTIME

    def __add__(self, other: BenchResult) -> BenchResult:
        return BenchResult(
            self.speed + other.speed,
            self.failed + other.failed,
            self.bytes + other.bytes,
            self.benchtime,
        )

    @property
    def pages_per_min(self) -> int:
        return int((self.speed + self.failed) / (self.benchtime / 60.0))

    @property
    def bytes_per_sec(self) -> int:
        return int(self.bytes / float(self.benchtime))

    def report(self) -> str:
        return (
            f"\nSpeed={self.pages_per_min} pages/min, {self.bytes_per_sec} bytes/sec.\n"
            f"Requests: {self.speed} succeeded, {self.failed} failed."
        )


def _atoi(text: str) -> int:
    """Leading integer of ``text``, or 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _usage_error() -> SystemExit:
    """Print the usage text and return the exit to raise for bad parameters."""
    print(_USAGE, end="", file=sys.stderr)
    return SystemExit(2)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webbench", usage="webbench [option]... URL", add_help=False
    )
    parser.add_argument("-f", "--force", action="store_true")
    parser.add_argument("-r", "--reload", dest="force_reload", action="store_true")
    parser.add_argument("-t", "--time", type=_atoi, default=DEFAULT_BENCHTIME)
    parser.add_argument("-p", "--proxy", default=None)
    parser.add_argument("-c", "--clients", type=_atoi, default=1)
    parser.add_argument("-9", "--http09", dest="http_version", action="store_const", const=0)
    parser.add_argument("-1", "--http10", dest="http_version", action="store_const", const=1)
    parser.add_argument("-2", "--http11", dest="http_version", action="store_const", const=2)
    parser.add_argument("--get", dest="method", action="store_const", const=Method.GET)
    parser.add_argument("--head", dest="method", action="store_const", const=Method.HEAD)
    parser.add_argument(
        "--options", dest="method", action="store_const", const=Method.OPTIONS
    )
    parser.add_argument("--trace", dest="method", action="store_const", const=Method.TRACE)
    parser.add_argument("-V", "--version", action="store_true")
    parser.add_argument("-?", "-h", "--help", dest="help", action="store_true")
    parser.add_argument("urls", nargs="*")
    parser.set_defaults(http_version=1, method=Method.GET)
    return parser


def _parse_proxy(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep:
        return value, DEFAULT_PORT
    if not host:
        print(f"Error in option --proxy {value}: Missing hostname.", file=sys.stderr)
        raise SystemExit(2)
    if not port:
        print(f"Error in option --proxy {value} Port number is missing.", file=sys.stderr)
        raise SystemExit(2)
    return host, _atoi(port)


def parse_args(argv: Sequence[str] | None = None) -> BenchConfig:
    """Read command-line options into a config.

    Raises SystemExit(2) on bad options and SystemExit(0) after printing
    the version.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        raise _usage_error()
    ns = _parser().parse_intermixed_args(args)
    if ns.version:
        print(PROGRAM_VERSION)
        raise SystemExit(0)
    if ns.help:
        raise _usage_error()

    proxy_host: str | None = None
    proxy_port = DEFAULT_PORT
    if ns.proxy is not None:
        proxy_host, proxy_port = _parse_proxy(ns.proxy)

    if not ns.urls:
        print("webbench: Missing URL!", file=sys.stderr)
        raise _usage_error()

    return BenchConfig(
        url=ns.urls[0],
        method=ns.method,
        http_version=ns.http_version,
        clients=ns.clients or 1,
        benchtime=ns.time or ZERO_BENCHTIME,
        force=ns.force,
        force_reload=ns.force_reload,
        proxy_host=proxy_host,
        proxy_port=proxy_port,
    )


def build_request(url: str, config: BenchConfig) -> tuple[str, str, int]:
    """Compose the request text for ``url``.

    Returns the request, and the host and port to connect to.
    Raises ValueError when the URL cannot be used.
    """
    version = config.effective_http_version
    parts = [config.method.value, " "]

    marker = url.find("://")
    if marker == -1:
        raise ValueError(f"{url}: is not a valid URL.")
    if len(url) > MAX_URL_LENGTH:
        raise ValueError("URL is too long.")
    if config.proxy_host is None and not url[:7].lower() == "http://":
        raise ValueError(
            "Only HTTP protocol is directly supported, set --proxy for others."
        )
    rest = url[marker + 3 :]
    slash = rest.find("/")
    if slash == -1:
        raise ValueError("Invalid URL syntax - hostname don't ends with '/'.")

    if config.proxy_host is None:
        port = config.proxy_port
        colon = rest.find(":")
        if colon != -1 and colon < slash:
            host = rest[:colon]
            port = _atoi(rest[colon + 1 : slash]) or DEFAULT_PORT
        else:
            host = rest[:slash]
        parts.append(rest[slash:])
    else:
        host, port = config.proxy_host, config.proxy_port
        parts.append(url)

    if version == 1:
        parts.append(" HTTP/1.0")
    elif version == 2:
        parts.append(" HTTP/1.1")
    parts.append("\r\n")
    if version > 0:
        parts.append(f"User-Agent: WebBench {PROGRAM_VERSION}\r\n")
    if config.proxy_host is None and version > 0:
        parts.append(f"Host: {host}\r\n")
    if config.force_reload and config.proxy_host is not None:
        parts.append("Pragma: no-cache\r\n")
    if version > 1:
        parts.append("Connection: close\r\n")
    if version > 0:
        parts.append("\r\n")
    return "".join(parts), host, port


def connect_socket(host: str, port: int) -> socket.socket:
    """Open a TCP connection; raises OSError when it cannot be made."""
    return socket.create_connection((host, port))


def _drain(sock: socket.socket, deadline: float) -> Iterator[bytes]:
    """Yield chunks until the peer closes or the deadline passes."""
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return
        sock.settimeout(remaining)
        chunk = sock.recv(READ_CHUNK)
        if not chunk:
            return
        yield chunk


def bench_core(
    host: str, port: int, request: str, config: BenchConfig
) -> BenchResult:
    """Send ``request`` repeatedly for ``config.benchtime`` seconds."""
    payload = request.encode("latin-1")
    version = config.effective_http_version
    deadline = time.monotonic() + config.benchtime
    speed = failed = received = 0

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            # The request cut short by the deadline is not a real failure.
            if failed > 0:
                failed -= 1
            return BenchResult(speed, failed, received, config.benchtime)
        try:
            with socket.create_connection((host, port), timeout=remaining) as sock:
                sock.sendall(payload)
                if version == 0:
                    sock.shutdown(socket.SHUT_WR)
                if not config.force:
                    for chunk in _drain(sock, deadline):
                        received += len(chunk)
        except OSError:
            failed += 1
            continue
        speed += 1


def run_bench(
    config: BenchConfig, host: str, port: int, request: str
) -> BenchResult:
    """Run ``config.clients`` concurrent clients and sum their results.

    Raises OSError when the target cannot be reached beforehand.
    """
    connect_socket(host, port).close()

    total = BenchResult(benchtime=config.benchtime)
    if config.clients < 1:
        return total
    with ThreadPoolExecutor(max_workers=config.clients) as pool:
        futures = [
            pool.submit(bench_core, host, port, request, config)
            for _ in range(config.clients)
        ]
        for future in futures:
            try:
                total = total + future.result()
            except Exception:
                print("Some of our children died.", file=sys.stderr)
                break
    return total


def _describe(config: BenchConfig) -> str:
    parts = [f"\nBenchmarking: {config.method.value} {config.url}"]
    version = config.effective_http_version
    if version == 0:
        parts.append(" (using HTTP/0.9)")
    elif version == 2:
        parts.append(" (using HTTP/1.1)")
    parts.append("\n")
    parts.append("1 client" if config.clients == 1 else f"{config.clients} clients")
    parts.append(f", running {config.benchtime} sec")
    if config.force:
        parts.append(", early socket close")
    if config.proxy_host is not None:
        parts.append(f", via proxy server {config.proxy_host}:{config.proxy_port}")
    if config.force_reload:
        parts.append(", forcing reload")
    parts.append(".")
    return "".join(parts)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the benchmark from the command line; returns an exit status.

    0 on success, 1 when the server is unreachable, 2 on bad parameters.
    """
    try:
        config = parse_args(argv)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 2

    print(f"Webbench - Simple Web Benchmark {PROGRAM_VERSION}", file=sys.stderr)
    try:
        request, host, port = build_request(config.url, config)
    except ValueError as exc:
        print(f"\n{exc}", file=sys.stderr)
        return 2

    print(_describe(config), flush=True)
    try:
        result = run_bench(config, host, port, request)
    except OSError:
        print("\nConnect to server failed. Aborting benchmark.", file=sys.stderr)
        return 1
    print(result.report(), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())