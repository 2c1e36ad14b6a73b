import socket
import socketserver
import threading

import pytest

from epollweb.bench import (
    BenchConfig,
    BenchResult,
    Method,
    bench_core,
    build_request,
    connect_socket,
    main,
    parse_args,
    run_bench,
)

RESPONSE = b"HTTP/1.0 200 OK\r\nContent-Length: 5\r\n\r\nhello"


class _Handler(socketserver.BaseRequestHandler):
    def handle(self):
        data = b""
        try:
            while b"\r\n\r\n" not in data:
                chunk = self.request.recv(1024)
                if not chunk:
                    break
                data += chunk
            self.request.sendall(RESPONSE)
        except OSError:
            pass


class _Server(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 128


@pytest.fixture
def server_port():
    server = _Server(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address[1]
    server.shutdown()
    server.server_close()


@pytest.fixture
def closed_port():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


# build_request


def test_build_request_default_get():
    request, host, port = build_request("http://localhost/", BenchConfig())
    assert request == "GET / HTTP/1.0\r\nUser-Agent: WebBench 1.5\r\nHost: localhost\r\n\r\n"
    assert host == "localhost"
    assert port == 80


def test_build_request_http09_has_no_headers():
    request, _, _ = build_request("http://localhost/index.html", BenchConfig(http_version=0))
    assert request == "GET /index.html\r\n"


def test_build_request_port_from_url():
    request, host, port = build_request("http://example.com:8080/a/b", BenchConfig())
    assert host == "example.com"
    assert port == 8080
    assert request.startswith("GET /a/b HTTP/1.0\r\n")
    assert "Host: example.com\r\n" in request


def test_build_request_zero_port_falls_back():
    _, _, port = build_request("http://example.com:0/", BenchConfig())
    assert port == 80


def test_head_upgrades_http09():
    config = BenchConfig(method=Method.HEAD, http_version=0)
    assert config.effective_http_version == 1
    request, _, _ = build_request("http://localhost/", config)
    assert request.startswith("HEAD / HTTP/1.0\r\n")


@pytest.mark.parametrize("method", [Method.OPTIONS, Method.TRACE])
def test_options_and_trace_use_http11(method):
    request, _, _ = build_request("http://localhost/", BenchConfig(method=method))
    assert request.startswith(f"{method.value} / HTTP/1.1\r\n")
    assert request.endswith("Connection: close\r\n\r\n")


def test_build_request_via_proxy():
    config = BenchConfig(proxy_host="proxy.example.com", proxy_port=3128, force_reload=True)
    url = "ftp://example.com/file"
    request, host, port = build_request(url, config)
    assert (host, port) == ("proxy.example.com", 3128)
    assert request.startswith(f"GET {url} HTTP/1.0\r\n")
    assert "Host:" not in request
    assert "Pragma: no-cache\r\n" in request


def test_reload_without_proxy_sends_no_pragma():
    request, _, _ = build_request("http://localhost/", BenchConfig(force_reload=True))
    assert "Pragma" not in request


@pytest.mark.parametrize(
    "url",
    [
        "localhost/",
        "ftp://example.com/",
        "http://example.com",
        "http://example.com/" + "a" * 1500,
    ],
)
def test_build_request_rejects_bad_urls(url):
    with pytest.raises(ValueError):
        build_request(url, BenchConfig())


# parse_args


def test_parse_args_defaults():
    config = parse_args(["http://localhost/"])
    assert config == BenchConfig(url="http://localhost/")


def test_parse_args_options():
    config = parse_args(["-f", "-r", "-t", "5", "-c", "3", "--head", "-2", "http://h/"])
    assert config.force and config.force_reload
    assert config.benchtime == 5
    assert config.clients == 3
    assert config.method is Method.HEAD
    assert config.http_version == 2
    assert config.url == "http://h/"


def test_parse_args_options_after_url():
    config = parse_args(["http://h/", "--clients", "4", "-9"])
    assert config.clients == 4
    assert config.http_version == 0


def test_parse_args_zero_values_replaced():
    config = parse_args(["-c", "0", "-t", "abc", "http://h/"])
    assert config.clients == 1
    assert config.benchtime == 60


def test_parse_args_proxy():
    config = parse_args(["-p", "proxy.example.com:3128", "http://h/"])
    assert config.proxy_host == "proxy.example.com"
    assert config.proxy_port == 3128


def test_parse_args_proxy_without_port():
    config = parse_args(["--proxy", "proxy.example.com", "http://h/"])
    assert config.proxy_host == "proxy.example.com"
    assert config.proxy_port == 80


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["-f"],
        ["-h"],
        ["-?", "http://h/"],
        ["-p", ":3128", "http://h/"],
        ["-p", "proxy.example.com:", "http://h/"],
    ],
)
def test_parse_args_usage_errors(argv):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(argv)
    assert excinfo.value.code == 2


def test_parse_args_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-V"])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == "1.5"


# results


def test_result_addition_and_rates():
    total = BenchResult(30, 10, 100, 60) + BenchResult(40, 10, 200, 60)
    assert (total.speed, total.failed, total.bytes) == (70, 20, 300)
    assert total.pages_per_min == 90
    assert total.bytes_per_sec == 5
    assert "Requests: 70 succeeded, 20 failed." in total.report()


# network


def test_connect_socket(server_port):
    sock = connect_socket("127.0.0.1", server_port)
    try:
        assert sock.getpeername()[1] == server_port
    finally:
        sock.close()


def test_connect_socket_refused(closed_port):
    with pytest.raises(OSError):
        connect_socket("127.0.0.1", closed_port)


def test_bench_core_reads_responses(server_port):
    config = BenchConfig(benchtime=1)
    request, _, _ = build_request(f"http://127.0.0.1:{server_port}/", config)
    result = bench_core("127.0.0.1", server_port, request, config)
    assert result.speed > 0
    assert result.bytes >= (result.speed - 1) * len(RESPONSE)


def test_bench_core_http09(server_port):
    config = BenchConfig(benchtime=1, http_version=0)
    request, _, _ = build_request(f"http://127.0.0.1:{server_port}/", config)
    result = bench_core("127.0.0.1", server_port, request, config)
    assert result.speed > 0
    assert result.bytes > 0


def test_bench_core_force_reads_nothing(server_port):
    config = BenchConfig(benchtime=1, force=True)
    request, _, _ = build_request(f"http://127.0.0.1:{server_port}/", config)
    result = bench_core("127.0.0.1", server_port, request, config)
    assert result.speed > 0
    assert result.bytes == 0


def test_bench_core_counts_failures(closed_port):
    config = BenchConfig(benchtime=1)
    result = bench_core("127.0.0.1", closed_port, "GET /\r\n", config)
    assert result.speed == 0
    assert result.failed > 0


def test_run_bench_sums_clients(server_port):
    config = BenchConfig(benchtime=1, clients=2)
    request, host, port = build_request(f"http://127.0.0.1:{server_port}/", config)
    result = run_bench(config, host, port, request)
    assert result.speed > 0
    assert result.benchtime == 1


def test_run_bench_unreachable(closed_port):
    with pytest.raises(OSError):
        run_bench(BenchConfig(benchtime=1), "127.0.0.1", closed_port, "GET /\r\n")


# main


def test_main_without_arguments():
    assert main([]) == 2


def test_main_version():
    assert main(["--version"]) == 0


def test_main_invalid_url():
    assert main(["not-a-url"]) == 2


def test_main_unreachable(closed_port):
    assert main(["-t", "1", f"http://127.0.0.1:{closed_port}/"]) == 1


def test_main_runs(server_port, capsys):
    assert main(["-t", "1", f"http://127.0.0.1:{server_port}/"]) == 0
    out = capsys.readouterr().out
    assert "Benchmarking: GET" in out
    assert "1 client, running 1 sec." in out
    assert "pages/min" in out