"""
Integration tests: a real TodoServer on a loopback socket.
"""

import http.client
import json
import os
import queue
import re
import signal
import socket
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from todoserver import ServerConfig, ServerState, create_app
from todoserver.__main__ import main
from todoserver.errors import StartupError
from todoserver.http.response import ResponseBuilder


class TestEndToEnd:
    """The full CRUD lifecycle over HTTP."""

    def test_crud_scenario(self, live_server):
        status, headers, body = live_server.request("POST", "/todos", {"title": "buy milk"})
        assert status == 201
        assert headers["Content-Type"] == "application/json"
        assert json.loads(body) == {"id": 1, "title": "buy milk", "completed": False}

        status, _, body = live_server.request("GET", "/todos")
        assert status == 200
        assert json.loads(body) == [{"id": 1, "title": "buy milk", "completed": False}]

        status, _, body = live_server.request(
            "PUT", "/todos/1", {"title": "buy oat milk", "completed": True}
        )
        assert status == 200
        assert json.loads(body)["completed"] is True

        status, headers, body = live_server.request("DELETE", "/todos/1")
        assert status == 204
        assert body == b""
        assert "Content-Length" not in headers

        status, _, body = live_server.request("GET", "/todos/1")
        assert status == 404
        assert body == b"not found\n"

        status, _, body = live_server.request("GET", "/metrics")
        assert status == 200
        assert json.loads(body) == {"requests": 6, "total_todos": 0}

    def test_response_headers(self, live_server):
        status, headers, body = live_server.request("GET", "/healthz")

        assert status == 200
        assert body == b"ok"
        assert headers["Server"].startswith("TodoServer/")
        assert "Date" in headers
        assert len(headers["X-Request-ID"]) == 8

    def test_method_not_allowed(self, live_server):
        status, headers, body = live_server.request("PATCH", "/todos/1")

        assert status == 405
        assert headers["Allow"] == "DELETE, GET, PUT"
        assert body == b"method not allowed\n"

    def test_concurrent_creates(self, live_server):
        ids = []
        errors = []
        lock = threading.Lock()

        def worker(n):
            try:
                for i in range(5):
                    status, _, body = live_server.request(
                        "POST", "/todos", {"title": f"task {n}-{i}"}
                    )
                    assert status == 201
                    with lock:
                        ids.append(json.loads(body)["id"])
            except Exception as e:
                with lock:
                    errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert sorted(ids) == list(range(1, 51))
        _, _, body = live_server.request("GET", "/todos")
        assert len(json.loads(body)) == 50


class TestConnectionHandling:
    """Keep-alive and malformed input."""

    def test_keep_alive_reuses_connection(self, live_server):
        conn = live_server.connection()
        try:
            conn.request("POST", "/todos", body=json.dumps({"title": "a"}))
            first = conn.getresponse()
            first.read()
            assert first.status == 201
            assert first.getheader("Connection") == "keep-alive"

            conn.request("GET", "/todos/1")
            second = conn.getresponse()
            assert second.status == 200
            assert json.loads(second.read())["title"] == "a"
        finally:
            conn.close()

    def test_connection_close_honored(self, live_server):
        response = live_server.raw(
            b"GET /healthz HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n"
        )

        assert response.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Connection: close\r\n" in response
        assert response.endswith(b"\r\n\r\nok")

    def test_malformed_request(self, live_server):
        response = live_server.raw(b"this is not http\r\n\r\n")

        assert response.startswith(b"HTTP/1.1 400 Bad Request\r\n")
        assert b"Connection: close\r\n" in response
        assert response.endswith(b"bad request\n")

    def test_unsupported_version(self, live_server):
        response = live_server.raw(b"GET /healthz HTTP/2.0\r\n\r\n")
        assert response.startswith(b"HTTP/1.1 505 ")

    def test_chunked_body_refused(self, live_server):
        response = live_server.raw(
            b"POST /todos HTTP/1.1\r\nHost: t\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"d\r\n{\"title\":\"x\"}\r\n0\r\n\r\n"
        )

        assert response.startswith(b"HTTP/1.1 501 Not Implemented\r\n")
        assert b"Connection: close\r\n" in response
        assert response.endswith(b"not implemented\n")
        # The chunk data is never read as a second request
        assert response.count(b"HTTP/1.1 ") == 1

    def test_chunked_body_cannot_carry_a_request(self, live_server):
        status, _, _ = live_server.request("POST", "/todos", {"title": "keep me"})
        assert status == 201

        response = live_server.raw(
            b"POST /todos HTTP/1.1\r\nHost: t\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"0\r\n\r\n"
            b"DELETE /todos/1 HTTP/1.1\r\nHost: t\r\n\r\n"
        )
        assert response.count(b"HTTP/1.1 ") == 1
        assert response.startswith(b"HTTP/1.1 501 ")

        status, _, body = live_server.request("GET", "/todos/1")
        assert status == 200
        assert json.loads(body)["title"] == "keep me"

    def test_unknown_method_is_405(self, live_server):
        response = live_server.raw(b"BREW /todos HTTP/1.1\r\nConnection: close\r\n\r\n")

        assert response.startswith(b"HTTP/1.1 405 Method Not Allowed\r\n")
        assert b"Allow: GET, POST\r\n" in response

    def test_request_too_large(self, start_server):
        running = start_server(max_request_size=256)
        response = running.raw(
            b"POST /todos HTTP/1.1\r\nContent-Length: 1000\r\n\r\n" + b"x" * 1000
        )
        assert response.startswith(b"HTTP/1.1 413 ")

    def test_handler_crash_is_500(self, start_server):
        def add_boom(server):
            @server.router.get("/boom")
            def boom(request):
                raise RuntimeError("boom")

        running = start_server(setup=add_boom)

        status, _, body = running.request("GET", "/boom")
        assert status == 500
        assert body == b"internal server error\n"

        # The server keeps serving after a handler crash
        status, _, _ = running.request("GET", "/healthz")
        assert status == 200


class TestLifecycle:
    """Startup failure and graceful shutdown."""

    def test_not_started(self, app):
        assert app.state is ServerState.STARTING
        assert app.shutdown() is False
        assert app.state is ServerState.STARTING

    def test_states(self, start_server):
        running = start_server()
        server = running.server
        assert server.state is ServerState.SERVING
        assert server.address[1] != 0

        running.stop()
        assert server.state is ServerState.STOPPED
        assert server.shutdown() is False

    def test_port_in_use(self, config):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            server = create_app(config.merge(port=port))
            with pytest.raises(StartupError):
                server.run()

            assert server.state is ServerState.STOPPED
            assert server.wait_until_serving(timeout=0) is False
        finally:
            blocker.close()

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            create_app(ServerConfig(port=-5))

    def test_drain_waits_for_in_flight(self, start_server):
        entered = threading.Event()
        release = threading.Event()

        def add_slow(server):
            @server.router.get("/slow")
            def slow(request):
                entered.set()
                release.wait(timeout=10)
                return ResponseBuilder().text("done").build()

        running = start_server(setup=add_slow, shutdown_timeout=5.0)
        result = {}

        def client():
            result["response"] = running.request("GET", "/slow")

        thread = threading.Thread(target=client)
        thread.start()
        assert entered.wait(timeout=5)

        assert running.server.shutdown() is True
        assert running.server.state is ServerState.DRAINING
        assert running.server.in_flight == 1

        release.set()
        thread.join(timeout=5)

        assert running.server.wait_until_stopped(timeout=5)
        status, headers, body = result["response"]
        assert status == 200
        assert body == b"done"
        assert headers["Connection"] == "close"

    def test_drain_abandons_after_grace_period(self, start_server):
        entered = threading.Event()
        release = threading.Event()

        def add_stuck(server):
            @server.router.get("/stuck")
            def stuck(request):
                entered.set()
                release.wait(timeout=10)
                return ResponseBuilder().text("late").build()

        running = start_server(setup=add_stuck, shutdown_timeout=0.3)

        def client():
            try:
                running.request("GET", "/stuck")
            except OSError:
                pass

        thread = threading.Thread(target=client, daemon=True)
        thread.start()
        try:
            assert entered.wait(timeout=5)

            start = time.monotonic()
            running.server.shutdown()
            assert running.server.wait_until_stopped(timeout=5)
            elapsed = time.monotonic() - start

            assert 0.2 <= elapsed < 3.0
            assert running.server.in_flight == 1
        finally:
            release.set()
            thread.join(timeout=5)

    def test_idle_keep_alive_closed_on_shutdown(self, start_server):
        running = start_server(keep_alive_timeout=30.0, shutdown_timeout=5.0)

        with socket.create_connection(("127.0.0.1", running.port), timeout=5) as sock:
            sock.sendall(b"GET /healthz HTTP/1.1\r\nHost: t\r\n\r\n")
            first = sock.recv(8192)
            assert first.startswith(b"HTTP/1.1 200 OK")

            start = time.monotonic()
            running.server.shutdown()

            # The idle connection is closed instead of waiting out keep-alive
            assert sock.recv(8192) == b""
            assert running.server.wait_until_stopped(timeout=5)
            assert time.monotonic() - start < 3.0


class TestCommandLine:
    """The installed entry point: exit codes and signal handling."""

    SRC = str(Path(__file__).resolve().parents[2] / "src")

    @pytest.fixture
    def clean_env(self, monkeypatch):
        for name in list(os.environ):
            if name.startswith("TODO_"):
                monkeypatch.delenv(name)

    def test_port_in_use_exits_1(self, clean_env):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            assert main(["-H", "127.0.0.1", "-p", str(port)]) == 1
        finally:
            blocker.close()

    def test_invalid_port_exits_2(self, clean_env):
        with pytest.raises(SystemExit) as exc_info:
            main(["-p", "-5"])
        assert exc_info.value.code == 2

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_sigint_shuts_down_cleanly(self):
        env = {k: v for k, v in os.environ.items() if not k.startswith("TODO_")}
        env["PYTHONPATH"] = os.pathsep.join(
            p for p in (self.SRC, env.get("PYTHONPATH")) if p
        )
        proc = subprocess.Popen(
            [sys.executable, "-m", "todoserver", "-H", "127.0.0.1", "-p", "0"],
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
        )
        lines = queue.Queue()
        output = []

        def pump():
            for line in proc.stderr:
                output.append(line)
                lines.put(line)

        reader = threading.Thread(target=pump, daemon=True)
        reader.start()
        try:
            port = None
            deadline = time.monotonic() + 10
            while port is None and time.monotonic() < deadline:
                try:
                    line = lines.get(timeout=0.5)
                except queue.Empty:
                    continue
                found = re.search(r"listening on [\d.]+:(\d+)", line)
                if found:
                    port = int(found.group(1))
            assert port is not None, "".join(output)

            # A served request means the accept loop, and its signal
            # handlers, are in place
            conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
            try:
                conn.request("GET", "/healthz")
                assert conn.getresponse().status == 200
            finally:
                conn.close()

            proc.send_signal(signal.SIGINT)
            assert proc.wait(timeout=10) == 0
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            reader.join(timeout=5)

        log = "".join(output)
        assert "Shutdown signal received (SIGINT)" in log
        assert "Goodbye" in log
