"""Port binding and real-socket server lifecycle tests."""

import socket
import threading

import httpx
import pytest

from reviewgate_core.errors import PortExhausted
from reviewgate_core.server import PORT_HINT, SessionServer, bind_socket
from reviewgate_store.local import LocalAssetStore

PLAN = "# Plan\n\n1. Do the thing\n"


@pytest.fixture
def occupied_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def _config(**overrides):
    config = {
        "origin": "claude-code",
        "remote": False,
        "port": 0,
        "port_retries": 3,
        "port_retry_delay": 0.0,
        "sharing_enabled": True,
        "share_base_url": "https://share.reviewgate.dev",
        "client_bundle": None,
    }
    config.update(overrides)
    return config


class TestBindSocket:
    def test_random_port(self):
        sock = bind_socket("127.0.0.1", 0)
        try:
            assert sock.getsockname()[1] > 0
        finally:
            sock.close()

    def test_bounded_retry_on_busy_port(self, occupied_port, mocker):
        sleep = mocker.Mock()
        with pytest.raises(PortExhausted) as exc_info:
            bind_socket("127.0.0.1", occupied_port, attempts=5, delay=0.5, sleep=sleep)

        err = exc_info.value
        assert err.port == occupied_port
        assert err.attempts == 5
        assert "REVIEWGATE_PORT" in str(err)
        assert "REVIEWGATE_PORT" in PORT_HINT
        # Fixed delay between attempts, none after the last one.
        assert sleep.call_count == 4
        assert all(c.args == (0.5,) for c in sleep.call_args_list)

    def test_succeeds_once_port_frees_up(self, mocker):
        busy = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        port = busy.getsockname()[1]

        def free_port(delay):
            busy.close()

        sock = bind_socket("127.0.0.1", port, attempts=3, delay=0.1, sleep=mocker.Mock(side_effect=free_port))
        try:
            assert sock.getsockname()[1] == port
        finally:
            sock.close()

    def test_other_errors_propagate_immediately(self, mocker):
        sleep = mocker.Mock()
        with pytest.raises(OSError) as exc_info:
            bind_socket("203.0.113.1", 0, attempts=5, sleep=sleep)
        assert not isinstance(exc_info.value, PortExhausted)
        sleep.assert_not_called()


class TestSessionServer:
    def test_port_exhausted_creates_no_channel(self, occupied_port, tmp_path):
        server = SessionServer(PLAN, _config(port=occupied_port), store=LocalAssetStore(tmp_path))
        with pytest.raises(PortExhausted):
            server.start()
        assert server.channel is None
        server.stop()

    def test_wait_before_start_raises(self):
        with pytest.raises(RuntimeError):
            SessionServer(PLAN, _config()).wait_for_decision(0.01)

    def test_review_mode_requires_diff_session(self):
        with pytest.raises(ValueError):
            SessionServer("patch", _config(), mode="review")

    def test_live_session_resolves_first_of_two_concurrent_decisions(self, tmp_path):
        with SessionServer(PLAN, _config(), store=LocalAssetStore(tmp_path)) as server:
            assert server.url == f"http://localhost:{server.port}"
            base = f"http://127.0.0.1:{server.port}"

            session = httpx.get(f"{base}/session", timeout=5).json()
            assert session["document"] == PLAN
            assert "<html" in httpx.get(f"{base}/", timeout=5).text.lower()

            barrier = threading.Barrier(2)
            statuses = []

            def submit(approved):
                barrier.wait()
                resp = httpx.post(f"{base}/session/decision", json={"approved": approved}, timeout=5)
                statuses.append((resp.status_code, resp.json()))

            threads = [threading.Thread(target=submit, args=(flag,)) for flag in (True, False)]
            for t in threads:
                t.start()
            decision = server.wait_for_decision(timeout=5)
            for t in threads:
                t.join(5)

        assert decision is not None
        assert statuses == [(200, {"ok": True}), (200, {"ok": True})]
        assert decision.approved in (True, False)
        if not decision.approved:
            assert decision.feedback == "Plan rejected by user"

    def test_stop_is_idempotent_and_releases_port(self, tmp_path):
        server = SessionServer(PLAN, _config(), store=LocalAssetStore(tmp_path)).start()
        port = server.port
        server.stop()
        server.stop()

        sock = bind_socket("127.0.0.1", port, attempts=1)
        sock.close()

    def test_wait_timeout_returns_none(self, tmp_path):
        with SessionServer(PLAN, _config(), store=LocalAssetStore(tmp_path)) as server:
            assert server.wait_for_decision(timeout=0.05) is None
