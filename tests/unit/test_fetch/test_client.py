"""Unit tests for the Client facade and the composed conditional fetch."""

import ssl

import httpx
import pytest
from structlog.testing import capture_logs

from resilient_fetch.fetch.client import Client
from resilient_fetch.fetch.config import FetchConfig
from resilient_fetch.fetch.constants import MAX_BACKOFF_TIMEOUT
from resilient_fetch.fetch.errors import HostnameVerificationError
from resilient_fetch.fetch.metrics import FetchMetrics
from resilient_fetch.fetch.models import RetryBudget
from resilient_fetch.fetch.trust import TrustPolicy
from resilient_fetch.store.memory import MemoryStore
from tests.helpers.time import FIXED_LAST_MODIFIED_HTTP, FIXED_LAST_MODIFIED_MS
from tests.helpers.waiters import RecordingWaiter


URL = "http://cdn.example.com/datafile.json"


class ScriptedServer:
    """Mock transport handler replaying scripted responses."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Start each test with fresh metrics."""
    FetchMetrics.reset()


@pytest.fixture
def store() -> MemoryStore:
    """Create an empty marker store."""
    return MemoryStore()


def make_client(store: MemoryStore, server: ScriptedServer, **kwargs: object) -> Client:
    """Create a client whose connections reach ``server``."""
    return Client(store, transport=httpx.MockTransport(server), **kwargs)  # type: ignore[arg-type]


class TestPublicOperations:
    """Tests for the individual client operations."""

    def test_round_trip(self, store: MemoryStore) -> None:
        """Open, annotate, read, and persist using the public surface."""
        store.save_long(URL, 1000)
        server = ScriptedServer(
            httpx.Response(
                200, content=b"{}", headers={"Last-Modified": FIXED_LAST_MODIFIED_HTTP}
            )
        )
        client = make_client(store, server)

        connection = client.open_connection(URL)
        assert connection is not None
        with connection:
            client.set_if_modified_since(connection)
            body = client.read_stream(connection)
            client.save_last_modified(connection)

        assert body == "{}"
        assert server.requests[0].headers["If-Modified-Since"] == (
            "Thu, 01 Jan 1970 00:00:01 GMT"
        )
        assert store.get_long(URL, 0) == FIXED_LAST_MODIFIED_MS

    def test_open_failure_counted(self, store: MemoryStore) -> None:
        """Open failures return None and are counted."""
        client = Client(store)

        with capture_logs():
            assert client.open_connection("gopher://example.com/") is None

        assert FetchMetrics.get_instance().failures_total == {"CONNECTION_OPEN": 1}

    def test_trust_policy_applied_to_https(self, store: MemoryStore) -> None:
        """The client's trust policy is installed on HTTPS connections."""
        policy = TrustPolicy(ssl_context=ssl.create_default_context())
        client = make_client(store, ScriptedServer(), trust_policy=policy)

        with capture_logs():
            connection = client.open_connection("https://cdn.example.com/x")

        assert connection is not None
        assert connection.hostname_verifier is not None
        connection.close()

    def test_execute_delegates_to_backoff(self, store: MemoryStore) -> None:
        """execute returns the first successful value."""
        client = Client(store)
        results = iter([None, False, "done"])
        waiter = RecordingWaiter()

        value = client.execute(lambda: next(results), 2, 5, cancel_token=waiter)

        assert value == "done"
        assert waiter.waits == [2, 4]


class TestFetch:
    """Tests for the composed conditional fetch."""

    def test_first_fetch_sends_no_precondition(self, store: MemoryStore) -> None:
        """A URL without a marker is fetched unconditionally and stored."""
        server = ScriptedServer(
            httpx.Response(
                200,
                content=b'{"revision": 1}',
                headers={"Last-Modified": FIXED_LAST_MODIFIED_HTTP},
            )
        )
        client = make_client(store, server)

        result = client.fetch(URL, cancel_token=RecordingWaiter())

        assert result is not None
        assert result.status_code == 200
        assert result.body == '{"revision": 1}'
        assert result.not_modified is False
        assert result.last_modified == FIXED_LAST_MODIFIED_MS
        assert "If-Modified-Since" not in server.requests[0].headers
        assert store.get_long(URL, 0) == FIXED_LAST_MODIFIED_MS

    def test_not_modified(self, store: MemoryStore) -> None:
        """A 304 returns no body and keeps the stored marker."""
        store.save_long(URL, FIXED_LAST_MODIFIED_MS)
        server = ScriptedServer(httpx.Response(304))
        client = make_client(store, server)

        result = client.fetch(URL, cancel_token=RecordingWaiter())

        assert result is not None
        assert result.not_modified is True
        assert result.body is None
        assert server.requests[0].headers["If-Modified-Since"] == (
            FIXED_LAST_MODIFIED_HTTP
        )
        assert store.get_long(URL, 0) == FIXED_LAST_MODIFIED_MS
        assert FetchMetrics.get_instance().not_modified_total == 1

    def test_empty_body_without_last_modified(self, store: MemoryStore) -> None:
        """An empty 200 is a success; the missing header stores nothing."""
        client = make_client(store, ScriptedServer(httpx.Response(200, content=b"")))

        with capture_logs() as logs:
            result = client.fetch(URL, cancel_token=RecordingWaiter())

        assert result is not None
        assert result.body == ""
        assert store.keys() == []
        assert "last_modified_missing" in [e["event"] for e in logs]

    def test_retries_with_fresh_connection(self, store: MemoryStore) -> None:
        """Each attempt reopens the connection and reapplies the marker."""
        store.save_long(URL, 1000)
        server = ScriptedServer(
            httpx.ConnectError("refused"),
            httpx.Response(503),
            httpx.Response(200, content=b"ok"),
        )
        client = make_client(store, server)
        waiter = RecordingWaiter()

        with capture_logs():
            result = client.fetch(URL, timeout=2, power=3, cancel_token=waiter)

        assert result is not None
        assert result.body == "ok"
        assert waiter.waits == [2, 4]
        assert len(server.requests) == 3
        assert len({id(request) for request in server.requests}) == 3
        assert all("If-Modified-Since" in r.headers for r in server.requests)

    def test_exhausted_returns_none(self, store: MemoryStore) -> None:
        """When every attempt fails the result is None."""
        server = ScriptedServer(*[httpx.Response(500) for _ in range(3)])
        client = make_client(store, server)
        waiter = RecordingWaiter()

        with capture_logs() as logs:
            result = client.fetch(URL, timeout=2, power=3, cancel_token=waiter)

        assert result is None
        assert waiter.waits == [2, 4, 8]
        assert len(server.requests) == 3
        complete = [e for e in logs if e["event"] == "fetch_complete"]
        assert complete[0]["status_code"] is None

    def test_send_errors_are_failed_attempts(self, store: MemoryStore) -> None:
        """Network and verification errors on send are logged at info, not raised."""
        server = ScriptedServer(
            httpx.ConnectError("refused"),
            HostnameVerificationError("cdn.example.com"),
            httpx.Response(200, content=b"ok"),
        )
        client = make_client(store, server)

        with capture_logs() as logs:
            result = client.fetch(
                URL, timeout=2, power=3, cancel_token=RecordingWaiter()
            )

        assert result is not None
        send_failures = [e for e in logs if e["event"] == "send_failed"]
        assert [e["error_type"] for e in send_failures] == [
            "ConnectError",
            "HostnameVerificationError",
        ]
        assert all(e["log_level"] == "info" for e in send_failures)
        assert "request_failed" not in [e["event"] for e in logs]

    def test_each_failed_attempt_counted_once(self, store: MemoryStore) -> None:
        """Failures are classified by cause and never also as OPERATION."""
        server = ScriptedServer(
            httpx.ConnectError("refused"),
            httpx.Response(503),
            httpx.Response(200, content=b"\xff\xfe"),
        )
        client = make_client(store, server)

        with capture_logs():
            result = client.fetch(
                URL, timeout=2, power=3, cancel_token=RecordingWaiter()
            )

        assert result is None
        metrics = FetchMetrics.get_instance()
        assert metrics.attempts_total == 3
        assert metrics.failures_total == {
            "CONNECTION_OPEN": 1,
            "HTTP_STATUS": 1,
            "STREAM_READ": 1,
        }

    def test_unexpected_operation_error_still_counted(
        self, store: MemoryStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An error outside the classified paths is counted as OPERATION."""
        client = make_client(store, ScriptedServer())

        def explode(url: str) -> None:
            raise RuntimeError("bug")

        monkeypatch.setattr(client, "_fetch_once", explode)

        with capture_logs() as logs:
            result = client.fetch(
                URL, timeout=2, power=1, cancel_token=RecordingWaiter()
            )

        assert result is None

        assert FetchMetrics.get_instance().failures_total == {"OPERATION": 1}
        assert "request_failed" in [e["event"] for e in logs]

    def test_cancelled_returns_none(self, store: MemoryStore) -> None:
        """Cancelling the first wait ends the fetch after one attempt."""
        server = ScriptedServer(httpx.Response(500), httpx.Response(200))
        client = make_client(store, server)

        with capture_logs():
            result = client.fetch(
                URL, timeout=2, power=3, cancel_token=RecordingWaiter(cancel_on_wait=1)
            )

        assert result is None
        assert len(server.requests) == 1

    def test_defaults_from_config(self, store: MemoryStore) -> None:
        """Without explicit arguments the configured budget is used."""
        config = FetchConfig(backoff=RetryBudget(base_delay_seconds=3, retry_exponent=2))
        server = ScriptedServer(httpx.Response(500), httpx.Response(500))
        client = make_client(store, server, config=config)
        waiter = RecordingWaiter()

        with capture_logs():
            client.fetch(URL, cancel_token=waiter)

        assert waiter.waits == [3, 9]

    def test_default_ceiling(self) -> None:
        """The default budget tops out at 2 ** 5 seconds."""
        assert MAX_BACKOFF_TIMEOUT == 32
        assert FetchConfig().backoff.max_delay_seconds == MAX_BACKOFF_TIMEOUT


class TestInvalidConnections:
    """Tests for operations given no connection."""

    def test_none_connection_is_counted(self, store: MemoryStore) -> None:
        """Every operation tolerates None and counts it."""
        client = Client(store)

        with capture_logs() as logs:
            client.set_if_modified_since(None)
            client.save_last_modified(None)
            assert client.read_stream(None) is None

        assert [e["event"] for e in logs] == ["invalid_connection"] * 3
        assert FetchMetrics.get_instance().failures_total == {
            "INVALID_CONNECTION": 3
        }
        assert store.keys() == []
