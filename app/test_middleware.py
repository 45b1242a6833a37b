import logging
from unittest.mock import patch

from app.lifecycle import ShutdownState
from app.logging_setup import RequestIdFilter, current_request_id, request_id_var


def _add_request_id_route(client):
    async def whoami():
        return {"request_id": current_request_id()}

    client.app.add_api_route("/whoami", whoami)


class TestRequestContext:
    def test_generates_request_id(self, make_client):
        client = make_client()

        r = client.get("/")

        request_id = r.headers["X-Request-Id"]
        assert len(request_id) == 32
        int(request_id, 16)

    def test_incoming_request_id_is_kept(self, make_client):
        client = make_client()

        r = client.get("/", headers={"X-Request-Id": "abc-123"})

        assert r.headers["X-Request-Id"] == "abc-123"

    def test_request_id_visible_to_handlers(self, make_client):
        client = make_client()
        _add_request_id_route(client)

        r = client.get("/whoami", headers={"X-Request-Id": "corr-1"})

        assert r.json() == {"request_id": "corr-1"}
        assert current_request_id() is None

    def test_ids_differ_between_requests(self, make_client):
        client = make_client()

        first = client.get("/").headers["X-Request-Id"]
        second = client.get("/").headers["X-Request-Id"]

        assert first != second

    def test_logs_request_and_response_with_masked_headers(self, make_client):
        client = make_client()

        with patch("app.middleware.logger") as mock_logger:
            client.get(
                "/",
                headers={"Authorization": "Bearer s3cr3t", "Cookie": "sid=abc; theme=dark"},
            )

        messages = [c.args[0] for c in mock_logger.info.call_args_list]
        received = next(m for m in messages if m.startswith("Request received"))
        sent = next(m for m in messages if m.startswith("Response sent"))
        assert "s3cr3t" not in received
        assert "Bearer X" in received
        assert "sid=X" in received
        assert "status=200" in sent
        assert "responseTimeInMs=" in sent

    def test_skipped_paths_are_not_logged(self):
        from fastapi.testclient import TestClient

        from app.config import Config
        from app.server import create_app

        app = create_app(config=Config([{}]), log_skip_paths=["/"])
        client = TestClient(app)

        with patch("app.middleware.logger") as mock_logger:
            r = client.get("/")

        assert r.status_code == 200
        assert "X-Request-Id" in r.headers
        assert not any(
            c.args[0].startswith("Request received")
            for c in mock_logger.info.call_args_list
        )


class TestShutdownGuard:
    def test_keep_alive_allowed_while_running(self, make_client):
        client = make_client()

        r = client.get("/")

        assert r.headers.get("connection") != "close"

    def test_connection_closed_while_shutting_down(self, make_client):
        state = ShutdownState()
        client = make_client(shutdown_state=state)
        state.begin()

        r = client.get("/")

        assert r.status_code == 200
        assert r.headers["connection"] == "close"


class TestRequestIdFilter:
    def _record(self):
        return logging.LogRecord("app", logging.INFO, __file__, 1, "msg", None, None)

    def test_placeholder_outside_requests(self):
        record = self._record()

        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "-"

    def test_uses_current_request_id(self):
        token = request_id_var.set("req-42")
        try:
            record = self._record()
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"
