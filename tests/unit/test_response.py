"""
Unit tests for RouterResponse.
"""

from datetime import datetime, timezone

import pytest

from routekit.errors import RenderError, RequestCancelledError, ResponseFinalizedError
from routekit.http.response import (
    DispatchState,
    RouterResponse,
    format_http_date,
    plain_response,
)
from routekit.http.status_codes import HTTPStatus


class StubEngine:
    """Template engine returning a fixed string."""

    def __init__(self, text: str = "<p>rendered</p>", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    def render(self, name, context):
        self.calls.append((name, dict(context)))
        if self.error is not None:
            raise self.error
        return self.text


class TestRouterResponseWriting:
    """Status, headers and body before end()."""

    def test_new_response_is_empty(self):
        response = RouterResponse()

        assert response.status_code is None
        assert response.body == b""
        assert response.sent is False
        assert response.error is None

    def test_send_appends(self):
        """Body writes accumulate in call order."""
        response = RouterResponse()
        response.send("I'm here!\n").send(b"Me too!\n")

        assert response.body == b"I'm here!\nMe too!\n"

    def test_status_accepts_enum_and_int(self):
        response = RouterResponse()

        response.status(HTTPStatus.CREATED)
        assert response.status_code == 201

        response.status(418)
        assert response.status_code == 418

    def test_set_header_chaining(self):
        response = (RouterResponse()
            .set_header("X-One", "1")
            .set_header("X-Two", "2"))

        assert response.headers["x-one"] == "1"
        assert response.headers["X-TWO"] == "2"

    def test_send_json_sets_content_type(self):
        response = RouterResponse().send_json({"name": "World"})

        assert response.headers["Content-Type"] == "application/json"
        assert response.body == b'{"name": "World"}'

    def test_redirect_sets_location_and_ends(self):
        response = RouterResponse().redirect("http://www.ibm.com")

        assert response.status_code == 302
        assert response.headers["Location"] == "http://www.ibm.com"
        assert response.sent is True


class TestFinalization:
    """end() freezes the response."""

    def test_end_marks_sent(self):
        response = RouterResponse().end("done")

        assert response.sent is True
        assert response.body == b"done"
        assert response.state is DispatchState.FINALIZED

    def test_double_end_raises(self):
        """Ending twice is rejected and leaves the response unchanged."""
        response = RouterResponse().end("first")

        with pytest.raises(ResponseFinalizedError):
            response.end("second")

        assert response.body == b"first"

    @pytest.mark.parametrize("write", [
        lambda r: r.send("more"),
        lambda r: r.status(500),
        lambda r: r.headers.__setitem__("X-Late", "1"),
        lambda r: r.headers.__delitem__("Content-Type"),
    ])
    def test_writes_after_end_raise(self, write):
        response = RouterResponse()
        response.headers["Content-Type"] = "text/plain"
        response.status(200).end("body")

        with pytest.raises(ResponseFinalizedError):
            write(response)

        assert response.status_code == 200
        assert response.body == b"body"
        assert response.headers["Content-Type"] == "text/plain"

    def test_end_listeners_run_once(self):
        seen = []
        response = RouterResponse()
        response.on_end(lambda r: seen.append(r.status_code))
        response.status(204).end()

        with pytest.raises(ResponseFinalizedError):
            response.end()

        assert seen == [204]

    def test_failing_listener_does_not_break_end(self):
        def broken(_):
            raise RuntimeError("listener bug")

        response = RouterResponse()
        response.on_end(broken)
        response.end("ok")

        assert response.sent is True


class TestCancellation:
    """cancel() discards the response."""

    def test_writes_after_cancel_raise(self):
        response = RouterResponse()
        response.cancel()

        with pytest.raises(RequestCancelledError):
            response.send("late")
        with pytest.raises(RequestCancelledError):
            response.end()

        assert response.cancelled is True
        assert response.sent is False

    def test_cancel_is_idempotent(self):
        response = RouterResponse()
        response.cancel()
        response.cancel()

        assert response.cancelled is True


class TestDispatchState:
    """State derived from the response fields."""

    def test_progression(self):
        response = RouterResponse()
        assert response.state is DispatchState.UNMATCHED

        response._mark_matched()
        assert response.state is DispatchState.DISPATCHING

        response.error = ValueError("boom")
        assert response.state is DispatchState.ERRORED

        response.end()
        assert response.state is DispatchState.FINALIZED


class TestRender:
    """render() through the template engine."""

    def test_render_appends_and_sets_html(self):
        engine = StubEngine()
        response = RouterResponse(template_engine=engine)

        response.render("document", {"articles": []})

        assert response.body == b"<p>rendered</p>"
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert engine.calls == [("document", {"articles": []})]

    def test_render_keeps_explicit_content_type(self):
        response = RouterResponse(template_engine=StubEngine("x"))
        response.headers["Content-Type"] = "application/xhtml+xml"

        response.render("document")

        assert response.headers["Content-Type"] == "application/xhtml+xml"

    def test_render_without_engine_raises(self):
        with pytest.raises(RenderError):
            RouterResponse().render("document")

    def test_render_error_leaves_body_untouched(self):
        engine = StubEngine(error=RenderError("bad template", template="document"))
        response = RouterResponse(template_engine=engine)
        response.send("before")

        with pytest.raises(RenderError):
            response.render("document")

        assert response.body == b"before"


class TestSerialization:
    """to_bytes() wire format."""

    def test_status_line(self):
        response = RouterResponse().status(HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_unset_status_serializes_as_200(self):
        assert RouterResponse().status_line == "HTTP/1.1 200 OK"

    def test_to_bytes_includes_headers(self):
        response = RouterResponse()
        response.headers["X-Custom"] = "value"
        response.status(200).end("test")

        result = response.to_bytes()

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"Server: routekit/1.0\r\n" in result
        assert b"Date: " in result
        assert result.endswith(b"\r\n\r\ntest")

    def test_extra_headers_do_not_touch_response(self):
        """Connection headers are added after end() without a write."""
        response = RouterResponse().end("x")

        result = response.to_bytes(extra_headers={"Connection": "close"})

        assert b"Connection: close\r\n" in result
        assert "Connection" not in response.headers

    def test_format_http_date(self):
        dt = datetime(2026, 10, 19, 8, 5, 3, tzinfo=timezone.utc)

        assert format_http_date(dt) == "Mon, 19 Oct 2026 08:05:03 GMT"


class TestPlainResponse:

    def test_plain_response_is_ended(self):
        response = plain_response(HTTPStatus.SERVICE_UNAVAILABLE, "Request timed out")

        assert response.sent is True
        assert response.status_code == 503
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert response.body == b"Request timed out"
