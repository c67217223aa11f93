"""
Unit tests for the handler chain and the bundled middleware.
"""

import json
import logging

import pytest

from routekit.http.request import HTTPRequest
from routekit.http.response import RouterResponse
from routekit.http.router import Router
from routekit.middleware import (
    BasicAuthMiddleware,
    HandlerChain,
    LoggingMiddleware,
    RouterMiddleware,
    SingleUseContinuation,
)
from routekit.middleware.base import check_handlers, handler_name


def make_request(method: str = "GET", path: str = "/", **headers) -> HTTPRequest:
    return HTTPRequest(method=method, path=path, headers=headers, client_address=("10.0.0.1", 5000))


def ending(text: str = "ok"):
    def handler(request, response, next):
        response.end(text)
        next()
    return handler


class TestSingleUseContinuation:

    def test_second_call_is_ignored(self, caplog):
        steps = []
        cont = SingleUseContinuation(lambda: steps.append(1), owner="twice")

        with caplog.at_level(logging.WARNING):
            cont()
            cont()

        assert steps == [1]
        assert cont.called is True
        assert "twice" in caplog.text


class TestHandlerChain:

    def test_done_called_after_last_handler(self):
        done = []
        chain = HandlerChain([lambda req, res, nxt: nxt()] * 3)

        chain.run(make_request(), RouterResponse(), done=lambda: done.append(True))

        assert done == [True]
        assert len(chain) == 3

    def test_stop_on_error(self):
        done = []

        def fail(request, response, next):
            response.error = RuntimeError("x")
            next()

        chain = HandlerChain([fail, ending()])
        response = RouterResponse()
        chain.run(make_request(), response, done=lambda: done.append(True))

        assert done == []
        assert response.sent is False

    def test_error_chain_keeps_going(self):
        def fail(request, response, next):
            response.error = RuntimeError("x")
            next()

        chain = HandlerChain([fail, ending("handled")], stop_on_error=False)
        response = RouterResponse()
        chain.run(make_request(), response, done=lambda: None)

        assert response.body == b"handled"

    def test_exception_is_recorded_not_raised(self):
        def crash(request, response, next):
            raise ValueError("bad")

        response = RouterResponse()
        HandlerChain([crash]).run(make_request(), response, done=lambda: None)

        assert isinstance(response.error, ValueError)

    def test_exception_keeps_existing_error(self):
        first = RuntimeError("first")

        def crash(request, response, next):
            response.error = first
            raise ValueError("second")

        response = RouterResponse()
        HandlerChain([crash]).run(make_request(), response, done=lambda: None)

        assert response.error is first

    def test_check_handlers(self):
        with pytest.raises(ValueError):
            check_handlers([])
        with pytest.raises(TypeError):
            check_handlers([42])

    def test_handler_name(self):
        def hello(request, response, next):
            pass

        assert handler_name(hello) == "hello"
        assert handler_name(BasicAuthMiddleware()) == "BasicAuthMiddleware"


class TestRouterMiddleware:

    def test_abstract_handle(self):
        with pytest.raises(TypeError):
            RouterMiddleware()

    def test_callable(self):
        class Passthrough(RouterMiddleware):
            def handle(self, request, response, next):
                response.send("seen")
                next()

        called = []
        response = RouterResponse()
        Passthrough()(make_request(), response, lambda: called.append(True))

        assert response.body == b"seen"
        assert called == [True]


class TestBasicAuthMiddleware:

    def test_logs_authorization_and_continues(self, caplog):
        called = []

        with caplog.at_level(logging.INFO, logger="routekit.middleware.auth"):
            BasicAuthMiddleware().handle(
                make_request(Authorization="Basic dXNlcjpwYXNz"),
                RouterResponse(),
                lambda: called.append(True),
            )

        assert called == [True]
        assert "Authorization: Basic dXNlcjpwYXNz" in caplog.text

    def test_missing_header_logs_none(self, caplog):
        with caplog.at_level(logging.INFO, logger="routekit.middleware.auth"):
            BasicAuthMiddleware().handle(make_request(), RouterResponse(), lambda: None)

        assert "Authorization: None" in caplog.text


class TestLoggingMiddleware:

    def test_request_id_header(self):
        router = Router()
        router.all(LoggingMiddleware())
        router.get("/x", ending())

        response = router.dispatch(make_request("GET", "/x"))

        assert len(response.headers["X-Request-ID"]) == 8

    def test_text_line_written_on_end(self, caplog):
        router = Router()
        router.all(LoggingMiddleware())
        router.get("/x", ending("12345"))

        with caplog.at_level(logging.INFO, logger="routekit.access"):
            router.dispatch(make_request("GET", "/x"))

        records = [r for r in caplog.records if r.name == "routekit.access"]
        assert len(records) == 1
        assert '"GET /x" 200 5' in records[0].getMessage()
        assert records[0].getMessage().startswith("10.0.0.1 - - [")

    def test_json_line_sees_final_status(self, caplog):
        """The fallback's 404 is what gets logged."""
        router = Router()
        router.all(LoggingMiddleware(log_format="json"))

        with caplog.at_level(logging.INFO, logger="routekit.access"):
            router.dispatch(make_request("GET", "/missing"))

        records = [r for r in caplog.records if r.name == "routekit.access"]
        entry = json.loads(records[0].getMessage())
        assert entry["status_code"] == 404
        assert entry["path"] == "/missing"
        assert entry["client_ip"] == "10.0.0.1"

    def test_skip_paths(self, caplog):
        router = Router()
        router.all(LoggingMiddleware(skip_paths=["/health"]))
        router.get("/health", ending())

        with caplog.at_level(logging.INFO, logger="routekit.access"):
            router.dispatch(make_request("GET", "/health"))

        assert not [r for r in caplog.records if r.name == "routekit.access"]

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")
