"""
Unit tests for the router: entry order, continuations, error and fallback
dispatch.
"""

import threading

import pytest

from routekit.errors import ApplicationError, HandlerError
from routekit.http.request import HTTPRequest
from routekit.http.router import Router
from routekit.middleware.base import RouterMiddleware


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def recorder(calls: list, label: str, end: bool = False, text: str = None):
    """Handler that records its label, optionally writes/ends, then continues."""
    def handler(request, response, next):
        calls.append(label)
        if text is not None:
            response.send(text)
        if end:
            response.end()
        next()
    handler.__name__ = label
    return handler


class TestRegistration:
    """Adding entries."""

    def test_entries_keep_registration_order(self):
        router = Router()
        router.get("/a", recorder([], "a"))
        router.post("/b", recorder([], "b"))
        router.all(recorder([], "c"))

        assert [e.method for e in router.entries] == ["GET", "POST", None]
        assert len(router) == 3

    def test_decorator_registration(self):
        router = Router()

        @router.get("/hello")
        def hello(request, response, next):
            response.end("hi")
            next()

        assert hello.__name__ == "hello"
        assert router.dispatch(make_request("GET", "/hello")).body == b"hi"

    def test_register_accepts_all_keyword(self):
        router = Router()
        entry = router.register("all", "/x", recorder([], "x"))

        assert entry.method is None

    def test_register_without_handlers_raises(self):
        router = Router()

        with pytest.raises(ValueError):
            router.register("GET", "/x")

    def test_non_callable_handler_raises(self):
        with pytest.raises(TypeError):
            Router().get("/x", "not a handler")

    def test_duplicate_param_names_rejected(self):
        with pytest.raises(ValueError):
            Router().get("/a/:id/b/:id", recorder([], "x"))

    def test_describe_routes(self):
        router = Router()
        router.get("/hello", recorder([], "hello"))
        router.error(recorder([], "oops"))
        router.fallback(recorder([], "missing"))

        lines = router.describe_routes()

        assert any("GET" in line and "/hello" in line and "hello" in line for line in lines)
        assert any(line.startswith("ERROR") and "oops" in line for line in lines)
        assert any(line.startswith("FALLBACK") and "missing" in line for line in lines)


class TestDispatchOrder:
    """Entries and chains run in order, driven by next()."""

    def test_chain_runs_in_order(self):
        calls = []
        router = Router()
        router.get("/x", recorder(calls, "A"), recorder(calls, "B"), recorder(calls, "C", end=True))

        router.dispatch(make_request("GET", "/x"))

        assert calls == ["A", "B", "C"]

    def test_next_reaches_later_entries(self):
        """Every matching entry is evaluated in registration order."""
        calls = []
        router = Router()
        router.all(recorder(calls, "mw"))
        router.get("/x", recorder(calls, "first"))
        router.get("/other", recorder(calls, "skipped"))
        router.get("/x", recorder(calls, "second", end=True))

        router.dispatch(make_request("GET", "/x"))

        assert calls == ["mw", "first", "second"]

    def test_method_filter(self):
        calls = []
        router = Router()
        router.post("/x", recorder(calls, "post"))
        router.get("/x", recorder(calls, "get", end=True))

        router.dispatch(make_request("GET", "/x"))

        assert calls == ["get"]

    def test_handler_that_does_not_continue_halts(self):
        calls = []
        router = Router()

        def stop(request, response, next):
            calls.append("stop")
            response.end("stopped")

        router.get("/x", stop, recorder(calls, "never"))
        router.get("/x", recorder(calls, "never either"))

        response = router.dispatch(make_request("GET", "/x"))

        assert calls == ["stop"]
        assert response.body == b"stopped"

    def test_next_called_twice_is_ignored(self):
        calls = []
        router = Router()

        def twice(request, response, next):
            next()
            next()

        router.get("/x", twice, recorder(calls, "after", end=True))

        router.dispatch(make_request("GET", "/x"))

        assert calls == ["after"]

    def test_params_bound_per_entry(self):
        seen = []
        router = Router()

        @router.get("/users/:user")
        def user(request, response, next):
            seen.append(dict(request.params))
            next()

        @router.all()
        def after(request, response, next):
            seen.append(dict(request.params))
            response.end()
            next()

        router.dispatch(make_request("GET", "/users/alice"))

        assert seen == [{"user": "alice"}, {}]

    def test_prefix_mount_sets_remaining_path(self):
        seen = []
        router = Router()

        def mounted(request, response, next):
            seen.append(request.remaining_path)
            response.end()
            next()

        router.use("/static", mounted)

        router.dispatch(make_request("GET", "/static/css/site.css"))
        router.dispatch(make_request("GET", "/staticfiles"))

        assert seen == ["/css/site.css"]

    def test_class_based_middleware(self):
        class Tag(RouterMiddleware):
            def handle(self, request, response, next):
                response.headers["X-Tag"] = "1"
                next()

        router = Router()
        router.all(Tag())
        router.get("/x", recorder([], "x", end=True))

        response = router.dispatch(make_request("GET", "/x"))

        assert response.headers["X-Tag"] == "1"

    @pytest.mark.parametrize("path", ["/x", "/missing"])
    def test_dispatch_is_repeatable(self, path):
        """Dispatching the same request twice gives byte-identical responses."""
        router = Router()
        router.get("/x", recorder([], "x", end=True, text="same"))
        fixed_date = {"Date": "Mon, 19 Oct 2026 12:00:00 GMT"}

        first = router.dispatch(make_request("GET", path))
        second = router.dispatch(make_request("GET", path))

        assert first.to_bytes(extra_headers=fixed_date) == second.to_bytes(extra_headers=fixed_date)

    def test_sample_get_is_repeatable(self, sample_router):
        fixed_date = {"Date": "Mon, 19 Oct 2026 12:00:00 GMT"}

        first = sample_router.dispatch(make_request("GET", "/users/alice"))
        second = sample_router.dispatch(make_request("GET", "/users/alice"))

        assert first.to_bytes(extra_headers=fixed_date) == second.to_bytes(extra_headers=fixed_date)


class TestErrorDispatch:
    """response.error routes to the error handlers."""

    def test_error_short_circuits_and_error_handler_answers(self):
        calls = []
        router = Router()

        def fail(request, response, next):
            calls.append("fail")
            response.status(500).send("partial")
            response.error = ApplicationError("RouterTestDomain", 1)
            next()

        router.get("/error", fail, recorder(calls, "skipped"))
        router.get("/error", recorder(calls, "skipped too"))

        @router.error()
        def handle_error(request, response, next):
            calls.append("error handler")
            response.send(f"Caught the error: {response.error}").end()
            next()

        response = router.dispatch(make_request("GET", "/error"))

        assert calls == ["fail", "error handler"]
        assert response.status_code == 500
        assert response.body == b"Caught the error: Error Domain=RouterTestDomain Code=1"

    def test_every_error_handler_runs(self):
        calls = []
        router = Router()

        def fail(request, response, next):
            response.error = ApplicationError("D")
            next()

        router.get("/x", fail)
        router.error(recorder(calls, "one"), recorder(calls, "two", end=True))

        router.dispatch(make_request("GET", "/x"))

        assert calls == ["one", "two"]

    def test_uncaught_exception_becomes_error(self):
        router = Router()

        def crash(request, response, next):
            raise KeyError("missing")

        router.get("/x", crash)
        router.error(lambda req, res, nxt: (res.send(type(res.error).__name__).end(), nxt()))

        response = router.dispatch(make_request("GET", "/x"))

        assert response.body == b"KeyError"

    def test_error_without_handler_finalizes_500(self):
        router = Router()

        def fail(request, response, next):
            response.error = ApplicationError("D")
            next()

        router.get("/x", fail)

        response = router.dispatch(make_request("GET", "/x"))

        assert response.sent is True
        assert response.status_code == 500

    def test_handler_catches_finalize_error(self):
        """A HandlerError caught by the handler does not become an error."""
        router = Router()

        def double_end(request, response, next):
            response.end("once")
            try:
                response.end("twice")
            except HandlerError:
                pass
            next()

        router.get("/x", double_end)

        response = router.dispatch(make_request("GET", "/x"))

        assert response.error is None
        assert response.body == b"once"


class TestFallback:
    """Fallback runs only when nothing set a status."""

    def test_fallback_on_no_match(self):
        calls = []
        router = Router()
        router.get("/x", recorder(calls, "x"))
        router.fallback(recorder(calls, "fallback", end=True))

        router.dispatch(make_request("GET", "/nope"))

        assert calls == ["fallback"]

    def test_fallback_skipped_when_status_set(self):
        calls = []
        router = Router()

        def only_status(request, response, next):
            response.status(204)
            next()

        router.get("/x", only_status)
        router.fallback(recorder(calls, "fallback"))

        response = router.dispatch(make_request("GET", "/x"))

        assert calls == []
        assert response.status_code == 204
        assert response.sent is True

    def test_fallback_runs_when_match_left_status_unset(self):
        calls = []
        router = Router()
        router.all(recorder(calls, "mw"))
        router.fallback(recorder(calls, "fallback"))

        router.dispatch(make_request("GET", "/anything"))

        assert calls == ["mw", "fallback"]


class TestSafetyNet:
    """Unended responses are finalized by the router."""

    def test_unended_unmatched_becomes_404(self):
        response = Router().dispatch(make_request("GET", "/nowhere"))

        assert response.sent is True
        assert response.status_code == 404

    def test_unended_with_body_keeps_status(self):
        router = Router()
        router.get("/x", recorder([], "x", text="written"))

        def set_ok(request, response, next):
            response.status(200)
            next()

        router.get("/x", set_ok)

        response = router.dispatch(make_request("GET", "/x"))

        assert response.sent is True
        assert response.status_code == 200
        assert response.body == b"written"

    def test_finalize_can_be_disabled(self):
        router = Router(finalize_unended=False)

        response = router.dispatch(make_request("GET", "/nowhere"))

        assert response.sent is False

    def test_cancelled_response_is_left_alone(self):
        router = Router()
        calls = []

        def cancel_then_continue(request, response, next):
            response.cancel()
            next()

        router.get("/x", cancel_then_continue, recorder(calls, "never"))
        router.fallback(recorder(calls, "fallback"))

        response = router.dispatch(make_request("GET", "/x"))

        assert calls == []
        assert response.sent is False
        assert response.cancelled is True


class TestConcurrentDispatch:
    """The entry list is shared read-only between threads."""

    def test_parallel_dispatch(self):
        router = Router()

        @router.get("/users/:user")
        def user(request, response, next):
            response.end(request.params["user"])
            next()

        results = {}

        def worker(name):
            results[name] = router.dispatch(make_request("GET", f"/users/{name}")).body

        threads = [threading.Thread(target=worker, args=(f"u{i}",)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == {f"u{i}": f"u{i}".encode() for i in range(20)}
