import json
import queue
import signal
import uuid
from dataclasses import dataclass

import pytest
from werkzeug.test import Client, EnvironBuilder
from werkzeug.wrappers import Request

from blockforge.web import (
    ZERO_TRACE_ID,
    App,
    ShutdownError,
    decode,
    get_trace_id,
    get_values,
    is_shutdown,
    param,
    respond,
    set_status_code,
    wrap_middleware,
)


@dataclass
class Person:
    name: str
    age: int = 0


def _json_request(body: str) -> Request:
    builder = EnvironBuilder(method="POST", data=body, content_type="application/json")
    return Request(builder.get_environ())


def test_route_params_and_group():
    app = App(queue.Queue())

    def handler(ctx, request):
        body = {"from": param(request, "from"), "to": param(request, "to")}
        return respond(ctx, body, 200)

    app.handle("GET", "v1", "/blocks/:from/:to", handler)
    resp = Client(app).get("/v1/blocks/1/latest")
    assert resp.status_code == 200
    assert json.loads(resp.get_data(as_text=True)) == {"from": "1", "to": "latest"}
    assert resp.headers["Content-Type"] == "application/json"


def test_route_without_group():
    app = App(queue.Queue())
    app.handle("GET", "", "/status", lambda ctx, request: respond(ctx, {"ok": True}, 200))
    resp = Client(app).get("/status")
    assert json.loads(resp.get_data(as_text=True)) == {"ok": True}


def test_unknown_route_and_wrong_method():
    app = App(queue.Queue())
    app.handle("POST", "v1", "/tx", lambda ctx, request: respond(ctx, {}, 200))
    client = Client(app)
    assert client.get("/v1/missing").status_code == 404
    assert client.get("/v1/tx").status_code == 405


def test_middleware_runs_app_then_route_then_handler():
    calls = []

    def recorder(name):
        def mw(handler):
            def wrapped(ctx, request):
                calls.append(name)
                return handler(ctx, request)
            return wrapped
        return mw

    def handler(ctx, request):
        calls.append("handler")
        return respond(ctx, None, 204)

    app = App(queue.Queue(), recorder("app1"), recorder("app2"))
    app.handle("GET", "v1", "/x", handler, recorder("route"))
    resp = Client(app).get("/v1/x")
    assert resp.status_code == 204
    assert calls == ["app1", "app2", "route", "handler"]


def test_wrap_middleware_skips_none():
    calls = []

    def mw(handler):
        def wrapped(ctx, request):
            calls.append("mw")
            return handler(ctx, request)
        return wrapped

    wrapped = wrap_middleware([None, mw, None], lambda ctx, request: "done")
    assert wrapped({}, None) == "done"
    assert calls == ["mw"]


def test_values_visible_to_middleware_after_handler():
    seen = {}

    def mw(handler):
        def wrapped(ctx, request):
            result = handler(ctx, request)
            values = get_values(ctx)
            seen["status"] = values.status_code
            seen["trace"] = get_trace_id(ctx)
            return result
        return wrapped

    app = App(queue.Queue(), mw)
    app.handle("POST", "v1", "/tx", lambda ctx, request: respond(ctx, {"a": 1}, 201))
    resp = Client(app).post("/v1/tx")
    assert resp.status_code == 201
    assert seen["status"] == 201
    assert str(uuid.UUID(seen["trace"])) == seen["trace"]


def test_handler_error_signals_shutdown():
    shutdown = queue.Queue()

    def handler(ctx, request):
        raise RuntimeError("integrity failure")

    app = App(shutdown)
    app.handle("GET", "v1", "/boom", handler)
    resp = Client(app).get("/v1/boom")
    assert resp.status_code == 500
    assert shutdown.get_nowait() == signal.SIGTERM


def test_signal_shutdown_puts_sigterm():
    shutdown = queue.Queue()
    App(shutdown).signal_shutdown()
    assert shutdown.get_nowait() == signal.SIGTERM


def test_respond_no_content_has_empty_body():
    resp = respond({}, {"ignored": 1}, 204)
    assert resp.status_code == 204
    assert resp.get_data() == b""


def test_respond_indents_with_four_spaces():
    data = {"name": "block", "items": [1, 2]}
    resp = respond({}, data, 200)
    body = resp.get_data(as_text=True)
    assert json.loads(body) == data
    assert '\n    "name"' in body


def test_context_helpers_without_values():
    assert get_trace_id({}) == ZERO_TRACE_ID
    with pytest.raises(LookupError, match="web value missing from context"):
        get_values({})
    with pytest.raises(LookupError):
        set_status_code({}, 200)


def test_is_shutdown():
    assert is_shutdown(ShutdownError("stop"))
    assert str(ShutdownError("stop")) == "stop"
    try:
        try:
            raise ShutdownError("stop")
        except ShutdownError as inner:
            raise ValueError("wrapped") from inner
    except ValueError as outer:
        assert is_shutdown(outer)
    assert not is_shutdown(ValueError("other"))
    assert not is_shutdown(None)


def test_decode_into_dataclass():
    person = decode(_json_request('{"name": "Ann", "age": 3}'), Person)
    assert person == Person(name="Ann", age=3)


def test_decode_fills_defaults():
    assert decode(_json_request('{"name": "Ann"}'), Person) == Person(name="Ann")


def test_decode_rejects_unknown_fields():
    with pytest.raises(ValueError, match="unknown field"):
        decode(_json_request('{"name": "Ann", "extra": 1}'), Person)


def test_decode_rejects_bad_json():
    with pytest.raises(ValueError):
        decode(_json_request("{not json"), Person)
    with pytest.raises(ValueError):
        decode(_json_request(""), None)


def test_decode_plain_types():
    assert decode(_json_request("[1, 2]"), list) == [1, 2]
    assert decode(_json_request('{"a": 1}')) == {"a": 1}
    with pytest.raises(ValueError):
        decode(_json_request("[1, 2]"), dict)
    with pytest.raises(ValueError):
        decode(_json_request("[1, 2]"), Person)


def test_param_missing_is_empty():
    assert param(_json_request("{}"), "id") == ""