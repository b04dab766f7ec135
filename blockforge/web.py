"""A small WSGI framework: routing, middleware, request values and JSON replies."""

from __future__ import annotations

import dataclasses
import json
import signal
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Iterable, MutableMapping, Optional

from werkzeug.exceptions import HTTPException, InternalServerError
from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request, Response

ZERO_TRACE_ID = "00000000-0000-0000-0000-000000000000"

_VALUES_KEY = "blockforge.web.values"
_PARAMS_KEY = "blockforge.web.params"

Context = MutableMapping[str, Any]
Handler = Callable[[Context, Request], Optional[Response]]
Middleware = Callable[[Handler], Handler]


@dataclass
class Values:
    """State kept for each request."""

    trace_id: str
    now: datetime
    status_code: int = 0


class ShutdownError(Exception):
    """Raised to ask the framework for a graceful shutdown."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


def is_shutdown(err: Optional[BaseException]) -> bool:
    """Report whether ``err`` or an exception it was raised from is a ShutdownError."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, ShutdownError):
            return True
        seen.add(id(err))
        err = err.__cause__ or err.__context__
    return False


def get_values(ctx: Context) -> Values:
    """Return the request values held in ``ctx``."""
    values = ctx.get(_VALUES_KEY)
    if not isinstance(values, Values):
        raise LookupError("web value missing from context")
    return values


def get_trace_id(ctx: Context) -> str:
    """Return the request's trace id, or the all-zero id if there is none."""
    values = ctx.get(_VALUES_KEY)
    if not isinstance(values, Values):
        return ZERO_TRACE_ID
    return values.trace_id


def set_status_code(ctx: Context, status_code: int) -> None:
    """Record the response status code in the request values."""
    get_values(ctx).status_code = status_code


def wrap_middleware(middleware: Iterable[Optional[Middleware]], handler: Handler) -> Handler:
    """Wrap ``handler`` so the first middleware given runs first."""
    for mw in reversed(list(middleware)):
        if mw is not None:
            handler = mw(handler)
    return handler


def param(request: Request, key: str) -> str:
    """Return the named path parameter of the request, or an empty string."""
    return request.environ.get(_PARAMS_KEY, {}).get(key, "")


def decode(request: Request, model: Any = None) -> Any:
    """Decode the JSON body of ``request``.

    A dataclass ``model`` is built from the body and unknown fields are
    rejected; any other type is checked against the decoded value.
    """
    try:
        data = json.loads(request.get_data(as_text=True))
    except ValueError as err:
        raise ValueError(f"invalid JSON body: {err}") from err

    if model is None:
        return data

    if dataclasses.is_dataclass(model) and isinstance(model, type):
        if not isinstance(data, dict):
            raise ValueError(f"cannot decode {type(data).__name__} into {model.__name__}")
        names = {f.name for f in dataclasses.fields(model) if f.init}
        unknown = sorted(set(data) - names)
        if unknown:
            raise ValueError(f'json: unknown field "{unknown[0]}"')
        try:
            return model(**data)
        except TypeError as err:
            raise ValueError(str(err)) from err

    if not isinstance(data, model):
        raise ValueError(f"cannot decode {type(data).__name__} into {model.__name__}")
    return data


def respond(ctx: Context, data: Any, status_code: int) -> Response:
    """Build a JSON response for ``data`` and record the status code."""
    try:
        set_status_code(ctx, status_code)
    except LookupError:
        pass

    if status_code == HTTPStatus.NO_CONTENT:
        return Response(status=status_code)

    body = json.dumps(data, indent=4)
    return Response(body, status=status_code, content_type="application/json")


def _rule_path(path: str) -> str:
    """Turn ``:name`` and ``*name`` segments into routing placeholders."""
    segments = []
    for segment in path.split("/"):
        if segment.startswith(":"):
            segment = f"<{segment[1:]}>"
        elif segment.startswith("*"):
            segment = f"<path:{segment[1:]}>"
        segments.append(segment)
    return "/".join(segments)


class App:
    """A WSGI application dispatching routes through middleware to handlers.

    ``shutdown`` is a queue-like object; a SIGTERM is put on it whenever a
    handler raises, asking the owner to shut the service down.
    """

    def __init__(self, shutdown: Any, *args: Middleware) -> None:
        self._shutdown = shutdown
        self._middleware = list(args)
        self._map = Map(strict_slashes=False)
        self._handlers: dict[str, Handler] = {}

    def signal_shutdown(self) -> None:
        """Ask for a graceful shutdown of the service."""
        self._shutdown.put(signal.SIGTERM)

    def handle(
        self,
        method: str,
        group: str,
        path: str,
        handler: Handler,
        *args: Middleware,
    ) -> None:
        """Route ``method`` requests for ``path`` (under ``group``) to ``handler``."""
        handler = wrap_middleware(args, handler)
        handler = wrap_middleware(self._middleware, handler)

        final_path = f"/{group}{path}" if group else path
        method = method.upper()
        endpoint = f"{method} {final_path}"
        self._handlers[endpoint] = handler
        self._map.add(Rule(_rule_path(final_path), methods=[method], endpoint=endpoint))

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        adapter = self._map.bind_to_environ(environ)
        try:
            endpoint, params = adapter.match()
        except HTTPException as exc:
            return exc(environ, start_response)

        environ[_PARAMS_KEY] = {key: str(value) for key, value in params.items()}
        request = Request(environ)

        values = Values(trace_id=str(uuid.uuid4()), now=datetime.now(timezone.utc))
        ctx: Context = {_VALUES_KEY: values}

        try:
            response = self._handlers[endpoint](ctx, request)
        except Exception:
            self.signal_shutdown()
            response = InternalServerError()

        if response is None:
            response = Response(status=values.status_code or HTTPStatus.OK)
        return response(environ, start_response)