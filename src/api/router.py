"""Path routing for the instance management API.

The request path is split into segments, the `instances` segment is located, and
the remainder is matched against a small table keyed by method, segment count
and literal tokens. Literal tokens compare case-insensitively.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable
from urllib.parse import unquote

from fastapi.responses import Response

from src.api.errors import APIError, api_error_response, error_response
from src.api.handlers import HttpApiHandler
from src.api.request import ApiRequest


INSTANCES_TOKEN = "instances"

# None marks a captured segment (instance id, event name).
_Pattern = tuple[str | None, ...]
_Dispatch = Callable[[HttpApiHandler, ApiRequest, list[str]], Awaitable[Response]]


@dataclass(frozen=True)
class _Route:
    method: str
    pattern: _Pattern
    dispatch: _Dispatch

    def match(self, method: str, segments: list[str]) -> list[str] | None:
        if method != self.method or len(segments) != len(self.pattern):
            return None
        captured: list[str] = []
        for token, segment in zip(self.pattern, segments):
            if token is None:
                captured.append(segment)
            elif segment.lower() != token:
                return None
        return captured


_ROUTES: tuple[_Route, ...] = (
    _Route("GET", (), lambda h, req, _args: h.list_statuses(req)),
    _Route("GET", (None,), lambda h, req, args: h.get_status(req, args[0])),
    _Route("POST", (None, "terminate"), lambda h, req, args: h.terminate(req, args[0])),
    _Route("POST", (None, "rewind"), lambda h, req, args: h.rewind(req, args[0])),
    _Route("POST", (None, "raiseevent", None), lambda h, req, args: h.raise_event(req, args[0], args[1])),
)


def split_path(path: str) -> list[str]:
    trimmed = (path or "").strip("/")
    if not trimmed:
        return []
    return [unquote(s) for s in trimmed.split("/")]


class InstancesRouter:
    def __init__(self, handler: HttpApiHandler) -> None:
        self._handler = handler

    @property
    def handler(self) -> HttpApiHandler:
        return self._handler

    async def route(self, request: ApiRequest) -> Response:
        """Dispatch one request; APIErrors raised by handlers become JSON error responses."""
        segments = split_path(request.path)
        lowered = [s.lower() for s in segments]
        if INSTANCES_TOKEN not in lowered:
            return error_response(status_code=404, code="not_found", message="Not found.")

        rest = segments[lowered.index(INSTANCES_TOKEN) + 1 :]
        method = request.method.upper()
        if not rest and method != "GET":
            # Only listing lives at the bare collection root.
            return error_response(status_code=404, code="not_found", message="Not found.")

        for entry in _ROUTES:
            args = entry.match(method, rest)
            if args is None:
                continue
            try:
                return await entry.dispatch(self._handler, request, args)
            except APIError as e:
                return api_error_response(e)

        return error_response(status_code=400, code="invalid_argument", message="No such API")
