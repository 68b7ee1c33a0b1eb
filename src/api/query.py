"""Typed query-string access.

Malformed values never raise: each accessor falls back to its default, so a bad
filter degrades to "no filter" instead of failing the request.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable
from urllib.parse import parse_qsl

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.runtime.models import DEFAULT_DATETIME, RoutingAttributes, RuntimeStatus, as_utc


TASK_HUB_PARAMETER = "taskHub"
CONNECTION_PARAMETER = "connection"

_DATETIME = TypeAdapter(datetime)


class QueryParams:
    """Multi-valued query parameters with case-insensitive key lookup."""

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._pairs = [(str(k), str(v)) for k, v in pairs]

    @classmethod
    def from_query_string(cls, query: str) -> QueryParams:
        return cls(parse_qsl(query or "", keep_blank_values=True))

    def getall(self, name: str) -> list[str]:
        key = name.lower()
        return [v for k, v in self._pairs if k.lower() == key]

    def get(self, name: str) -> str | None:
        values = self.getall(name)
        return values[0] if values else None

    def parse_datetime(self, name: str, default: datetime = DEFAULT_DATETIME) -> datetime:
        value = self.get(name)
        if value is None or not value.strip():
            return default
        try:
            return as_utc(_DATETIME.validate_python(value.strip()))
        except (PydanticValidationError, ValueError, OverflowError):
            return default

    def parse_bool(self, name: str) -> bool:
        value = self.get(name)
        return value is not None and value.strip().lower() == "true"

    def parse_status_set(self, name: str) -> set[RuntimeStatus]:
        out: set[RuntimeStatus] = set()
        for value in self.getall(name):
            for token in value.split(","):
                status = RuntimeStatus.parse(token)
                if status is not None:
                    out.add(status)
        return out

    def routing_attributes(self) -> RoutingAttributes:
        # First non-blank value wins for each key.
        task_hub: str | None = None
        connection: str | None = None
        for k, v in self._pairs:
            if not v.strip():
                continue
            key = k.lower()
            if task_hub is None and key == TASK_HUB_PARAMETER.lower():
                task_hub = v
            elif connection is None and key == CONNECTION_PARAMETER.lower():
                connection = v
        return RoutingAttributes(task_hub=task_hub, connection=connection)
