from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class RuntimeStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    CONTINUED_AS_NEW = "ContinuedAsNew"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELED = "Canceled"
    TERMINATED = "Terminated"

    @classmethod
    def parse(cls, token: str) -> RuntimeStatus | None:
        """Case-insensitive lookup by name; returns None for unknown tokens."""
        t = (token or "").strip().lower()
        for member in cls:
            if member.value.lower() == t:
                return member
        return None


TERMINAL_STATUSES = frozenset(
    {
        RuntimeStatus.COMPLETED,
        RuntimeStatus.FAILED,
        RuntimeStatus.CANCELED,
        RuntimeStatus.TERMINATED,
    }
)

# Zero timestamp: "no bound" for created-time filters.
DEFAULT_DATETIME = datetime.min.replace(tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%S") + "Z"


@dataclass(frozen=True)
class OrchestrationStatus:
    """Point-in-time snapshot of an orchestration instance, as reported by the runtime.

    `runtime_status` is normally a RuntimeStatus, but a runtime newer than this
    service may report values we do not know about; those arrive as plain strings.
    """

    instance_id: str
    runtime_status: RuntimeStatus | str
    created_time: datetime
    last_updated_time: datetime
    name: str = ""
    input: Any = None
    output: Any = None
    custom_status: Any = None
    history: list[Any] | None = None

    @property
    def known_status(self) -> RuntimeStatus | None:
        if isinstance(self.runtime_status, RuntimeStatus):
            return self.runtime_status
        return RuntimeStatus.parse(str(self.runtime_status))

    @property
    def status_name(self) -> str:
        if isinstance(self.runtime_status, RuntimeStatus):
            return self.runtime_status.value
        return str(self.runtime_status)


@dataclass(frozen=True)
class RoutingAttributes:
    """Task hub / connection overrides used to pick a runtime client."""

    task_hub: str | None = None
    connection: str | None = None
