"""In-memory implementation of the orchestration client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Collection

from src.runtime.models import (
    DEFAULT_DATETIME,
    TERMINAL_STATUSES,
    OrchestrationStatus,
    RoutingAttributes,
    RuntimeStatus,
    as_utc,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RaisedEvent:
    instance_id: str
    event_name: str
    payload: Any


class InMemoryOrchestrationClient:
    """Keep orchestration snapshots in local memory.

    Useful for tests or local development when no runtime is attached. Mutating
    calls are recorded and applied immediately: terminate moves the instance to
    Terminated, rewind moves a failed instance back to Running. Data is not
    persisted across process restarts.
    """

    def __init__(self, statuses: Collection[OrchestrationStatus] = ()) -> None:
        self._instances: dict[str, OrchestrationStatus] = {}
        self.terminated: list[tuple[str, str | None]] = []
        self.rewound: list[tuple[str, str | None]] = []
        self.events: list[RaisedEvent] = []
        self.status_queries = 0
        for status in statuses:
            self.put(status)

    def put(self, status: OrchestrationStatus) -> None:
        self._instances[status.instance_id] = status

    # ------------------------------------------------------------------
    async def get_status(
        self,
        instance_id: str,
        show_history: bool = False,
        show_history_output: bool = False,
    ) -> OrchestrationStatus | None:
        self.status_queries += 1
        status = self._instances.get(instance_id)
        if status is None:
            return None
        if not show_history:
            return replace(status, history=None)
        if not show_history_output and status.history:
            history = [
                {k: v for k, v in ev.items() if k != "output"} if isinstance(ev, dict) else ev
                for ev in status.history
            ]
            return replace(status, history=history)
        return status

    async def list_statuses(
        self,
        created_from: datetime,
        created_to: datetime,
        statuses: Collection[RuntimeStatus],
    ) -> list[OrchestrationStatus]:
        self.status_queries += 1
        lo = as_utc(created_from)
        hi = as_utc(created_to)
        wanted = set(statuses)
        out: list[OrchestrationStatus] = []
        for status in self._instances.values():
            created = as_utc(status.created_time)
            if lo != DEFAULT_DATETIME and created < lo:
                continue
            if hi != DEFAULT_DATETIME and created > hi:
                continue
            if wanted and status.known_status not in wanted:
                continue
            out.append(replace(status, history=None))
        return out

    async def terminate(self, instance_id: str, reason: str | None) -> None:
        self.terminated.append((instance_id, reason))
        status = self._instances.get(instance_id)
        if status is None or status.known_status in TERMINAL_STATUSES:
            return
        self._instances[instance_id] = replace(
            status,
            runtime_status=RuntimeStatus.TERMINATED,
            output=reason,
            last_updated_time=datetime.now(timezone.utc),
        )
        logger.info("Instance %s terminated (reason=%r).", instance_id, reason)

    async def rewind(self, instance_id: str, reason: str | None) -> None:
        self.rewound.append((instance_id, reason))
        status = self._instances.get(instance_id)
        if status is None or status.known_status is not RuntimeStatus.FAILED:
            return
        self._instances[instance_id] = replace(
            status,
            runtime_status=RuntimeStatus.RUNNING,
            last_updated_time=datetime.now(timezone.utc),
        )
        logger.info("Instance %s rewound (reason=%r).", instance_id, reason)

    async def raise_event(self, instance_id: str, event_name: str, payload: Any) -> None:
        self.events.append(RaisedEvent(instance_id=instance_id, event_name=event_name, payload=payload))


class InMemoryClientResolver:
    """Hands out one in-memory client per (task hub, connection) pair."""

    def __init__(self, default_hub: str, default_connection: str) -> None:
        self._default_hub = default_hub
        self._default_connection = default_connection
        self._clients: dict[tuple[str, str], InMemoryOrchestrationClient] = {}

    def __call__(self, attrs: RoutingAttributes) -> InMemoryOrchestrationClient:
        key = (attrs.task_hub or self._default_hub, attrs.connection or self._default_connection)
        client = self._clients.get(key)
        if client is None:
            client = InMemoryOrchestrationClient()
            self._clients[key] = client
        return client
