from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Collection, Protocol

from src.runtime.models import OrchestrationStatus, RoutingAttributes, RuntimeStatus


class OrchestrationClient(Protocol):
    """Capability interface of the orchestration runtime.

    The HTTP façade only reads status and forwards mutating requests; the runtime
    owns execution, persistence and every status transition.
    """

    async def get_status(
        self,
        instance_id: str,
        show_history: bool = False,
        show_history_output: bool = False,
    ) -> OrchestrationStatus | None: ...

    async def list_statuses(
        self,
        created_from: datetime,
        created_to: datetime,
        statuses: Collection[RuntimeStatus],
    ) -> list[OrchestrationStatus]: ...

    async def terminate(self, instance_id: str, reason: str | None) -> None: ...

    async def rewind(self, instance_id: str, reason: str | None) -> None: ...

    async def raise_event(self, instance_id: str, event_name: str, payload: Any) -> None: ...


# Resolves the client for a task hub / connection pair (request overrides applied).
ClientResolver = Callable[[RoutingAttributes], OrchestrationClient]
