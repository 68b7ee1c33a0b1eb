from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from src.runtime.models import OrchestrationStatus, RuntimeStatus, format_timestamp


logger = logging.getLogger(__name__)

# Some clients retry in a tight loop without a hint.
RUNNING_RETRY_AFTER_S = 5


@dataclass(frozen=True)
class StatusTranslation:
    status_code: int
    include_location: bool = False
    retry_after_s: int | None = None


_RUNNING = StatusTranslation(status_code=202, include_location=True, retry_after_s=RUNNING_RETRY_AFTER_S)
_FAILED = StatusTranslation(status_code=500)
_DONE = StatusTranslation(status_code=200)

_TRANSLATIONS: dict[RuntimeStatus, StatusTranslation] = {
    RuntimeStatus.PENDING: _RUNNING,
    RuntimeStatus.RUNNING: _RUNNING,
    RuntimeStatus.CONTINUED_AS_NEW: _RUNNING,
    RuntimeStatus.FAILED: _FAILED,
    RuntimeStatus.CANCELED: _DONE,
    RuntimeStatus.TERMINATED: _DONE,
    RuntimeStatus.COMPLETED: _DONE,
}


def translate_status(runtime_status: RuntimeStatus | str) -> StatusTranslation:
    """Map a runtime status to the HTTP status code and polling headers.

    Still-running states answer 202 with Location/Retry-After so callers poll again.
    Terminal states answer 200, except Failed which answers 500 so HTTP-level
    monitoring notices it. Values this service does not know are logged and
    answered with 500.
    """
    status = runtime_status if isinstance(runtime_status, RuntimeStatus) else RuntimeStatus.parse(str(runtime_status))
    translation = _TRANSLATIONS.get(status) if status is not None else None
    if translation is None:
        logger.error("Unknown runtime state '%s'.", runtime_status)
        return _FAILED
    return translation


def status_payload(status: OrchestrationStatus, *, include_history: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "instanceId": status.instance_id,
        "runtimeStatus": status.status_name,
        "input": status.input,
        "customStatus": status.custom_status,
        "output": status.output,
        "createdTime": format_timestamp(status.created_time),
        "lastUpdatedTime": format_timestamp(status.last_updated_time),
    }
    if include_history:
        payload["historyEvents"] = status.history
    return payload
