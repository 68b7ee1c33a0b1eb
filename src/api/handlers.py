from __future__ import annotations

import json
import logging
from typing import Any

from fastapi.responses import JSONResponse, Response

from src.api.errors import ConflictError, NotFoundError, ValidationError
from src.api.links import ManagementLinks, build_links
from src.api.request import ApiRequest
from src.api.status import status_payload, translate_status
from src.config.load_config import WebhookConfig
from src.runtime.client import ClientResolver, OrchestrationClient
from src.runtime.models import OrchestrationStatus, RuntimeStatus


logger = logging.getLogger(__name__)

CHECK_STATUS_RETRY_AFTER_S = 10

_TERMINATE_GONE = frozenset(
    {RuntimeStatus.COMPLETED, RuntimeStatus.FAILED, RuntimeStatus.CANCELED, RuntimeStatus.TERMINATED}
)
# Rewinding a failed instance is the whole point of rewind.
_REWIND_GONE = frozenset({RuntimeStatus.COMPLETED, RuntimeStatus.CANCELED, RuntimeStatus.TERMINATED})
_RAISE_EVENT_GONE = _TERMINATE_GONE


def check_status_response(links: ManagementLinks) -> JSONResponse:
    """Async HTTP 202 pattern: accepted, poll `Location` for the outcome."""
    return JSONResponse(
        status_code=202,
        content=links.model_dump(),
        headers={"Location": links.statusQueryGetUri, "Retry-After": str(CHECK_STATUS_RETRY_AFTER_S)},
    )


class HttpApiHandler:
    """Instance management operations behind the `/instances/` routes.

    Handlers raise APIError subclasses for 4xx outcomes; the router renders them.
    """

    def __init__(self, config: WebhookConfig, client_resolver: ClientResolver) -> None:
        self._config = config
        self._client_resolver = client_resolver

    @property
    def config(self) -> WebhookConfig:
        return self._config

    def get_client(self, request: ApiRequest) -> OrchestrationClient:
        return self._client_resolver(request.query.routing_attributes())

    def create_http_management_payload(
        self,
        instance_id: str,
        task_hub: str | None = None,
        connection: str | None = None,
    ) -> ManagementLinks:
        return build_links(self._config, instance_id, task_hub=task_hub, connection=connection)

    def create_check_status_response(
        self,
        request: ApiRequest,
        instance_id: str,
        task_hub: str | None = None,
        connection: str | None = None,
    ) -> JSONResponse:
        links = build_links(
            self._config,
            instance_id,
            request_url=request.url,
            task_hub=task_hub,
            connection=connection,
        )
        return check_status_response(links)

    async def _require_status(self, client: OrchestrationClient, instance_id: str) -> OrchestrationStatus:
        status = await client.get_status(instance_id)
        if status is None:
            raise NotFoundError(details={"instance_id": instance_id})
        return status

    async def list_statuses(self, request: ApiRequest) -> JSONResponse:
        query = request.query
        created_from = query.parse_datetime("createdTimeFrom")
        created_to = query.parse_datetime("createdTimeTo")
        runtime_status = query.parse_status_set("runtimeStatus")

        client = self.get_client(request)
        statuses = await client.list_statuses(created_from, created_to, runtime_status)
        return JSONResponse(status_code=200, content=[status_payload(s) for s in statuses])

    async def get_status(self, request: ApiRequest, instance_id: str) -> JSONResponse:
        query = request.query
        show_history = query.parse_bool("showHistory")
        show_history_output = query.parse_bool("showHistoryOutput")

        client = self.get_client(request)
        status = await client.get_status(instance_id, show_history, show_history_output)
        if status is None:
            raise NotFoundError(details={"instance_id": instance_id})

        translation = translate_status(status.runtime_status)
        headers: dict[str, str] = {}
        if translation.include_location:
            headers["Location"] = request.url
        if translation.retry_after_s is not None:
            headers["Retry-After"] = str(translation.retry_after_s)
        return JSONResponse(
            status_code=translation.status_code,
            content=status_payload(status, include_history=show_history),
            headers=headers,
        )

    async def terminate(self, request: ApiRequest, instance_id: str) -> Response:
        client = self.get_client(request)
        status = await self._require_status(client, instance_id)
        if status.known_status in _TERMINATE_GONE:
            raise ConflictError(
                f"Instance is already {status.status_name}.",
                details={"instance_id": instance_id, "runtime_status": status.status_name},
            )

        reason = request.query.get("reason")
        await client.terminate(instance_id, reason)
        logger.info("Terminate requested for instance %s.", instance_id)
        return Response(status_code=202)

    async def rewind(self, request: ApiRequest, instance_id: str) -> Response:
        client = self.get_client(request)
        status = await self._require_status(client, instance_id)
        if status.known_status in _REWIND_GONE:
            raise ConflictError(
                f"Instance is {status.status_name} and cannot be rewound.",
                details={"instance_id": instance_id, "runtime_status": status.status_name},
            )

        reason = request.query.get("reason")
        await client.rewind(instance_id, reason)
        logger.info("Rewind requested for instance %s.", instance_id)
        return Response(status_code=202)

    async def raise_event(self, request: ApiRequest, instance_id: str, event_name: str) -> Response:
        client = self.get_client(request)
        status = await self._require_status(client, instance_id)
        if status.known_status in _RAISE_EVENT_GONE:
            raise ConflictError(
                f"Instance is already {status.status_name}.",
                details={"instance_id": instance_id, "runtime_status": status.status_name},
            )

        if request.media_type != "application/json":
            raise ValidationError("Only application/json request content is supported")

        payload: Any = None
        if request.body:
            try:
                payload = json.loads(request.body)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ValidationError("Invalid JSON content", details={"error": str(e)}) from e

        await client.raise_event(instance_id, event_name, payload)
        logger.info("Raised event %r for instance %s.", event_name, instance_id)
        return Response(status_code=202)
