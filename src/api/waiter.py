from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from fastapi.responses import JSONResponse, Response

from src.api.errors import ValidationError
from src.api.handlers import HttpApiHandler, check_status_response
from src.api.links import build_links
from src.api.request import ApiRequest
from src.runtime.models import RuntimeStatus


logger = logging.getLogger(__name__)

_FINISHED_UNSUCCESSFULLY = frozenset({RuntimeStatus.FAILED, RuntimeStatus.CANCELED, RuntimeStatus.TERMINATED})


class CompletionWaiter:
    """Bounded long-poll over an instance's status.

    Callers get the synchronous result if the instance finishes within the timeout,
    and the standard async-202 check-status response otherwise. `clock` and `sleep`
    are injectable so tests can drive elapsed time without real delays.
    """

    def __init__(
        self,
        handler: HttpApiHandler,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._handler = handler
        self._clock = clock
        self._sleep = sleep

    async def wait_for_completion_or_accept(
        self,
        request: ApiRequest,
        instance_id: str,
        *,
        timeout_s: float,
        retry_interval_s: float,
        task_hub: str | None = None,
        connection: str | None = None,
    ) -> Response:
        if retry_interval_s > timeout_s:
            raise ValidationError(
                f"Total timeout {timeout_s} should be bigger than retry timeout {retry_interval_s}",
                details={"timeout_s": timeout_s, "retry_interval_s": retry_interval_s},
            )

        links = build_links(
            self._handler.config,
            instance_id,
            request_url=request.url,
            task_hub=task_hub,
            connection=connection,
        )
        client = self._handler.get_client(request)
        started = self._clock()
        while True:
            status = await client.get_status(instance_id)
            if status is not None:
                known = status.known_status
                if known is RuntimeStatus.COMPLETED:
                    return JSONResponse(status_code=200, content=status.output)
                if known in _FINISHED_UNSUCCESSFULLY:
                    return await self._handler.get_status(request, instance_id)

            elapsed = self._clock() - started
            if elapsed < timeout_s:
                await self._sleep(min(timeout_s - elapsed, retry_interval_s))
                continue

            logger.debug("Instance %s still running after %.1fs; answering 202.", instance_id, elapsed)
            return check_status_response(links)
