from __future__ import annotations

from urllib.parse import quote, quote_plus, urlsplit

from pydantic import BaseModel

from src.api.errors import ConfigurationError
from src.config.load_config import DEFAULT_CONNECTION_NAME, DEFAULT_HUB_NAME, WebhookConfig


INSTANCES_SEGMENT = "/instances/"
RAISE_EVENT_OPERATION = "raiseEvent"
TERMINATE_OPERATION = "terminate"
REWIND_OPERATION = "rewind"


class ManagementLinks(BaseModel):
    """Callback URLs handed to clients for polling and controlling one instance.

    `{eventName}` and `{text}` are literal placeholders for the caller to fill in.
    """

    id: str
    statusQueryGetUri: str
    sendEventPostUri: str
    terminatePostUri: str
    rewindPostUri: str


def _authority(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def build_links(
    config: WebhookConfig,
    instance_id: str,
    *,
    request_url: str | None = None,
    task_hub: str | None = None,
    connection: str | None = None,
) -> ManagementLinks:
    if not config.notification_url:
        raise ConfigurationError("Webhooks are not configured")

    notification = urlsplit(config.notification_url)
    # e.g. http://{host}/runtime/webhooks/durabletask?code={systemKey}
    base_url = _authority(request_url or config.notification_url) + notification.path.rstrip("/")
    instance_prefix = base_url + INSTANCES_SEGMENT + quote(instance_id, safe="")

    hub = quote_plus(task_hub or config.hub_name or DEFAULT_HUB_NAME)
    conn = quote_plus(connection or config.connection_name or DEFAULT_CONNECTION_NAME)
    query_suffix = f"taskHub={hub}&connection={conn}"
    if notification.query:
        query_suffix += "&" + notification.query.lstrip("?")

    return ManagementLinks(
        id=instance_id,
        statusQueryGetUri=f"{instance_prefix}?{query_suffix}",
        sendEventPostUri=f"{instance_prefix}/{RAISE_EVENT_OPERATION}/{{eventName}}?{query_suffix}",
        terminatePostUri=f"{instance_prefix}/{TERMINATE_OPERATION}?reason={{text}}&{query_suffix}",
        rewindPostUri=f"{instance_prefix}/{REWIND_OPERATION}?reason={{text}}&{query_suffix}",
    )
