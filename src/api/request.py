from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from fastapi import Request

from src.api.query import QueryParams


@dataclass(frozen=True)
class ApiRequest:
    """Framework-neutral view of an inbound management request."""

    method: str
    url: str
    body: bytes = b""
    content_type: str | None = None

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> QueryParams:
        return QueryParams.from_query_string(urlsplit(self.url).query)

    @property
    def media_type(self) -> str | None:
        if not self.content_type:
            return None
        return self.content_type.split(";", 1)[0].strip().lower() or None

    @classmethod
    async def from_starlette(cls, request: Request) -> ApiRequest:
        # `request.url` carries the already-decoded path; keep the raw target so
        # encoded instance ids (`%2F`, `%25`) are decoded exactly once by the router.
        url = request.url
        raw_path = request.scope.get("raw_path")
        if raw_path:
            url = url.replace(path=raw_path.split(b"?", 1)[0].decode("latin-1"))
        return cls(
            method=request.method.upper(),
            url=str(url),
            body=await request.body(),
            content_type=request.headers.get("content-type"),
        )
