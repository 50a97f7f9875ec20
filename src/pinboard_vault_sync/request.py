"""Composable HTTP request descriptors and a single-shot async HTTP client."""

import json
import logging
from typing import Any, Optional, Sequence
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field

from pinboard_vault_sync.errors import DecodeError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"https": 443, "http": 80}


class QueryParam(BaseModel):
    """A single query parameter, stored in its on-the-wire (encoded) form."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str

    @classmethod
    def create(
        cls,
        name: str,
        value: str,
        encode_name: bool = True,
        encode_value: bool = True,
    ) -> "QueryParam":
        """Build a parameter, percent-encoding name and value unless told not to."""
        return cls(
            name=quote(name, safe="") if encode_name else name,
            value=quote(value, safe="") if encode_value else value,
        )

    def clone(self) -> "QueryParam":
        return QueryParam(name=self.name, value=self.value)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class RequestDescriptor(BaseModel):
    """Everything needed to issue one HTTP request.

    Treat instances as immutable: derive child requests with ``clone`` instead
    of appending to ``base_path`` or ``query_params`` in place.
    """

    host: str
    base_path: list[str] = Field(default_factory=list)
    query_params: list[QueryParam] = Field(default_factory=list)
    protocol: str = "https"
    port: int = 443
    method: str = "GET"
    parse_json: bool = False
    post_body: Optional[str] = None

    @property
    def query_string(self) -> str:
        if not self.query_params:
            return ""
        return "?" + "&".join(str(param) for param in self.query_params)

    @property
    def path(self) -> str:
        return "/" + "/".join(self.base_path) + self.query_string

    @property
    def full_url(self) -> str:
        netloc = self.host
        if DEFAULT_PORTS.get(self.protocol) != self.port:
            netloc = f"{self.host}:{self.port}"
        return f"{self.protocol}://{netloc}{self.path}"

    def clone(
        self,
        sub_path: Optional[Sequence[str]] = None,
        query_params: Optional[Sequence[QueryParam]] = None,
    ) -> "RequestDescriptor":
        """Return a copy with ``sub_path`` and ``query_params`` appended."""
        return RequestDescriptor(
            host=self.host,
            base_path=[*self.base_path, *(sub_path or [])],
            query_params=[
                param.clone() for param in [*self.query_params, *(query_params or [])]
            ],
            protocol=self.protocol,
            port=self.port,
            method=self.method,
            parse_json=self.parse_json,
            post_body=self.post_body,
        )


class HttpClient:
    """Executes a RequestDescriptor, one request per call, no retries."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the client, optionally over a custom httpx transport."""
        self._transport = transport

    async def execute(self, request: RequestDescriptor) -> Any:
        """Issue ``request`` and return the body, decoded when ``parse_json`` is set."""
        url = request.full_url
        logger.debug("%s %s", request.method, url)

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=None, follow_redirects=False
            ) as session:
                response = await session.request(
                    request.method, url, content=request.post_body or None
                )
        except httpx.HTTPError as e:
            raise TransportError(
                f"{type(e).__name__} when attempting to {request.method} '{url}': {e}",
                method=request.method,
                url=url,
            ) from e

        body = response.text
        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"ERROR {response.status_code} when attempting to "
                f"{request.method} '{url}'\r\n{body}",
                status_code=response.status_code,
                method=request.method,
                url=url,
                body=body,
            )

        if not request.parse_json:
            return body

        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise DecodeError(
                f"JSON parse error: {e} when receiving code {response.status_code} "
                f"after performing {request.method} on '{url}' and attempting to "
                f"parse body:\r\n{body}",
                status_code=response.status_code,
                url=url,
                body=body,
            ) from e
