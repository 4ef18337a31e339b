"""HTTP poster - POSTs a webhook body to one endpoint with httpx."""
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

import httpx

from hookcast.errors import EndpointDispatchFailure

logger = logging.getLogger(__name__)

USER_AGENT = "hookcast"

# A header may repeat: give it a list of values, or pass (name, value) pairs.
Headers = Union[Mapping[str, Union[str, Sequence[str]]], Sequence[tuple[str, str]]]


class HttpPoster:
    """Issues webhook requests. Owns its AsyncClient unless one is passed in."""

    def __init__(
        self,
        timeout: float = 10.0,
        headers: Mapping[str, str] | None = None,
        raise_for_status: bool = True,
        client: httpx.AsyncClient | None = None,
    ):
        self.raise_for_status = raise_for_status
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, **(headers or {})},
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def post(
        self,
        endpoint: str,
        body: Any = None,
        headers: Headers | None = None,
    ) -> httpx.Response:
        """POST `body` to `endpoint`.

        bytes/str bodies are sent as-is, anything else as JSON. Transport
        errors, and non-2xx answers when raise_for_status is set, come back as
        EndpointDispatchFailure.
        """
        kwargs: dict[str, Any] = {"headers": header_items(headers)}
        if isinstance(body, (bytes, str)):
            kwargs["content"] = body
        elif body is not None:
            kwargs["json"] = body
        try:
            r = await self._client.post(endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise EndpointDispatchFailure(endpoint, f"{type(e).__name__}: {e}") from e
        logger.debug("POST %s -> %d", endpoint, r.status_code)
        if self.raise_for_status and not r.is_success:
            raise EndpointDispatchFailure(endpoint, f"HTTP {r.status_code}", response=r)
        return r

    def request_fn(
        self,
        body: Any = None,
        headers: Headers | None = None,
    ) -> Callable[[str], Awaitable[httpx.Response]]:
        """Bind body and headers into the per-endpoint callable trigger() expects."""

        async def send(endpoint: str) -> httpx.Response:
            return await self.post(endpoint, body, headers)

        return send

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpPoster":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


def header_items(headers: Headers | None) -> list[tuple[str, str]]:
    """Flatten headers into (name, value) pairs, one per value."""
    if not headers:
        return []
    items = headers.items() if isinstance(headers, Mapping) else headers
    pairs = []
    for name, value in items:
        if isinstance(value, (list, tuple)):
            pairs.extend((name, v) for v in value)
        else:
            pairs.append((name, value))
    return pairs
