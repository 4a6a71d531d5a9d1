"""Transport implementation backed by httpx.AsyncClient."""

import logging
from typing import Mapping, Optional, Union

import httpx

from cmcli.domain.interfaces.transport import Transport
from cmcli.domain.models.dispatch import TransportResponse
from cmcli.domain.models.errors import InvalidRequest, TransportError, TransportTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0


class HttpxTransport(Transport):
    """Concrete Transport that performs requests with httpx."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, default_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """Initializes the transport.

        Args:
            client: An existing AsyncClient to reuse (owned by the caller).
            default_timeout: Timeout used when send() is not given one.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=default_timeout)
        self.default_timeout = default_timeout

    async def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Optional[Union[str, bytes]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        effective_timeout = timeout if timeout is not None else self.default_timeout
        try:
            response = await self._client.request(
                method,
                url,
                headers=dict(headers),
                content=body,
                timeout=effective_timeout,
            )
        except httpx.TimeoutException as e:
            logger.debug(f"{method} {url} timed out after {effective_timeout}s: {e}")
            raise TransportTimeout(f"Request timed out after {effective_timeout}s") from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            logger.debug(f"{method} {url!r} rejected before sending: {e}")
            raise InvalidRequest(f"Invalid request URL: {e}") from e
        except httpx.HTTPError as e:
            logger.debug(f"{method} {url} failed at transport level: {e}")
            raise TransportError(str(e) or type(e).__name__) from e

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
