"""Interface for HTTP transports.

The dispatcher is agnostic to the concrete HTTP client; anything that can
perform one request and hand back status, headers and body can be plugged in.
"""

import abc
from typing import Mapping, Optional, Union

from ..models.dispatch import TransportResponse


class Transport(abc.ABC):
    """Abstract Base Class for sending a single HTTP request."""

    @abc.abstractmethod
    async def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Optional[Union[str, bytes]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """Performs one HTTP exchange asynchronously.

        Args:
            url: Absolute URL including the encoded query string.
            method: HTTP method name.
            headers: Request headers (auth included).
            body: Optional request body.
            timeout: Upper bound in seconds for the whole exchange.

        Returns:
            A TransportResponse for any completed exchange, whatever its status.

        Raises:
            TransportError: On connection-level failures.
            TransportTimeout: When `timeout` elapses.
        """
        pass

    async def aclose(self) -> None:
        """Releases any pooled connections. Optional for implementations."""
        pass
