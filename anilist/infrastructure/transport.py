import aiohttp
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from anilist.config import ClientConfig, TransportKind
from anilist.domain.exceptions import (
    ConfigurationException,
    TransportTimeoutException,
    TransportUnreachableException,
)

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10
CONNECTOR_LIMIT = 10

FetchFunction = Callable[..., Awaitable[Any]]


class RawResponse(BaseModel):
    """Status, headers and undecoded body of an HTTP response."""
    model_config = ConfigDict(frozen=True)

    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class Transport(ABC):
    """
    Sends one HTTP request and returns the raw response.
    Implementations never look inside the payload.
    """

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
        timeout: float,
    ) -> RawResponse:
        """
        Performs the request.

        Raises:
            TransportTimeoutException: The request did not finish within `timeout` seconds.
            TransportUnreachableException: The host could not be reached or dropped the connection.
        """

    async def close(self) -> None:
        return None


class AiohttpTransport(Transport):
    """
    Socket-based transport backed by a long-lived aiohttp session.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
            )
            self._owns_session = True
        return self._session

    async def send(self, method, url, headers, body, timeout) -> RawResponse:
        session = self._get_session()
        request_timeout = aiohttp.ClientTimeout(total=timeout, connect=min(CONNECT_TIMEOUT, timeout))
        try:
            async with session.request(
                method, url, data=body, headers=dict(headers), timeout=request_timeout
            ) as response:
                payload = await response.read()
                return RawResponse(
                    status=response.status,
                    headers={key: value for key, value in response.headers.items()},
                    body=payload,
                )
        except asyncio.TimeoutError as e:
            raise TransportTimeoutException(timeout) from e
        except aiohttp.ClientError as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise TransportUnreachableException(f"Could not reach {url}: {e}") from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class FetchTransport(Transport):
    """
    Transport that defers to a host-provided fetch primitive.

    `fetch` follows the `pyodide.http.pyfetch` contract: it is awaited with the
    URL and `method`, `headers`, `body` keyword arguments, and returns a response
    exposing `status`, `headers` and an awaitable `bytes()`.
    """

    def __init__(self, fetch: Optional[FetchFunction] = None):
        if fetch is None:
            try:
                from pyodide.http import pyfetch
            except ImportError as e:
                raise ConfigurationException(
                    "The fetch transport needs a fetch function outside of a Pyodide runtime."
                ) from e
            fetch = pyfetch
        self._fetch = fetch

    async def _roundtrip(self, method, url, headers, body) -> RawResponse:
        response = await self._fetch(url, method=method, headers=dict(headers), body=body)
        payload = await response.bytes()
        return RawResponse(
            status=response.status,
            headers={key: value for key, value in dict(response.headers).items()},
            body=payload,
        )

    async def send(self, method, url, headers, body, timeout) -> RawResponse:
        try:
            return await asyncio.wait_for(self._roundtrip(method, url, headers, body), timeout)
        except asyncio.TimeoutError as e:
            raise TransportTimeoutException(timeout) from e
        except OSError as e:
            logger.warning(f"Fetch to {url} failed: {e}")
            raise TransportUnreachableException(f"Could not reach {url}: {e}") from e


def build_transport(config: ClientConfig, fetch: Optional[FetchFunction] = None) -> Transport:
    """Creates the transport selected in the configuration."""
    if config.transport is TransportKind.FETCH:
        return FetchTransport(fetch)
    return AiohttpTransport()
