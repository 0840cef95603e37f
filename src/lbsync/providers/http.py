"""
Shared aiohttp plumbing for REST-based provider adapters.

One RESTClient (and one aiohttp.ClientSession) lives for the duration of a
backend session; nothing is pooled across sessions.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

import aiohttp

from lbsync.errors import ProviderError

logger = logging.getLogger(__name__)


def build_base_url(host: str, port: int, default_scheme: str = "https") -> str:
    """
    Build the API base URL from a provider host and port.

    The host may carry its own scheme ("http://10.0.0.1"); otherwise
    default_scheme is used. A port of 0 leaves the scheme default.
    """
    host = host.rstrip("/")
    if "://" not in host:
        host = f"{default_scheme}://{host}"
    if port:
        return f"{host}:{port}"
    return host


class RESTClient:
    """Thin JSON-over-HTTP client bound to one appliance."""

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        validate_certs: bool = False,
        timeout: int = 30,
        debug: bool = False,
        headers: Optional[Dict[str, str]] = None,
        basic_auth: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.validate_certs = validate_certs
        self.timeout = timeout
        self.debug = debug
        self._auth = aiohttp.BasicAuth(username, password) if basic_auth else None
        self._headers = {"Content-Type": "application/json"}
        if headers:
            self._headers.update(headers)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def ssl(self):
        """TCPConnector ssl argument: None verifies certificates, False skips it."""
        return None if self.validate_certs else False

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers,
                auth=self._auth,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                connector=aiohttp.TCPConnector(ssl=self.ssl),
            )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(
        self,
        method: str,
        path: str,
        operation: str,
        resource: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Any] = None,
        allow_status: Iterable[int] = (),
    ) -> Tuple[int, Any]:
        """
        Issue a request and decode the JSON body.

        Statuses >= 400 raise ProviderError unless listed in allow_status
        (e.g. 404 on a lookup meaning "does not exist").

        Returns:
            Tuple of (status, decoded body or None)
        """
        await self.open()
        url = f"{self.base_url}{path}"
        if self.debug:
            logger.debug(f"{method} {url} params={params} body={payload}")

        try:
            async with self._session.request(
                method, url, params=params, json=payload
            ) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise ProviderError(
                operation, resource, f"request timed out after {self.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise ProviderError(operation, resource, f"request failed: {e}") from e
        except UnicodeDecodeError as e:
            raise ProviderError(operation, resource, f"undecodable response: {e}") from e

        if self.debug:
            logger.debug(f"{method} {url} -> {status} {text}")

        body = None
        if text:
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                body = text

        if status >= 400 and status not in allow_status:
            raise ProviderError(operation, resource, _error_message(body), status=status)
        return status, body


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "errorMessage", "error"):
            if body.get(key):
                return str(body[key])
    if body:
        return str(body)
    return "unexpected response"
