"""Transport port for the marketplace reports API, plus an httpx adapter.

Report services only depend on ``ReportsTransport``. ``HttpTransport`` is the
adapter used by the running service; anything with the same two methods
(a test double, a signing client owned by another subsystem) can replace it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import httpx
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)
RATE_LIMIT_HEADER = "x-amzn-ratelimit-limit"


class TransportError(Exception):
    """Raised by a transport when a request cannot be completed."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


@dataclass
class TransportResponse:
    """Decoded response of a reports API call."""

    data: Any
    status: int
    headers: Dict[str, str] = field(default_factory=dict)


class ReportsTransport(Protocol):
    """Authenticated access to the reports API.

    Implementations own authentication, connection retries and rate limiting,
    and raise ``TransportError`` for every failure.
    """

    def send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> TransportResponse:
        ...

    def fetch_raw(self, url: str) -> bytes:
        ...


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS
    return isinstance(error, httpx.TransportError)


class HttpTransport:
    """httpx-backed ``ReportsTransport`` with retries on transient failures."""

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        timeout: float = 30.0,
        max_attempts: int = 3,
        wait=None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Reports API host, e.g. https://sellingpartnerapi-na.amazon.com
            access_token: Bearer token sent with API calls (not with downloads)
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per call, including the first
            wait: tenacity wait strategy between attempts
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        headers = {"Accept": "application/json"}
        if access_token:
            headers["x-amz-access-token"] = access_token
            headers["Authorization"] = f"Bearer {access_token}"

        self.max_attempts = max_attempts
        self.wait = wait if wait is not None else wait_exponential(multiplier=1, min=1, max=10)

        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        # Document URLs are pre-signed; never forward API credentials to them
        self._download_client = httpx.Client(timeout=timeout, transport=transport)

    def _request(self, client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        f"Retrying {method} {url} (attempt {attempt.retry_state.attempt_number}/{self.max_attempts})"
                    )
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response

    def send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> TransportResponse:
        """
        Call a reports API endpoint.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters
            json: JSON request body

        Returns:
            TransportResponse with the parsed JSON body (or text when not JSON)

        Raises:
            TransportError: On any failure left after retries
        """
        try:
            response = self._request(self._client, method, path, params=params, json=json)
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{method} {path} failed with {e.response.status_code}",
                e.response.status_code,
                e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if RATE_LIMIT_HEADER in response.headers:
            logger.debug(f"{method} {path} rate limit: {response.headers[RATE_LIMIT_HEADER]}")

        data: Any = None
        if response.status_code != 204 and response.content:
            try:
                data = response.json()
            except ValueError:
                logger.debug("Response body is not JSON.")
                data = response.text

        return TransportResponse(
            data=data,
            status=response.status_code,
            headers=dict(response.headers),
        )

    def fetch_raw(self, url: str) -> bytes:
        """
        Download a pre-signed document URL.

        Args:
            url: Absolute download URL

        Returns:
            Response body bytes, exactly as served

        Raises:
            TransportError: On any failure left after retries
        """
        try:
            response = self._request(self._download_client, "GET", url)
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Download failed with {e.response.status_code}",
                e.response.status_code,
                e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Download failed: {e}") from e

        return response.content

    def close(self) -> None:
        self._client.close()
        self._download_client.close()
