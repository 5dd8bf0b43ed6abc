"""HTTP client for the upstream token-streaming LLM API.

This module opens a streaming chat-completion request and classifies the
failures that can happen before any byte is relayed downstream.
"""

import logging

import httpx

from relay.streaming.models import UpstreamRequest

logger = logging.getLogger(__name__)

# Constants
DEFAULT_TIMEOUT = 60.0  # seconds
ERROR_BODY_PREVIEW = 200
NO_BODY_MESSAGE = "Failed to get response stream from LLM API"


class UpstreamClientError(Exception):
    """Exception raised when the upstream call fails before streaming."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamRejectedError(UpstreamClientError):
    """The upstream API answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"LLM API Error: {status_code} - {body}", status_code=status_code)
        self.body = body


class UpstreamUnavailableError(UpstreamClientError):
    """The upstream API accepted the call but returned no readable body."""

    def __init__(self, message: str = NO_BODY_MESSAGE):
        super().__init__(message, status_code=500)


class UpstreamClient:
    """Async client that opens streaming requests against the LLM API.

    The caller owns the returned response and must close it.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        endpoint: str,
        token: str = "",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the upstream client.

        Args:
            http_client: Shared async HTTP client.
            endpoint: Full URL of the chat-completion endpoint.
            token: Bearer credential forwarded upstream.
            timeout: Request timeout in seconds.
        """
        self._http_client = http_client
        self._endpoint = endpoint
        self._token = token
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def open_stream(self, request: UpstreamRequest) -> httpx.Response:
        """Send the request and return the response with its body unread.

        Args:
            request: The upstream request to send.

        Returns:
            httpx.Response: An open streaming response with a success status.

        Raises:
            UpstreamRejectedError: If the API returns a non-success status.
            UpstreamUnavailableError: If the API returns no body to stream.
            UpstreamClientError: If the request cannot be sent.
        """
        logger.debug("Opening upstream stream to %s (model=%s)", self._endpoint, request.model)

        http_request = self._http_client.build_request(
            "POST",
            self._endpoint,
            json=request.to_payload(),
            headers=self._headers(),
            timeout=self._timeout,
        )

        try:
            response = await self._http_client.send(http_request, stream=True)
        except httpx.TimeoutException as e:
            logger.error("Upstream request timed out: %s", e)
            raise UpstreamClientError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.error("Upstream request failed: %s", e)
            raise UpstreamClientError(f"Request failed: {e}") from e

        if not response.is_success:
            try:
                error_body = await response.aread()
            finally:
                await response.aclose()
            error_msg = error_body.decode("utf-8", errors="replace")
            logger.error(
                "Upstream returned error: status=%d, body=%s",
                response.status_code,
                error_msg[:ERROR_BODY_PREVIEW],
            )
            raise UpstreamRejectedError(response.status_code, error_msg)

        if response.status_code == 204 or response.headers.get("content-length") == "0":
            await response.aclose()
            logger.error("Upstream returned no body (status=%d)", response.status_code)
            raise UpstreamUnavailableError()

        return response
