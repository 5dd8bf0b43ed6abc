"""Client for the Pingdom network-testing API.

This module lists the available probe locations and runs single timed
HTTP checks from one location at a time.
"""

import logging

import httpx

from relay.probe.models import STATUS_ERROR, UNKNOWN_LOCATION, Probe, ProbeResult

logger = logging.getLogger(__name__)

# Constants
DEFAULT_API_BASE = "https://api.pingdom.com/api/3.1"
DEFAULT_TIMEOUT = 30.0  # seconds


class ProbeClientError(Exception):
    """Exception raised when probe API operations fail."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PingdomClient:
    """Async client for the probe listing and single-check endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the Pingdom client.

        Args:
            http_client: Async HTTP client for making requests.
            token: Bearer token for the Pingdom API.
            api_base: Base URL of the API, without a trailing slash.
            timeout: Request timeout in seconds.
        """
        self._http_client = http_client
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def get_probes(self) -> list[Probe]:
        """Fetch every active probe location.

        Returns:
            Active probes in the order the API lists them.

        Raises:
            ProbeClientError: If the API call fails.
        """
        url = f"{self._api_base}/probes"
        try:
            response = await self._http_client.get(
                url, headers=self._headers(), timeout=self._timeout
            )
        except httpx.RequestError as e:
            logger.error("Failed to fetch probes: %s", e)
            raise ProbeClientError(f"Failed to fetch probes: {e}") from e

        if not response.is_success:
            raise ProbeClientError(
                f"Failed to fetch probes: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        probes = [Probe.model_validate(item) for item in data.get("probes", [])]
        active = [probe for probe in probes if probe.active]
        logger.info("Fetched %d probes (%d active)", len(probes), len(active))
        return active

    async def run_single_test(self, host: str, path: str, probe_id: int) -> ProbeResult:
        """Run one HTTP check against the target from one probe.

        Never raises: failures are reported as a result with status ``error``.

        Args:
            host: Target host name.
            path: Target path on the host.
            probe_id: The probe to run the check from.

        Returns:
            ProbeResult: The check outcome.
        """
        params = {
            "host": host,
            "type": "http",
            "url": path,
            "probeid": str(probe_id),
        }
        try:
            response = await self._http_client.get(
                f"{self._api_base}/single",
                params=params,
                headers=self._headers(),
                timeout=self._timeout,
            )
            if not response.is_success:
                return ProbeResult(
                    probe_id=probe_id,
                    location=UNKNOWN_LOCATION,
                    status=STATUS_ERROR,
                    error=f"API error: {response.status_code} - {response.text}",
                )

            result = response.json()["result"]
            return ProbeResult(
                probe_id=probe_id,
                status=result["status"],
                response_time=result.get("responsetime"),
                location=result.get("probedesc") or UNKNOWN_LOCATION,
            )
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning("Probe %d check failed: %s", probe_id, e)
            return ProbeResult(
                probe_id=probe_id,
                location=UNKNOWN_LOCATION,
                status=STATUS_ERROR,
                error=str(e),
            )
