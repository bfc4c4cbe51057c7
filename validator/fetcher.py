"""HTTP fetching of exposition payloads from a target"""
from typing import Optional

import httpx

from logging_config import get_logger


logger = get_logger(__name__)

OPENMETRICS_ACCEPT = "application/openmetrics-text; version=1.0.0; charset=utf-8"


class FetchError(Exception):
    """The target could not be scraped"""

    def __init__(self, target: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"scrape of {target} failed: {message}")
        self.target = target
        self.status_code = status_code


class TargetFetcher:
    """Fetches one payload per call from a target over HTTP"""

    def __init__(self, target: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.target = target
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True

    async def fetch(self) -> bytes:
        """Fetch the raw payload body"""
        if self._client is None:
            await self.start()

        try:
            response = await self._client.get(
                self.target,
                headers={"Accept": OPENMETRICS_ACCEPT},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise FetchError(self.target, f"{type(e).__name__}: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise FetchError(self.target, f"unexpected status {response.status_code}", response.status_code)

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("application/openmetrics-text"):
            logger.debug(
                "Target did not answer with OpenMetrics content type",
                target=self.target,
                content_type=content_type,
                event_type="content_type_mismatch",
            )
        return response.content

    async def close(self) -> None:
        """Close the client if this fetcher created it; injected clients stay usable"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
