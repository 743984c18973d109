"""
Report sink implementations.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ui_resilience import config
from ui_resilience.exceptions import ReportDeliveryError

logger = logging.getLogger(__name__)


class HttpReportSink:
    """POSTs JSON payloads to an HTTP endpoint."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = config.SINK_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not endpoint:
            raise ValueError("endpoint is required")
        self.endpoint = endpoint
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    async def send(self, payload: Dict[str, Any]) -> bool:
        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise ReportDeliveryError(self.endpoint, str(e)) from e

        if response.is_success:
            return True
        logger.warning(
            f"Sink {self.endpoint} rejected payload with status {response.status_code}"
        )
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class MemorySink:
    """Keeps delivered payloads in memory. ``accept`` toggles acknowledgement."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.delivered: List[Dict[str, Any]] = []
        self.attempts = 0

    async def send(self, payload: Dict[str, Any]) -> bool:
        self.attempts += 1
        if not self.accept:
            return False
        self.delivered.append(payload)
        return True
