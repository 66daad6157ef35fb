"""
Metric sink base class.

Every backend implements the same ``export`` contract. Sinks perform exactly
one delivery attempt per call: they never retry and never deduplicate, and
any failure surfaces as a SinkError for that sink alone.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from modbus_exporter.logging import get_logger
from modbus_exporter.samples import Sample
from modbus_exporter.utils.exceptions import DeliveryFailedError

logger = get_logger(__name__)

# Longest backend error body kept in a DeliveryFailedError
MAX_ERROR_BODY = 300


class MetricSink(ABC):
    """Abstract base class for metric backends."""

    #: Short identifier used in logs and cycle reports
    name: str = "sink"

    def __init__(self, timeout_s: float, client: Optional[httpx.AsyncClient] = None):
        self.timeout_s = timeout_s
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @abstractmethod
    async def export(self, sample: Sample) -> None:
        """
        Deliver one sample to the backend.

        Raises:
            DeliveryFailedError: On any non-2xx response, transport failure or timeout
        """
        ...

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one request and classify the outcome."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise DeliveryFailedError(self.name, f"request timed out after {self.timeout_s}s ({type(e).__name__})") from e
        except httpx.RequestError as e:
            raise DeliveryFailedError(self.name, f"failed to reach {url}: {e}") from e

        if not response.is_success:
            body = response.text.strip()
            if len(body) > MAX_ERROR_BODY:
                body = body[:MAX_ERROR_BODY] + "..."
            raise DeliveryFailedError(
                self.name,
                body or response.reason_phrase,
                status_code=response.status_code,
            )
        return response

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
