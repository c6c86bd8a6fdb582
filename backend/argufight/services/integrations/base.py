"""Abstract base class for integration connection probes."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from argufight.config import settings
from argufight.utils.log_redaction import redact_text

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of a "test connection" call, as rendered by the admin UI."""

    success: bool
    message: str | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    tokens_used: int | None = None
    response_time_ms: int | None = None

    @classmethod
    def ok(cls, message: str, **details: Any) -> "ProbeResult":
        return cls(success=True, message=message, details=details)

    @classmethod
    def fail(cls, error: str, **details: Any) -> "ProbeResult":
        return cls(success=False, error=error, details=details)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.message is not None:
            body["message"] = self.message
        if self.error is not None:
            body["error"] = self.error
        body.update(self.details)
        return body


class IntegrationProbe(ABC):
    """Verifies that saved credentials for one provider actually work."""

    provider_name: str = "base"
    endpoint: str = ""

    def __init__(self, timeout: float | None = None) -> None:
        self.client = httpx.AsyncClient(timeout=timeout or settings.integration_timeout)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    @abstractmethod
    async def probe(self) -> ProbeResult:
        """Make the provider call. May raise httpx errors."""
        pass

    async def test_connection(self) -> ProbeResult:
        """
        Run the probe without raising.

        Upstream failures become ``success=False`` results carrying the
        provider's message, never exceptions.
        """
        started = time.monotonic()
        try:
            result = await self.probe()
        except httpx.TimeoutException:
            result = ProbeResult.fail(f"Connection to {self.provider_name} timed out")
        except httpx.HTTPError as e:
            result = ProbeResult.fail(f"Connection to {self.provider_name} failed: {e}")
        except (ValueError, KeyError) as e:
            result = ProbeResult.fail(f"Unexpected response from {self.provider_name}: {e}")

        result.response_time_ms = int((time.monotonic() - started) * 1000)
        if result.success:
            logger.info(f"[{self.provider_name}] Connection test passed ({result.response_time_ms}ms)")
        else:
            logger.warning(f"[{self.provider_name}] Connection test failed: {redact_text(result.error or '')}")
        return result

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False


def error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of a provider error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        error = payload.get("error", payload)
        if isinstance(error, dict):
            return str(error.get("message") or error.get("status") or error)
        if isinstance(error, str):
            return payload.get("message") or error
    return str(payload)
