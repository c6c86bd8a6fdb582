"""Resend (transactional email) connection probe."""

import logging

from argufight.config import settings
from argufight.services.integrations.base import IntegrationProbe, ProbeResult, error_message

logger = logging.getLogger(__name__)


class ResendProbe(IntegrationProbe):
    """Lists the account's API keys; no email is sent."""

    provider_name = "resend"
    endpoint = "api-keys"

    def __init__(self, api_key: str | None, api_base: str | None = None):
        super().__init__()
        self.api_key = api_key
        self.api_base = (api_base or settings.resend_api_base).rstrip("/")

    async def probe(self) -> ProbeResult:
        if not self.api_key:
            return ProbeResult.fail("Resend API key is not configured")
        if not self.api_key.startswith("re_"):
            return ProbeResult.fail('Invalid Resend API key format (should start with "re_")')

        response = await self.client.get(
            f"{self.api_base}/{self.endpoint}",
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

        if response.status_code in (401, 403):
            return ProbeResult.fail(f"Resend rejected the API key: {error_message(response)}")
        if response.status_code >= 400:
            return ProbeResult.fail(f"Resend API error: {error_message(response)}")

        keys = response.json().get("data") or []
        return ProbeResult.ok(
            f"Resend API key is valid ({len(keys)} API keys found)",
            apiKeysFound=len(keys),
        )
