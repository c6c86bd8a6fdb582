"""Stripe connection probe."""

import logging

from argufight.config import settings
from argufight.services.integrations.base import IntegrationProbe, ProbeResult, error_message

logger = logging.getLogger(__name__)


def key_mode(key: str) -> str:
    return "test" if "_test_" in key else "live"


class StripeProbe(IntegrationProbe):
    """Checks key formats, test/live agreement, then retrieves the balance."""

    provider_name = "stripe"
    endpoint = "v1/balance"

    def __init__(
        self,
        secret_key: str | None,
        publishable_key: str | None = None,
        api_base: str | None = None,
    ):
        super().__init__()
        self.secret_key = secret_key
        self.publishable_key = publishable_key
        self.api_base = (api_base or settings.stripe_api_base).rstrip("/")

    def check_keys(self) -> ProbeResult | None:
        """Static checks that need no network. Returns a failure or None."""
        if not self.secret_key:
            return ProbeResult.fail("Stripe secret key is not configured")
        if not self.secret_key.startswith(("sk_test_", "sk_live_")):
            return ProbeResult.fail("Invalid Stripe secret key format (should start with sk_test_ or sk_live_)")
        if self.publishable_key:
            if not self.publishable_key.startswith(("pk_test_", "pk_live_")):
                return ProbeResult.fail(
                    "Invalid Stripe publishable key format (should start with pk_test_ or pk_live_)"
                )
            if key_mode(self.publishable_key) != key_mode(self.secret_key):
                return ProbeResult.fail(
                    f"Stripe keys are from different modes (publishable: "
                    f"{key_mode(self.publishable_key).upper()}, secret: "
                    f"{key_mode(self.secret_key).upper()}). Both must be TEST or both LIVE."
                )
        return None

    async def probe(self) -> ProbeResult:
        failure = self.check_keys()
        if failure:
            return failure

        response = await self.client.get(
            f"{self.api_base}/{self.endpoint}",
            auth=(self.secret_key, ""),
        )

        if response.status_code == 401:
            message = error_message(response)
            if "expired" in message.lower():
                return ProbeResult.fail(f"Stripe API key has expired: {message}")
            return ProbeResult.fail(f"Stripe authentication failed: {message}")
        if response.status_code >= 400:
            return ProbeResult.fail(f"Stripe API error: {error_message(response)}")

        balance = response.json()
        available = [
            {"amount": entry.get("amount", 0), "currency": entry.get("currency")}
            for entry in balance.get("available", [])
        ]
        mode = key_mode(self.secret_key)
        return ProbeResult.ok(
            f"Stripe connection successful ({mode.upper()} mode)",
            mode=mode,
            livemode=bool(balance.get("livemode", mode == "live")),
            available=available,
        )
