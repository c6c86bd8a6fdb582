"""Connection probes for the third-party services configured in admin settings."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from argufight.services.api_usage import ApiUsageService
from argufight.services.integrations.base import IntegrationProbe, ProbeResult
from argufight.services.integrations.deepseek import DeepSeekProbe, estimate_cost
from argufight.services.integrations.google_analytics import GoogleAnalyticsProbe
from argufight.services.integrations.resend import ResendProbe
from argufight.services.integrations.stripe import StripeProbe
from argufight.services.settings_manager import SettingsManager

logger = logging.getLogger(__name__)

PROVIDERS = ("deepseek", "resend", "google-analytics", "stripe")

# Credentials each provider reads from the store (environment as fallback)
PROVIDER_CREDENTIALS = {
    "deepseek": ("DEEPSEEK_API_KEY",),
    "resend": ("RESEND_API_KEY",),
    "google-analytics": ("GOOGLE_ANALYTICS_API_KEY", "GOOGLE_ANALYTICS_PROPERTY_ID"),
    "stripe": ("STRIPE_SECRET_KEY", "STRIPE_PUBLISHABLE_KEY"),
}


async def build_probe(provider: str, manager: SettingsManager) -> IntegrationProbe:
    """Create the probe for a provider using the currently saved credentials."""
    if provider == "deepseek":
        return DeepSeekProbe(await manager.get_credential("DEEPSEEK_API_KEY"))
    if provider == "resend":
        return ResendProbe(await manager.get_credential("RESEND_API_KEY"))
    if provider == "google-analytics":
        return GoogleAnalyticsProbe(
            await manager.get_credential("GOOGLE_ANALYTICS_API_KEY"),
            await manager.get_credential("GOOGLE_ANALYTICS_PROPERTY_ID"),
        )
    if provider == "stripe":
        return StripeProbe(
            await manager.get_credential("STRIPE_SECRET_KEY"),
            await manager.get_credential("STRIPE_PUBLISHABLE_KEY"),
        )
    raise ValueError(f"Unknown provider: {provider}")


async def run_probe(
    provider: str, db: AsyncSession, user_id: str | None = None
) -> ProbeResult:
    """Test a provider with saved credentials and record the call in api_usage."""
    manager = SettingsManager(db)
    async with await build_probe(provider, manager) as probe:
        result = await probe.test_connection()

    cost = 0.0
    prompt_tokens = completion_tokens = None
    if isinstance(probe, DeepSeekProbe) and result.success:
        prompt_tokens, completion_tokens = probe.prompt_tokens, probe.completion_tokens
        cost = estimate_cost(prompt_tokens, completion_tokens)

    await ApiUsageService(db).record(
        provider=probe.provider_name,
        endpoint=probe.endpoint,
        success=result.success,
        model=getattr(probe, "model", None),
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=result.tokens_used,
        cost=cost,
        error_message=result.error,
        response_time_ms=result.response_time_ms,
        user_id=user_id,
    )
    return result


__all__ = [
    "PROVIDERS",
    "PROVIDER_CREDENTIALS",
    "DeepSeekProbe",
    "GoogleAnalyticsProbe",
    "IntegrationProbe",
    "ProbeResult",
    "ResendProbe",
    "StripeProbe",
    "build_probe",
    "run_probe",
]
