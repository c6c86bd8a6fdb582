"""Google Analytics 4 (Data API) connection probe."""

import json
import logging
import time
from datetime import date
from typing import Any

from authlib.jose import jwt

from argufight.config import settings
from argufight.services.integrations.base import IntegrationProbe, ProbeResult, error_message

logger = logging.getLogger(__name__)

ANALYTICS_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
REQUIRED_FIELDS = ("project_id", "private_key", "client_email")


class GoogleAnalyticsProbe(IntegrationProbe):
    """
    Authenticates as the saved service account and runs a one-day report.

    Flow: validate the service-account JSON, sign an RS256 assertion, trade it
    for an access token, then call ``properties/{id}:runReport`` for today's
    sessions and users.
    """

    provider_name = "google_analytics"
    endpoint = "runReport"

    def __init__(
        self,
        credentials_json: str | None,
        property_id: str | None,
        token_url: str | None = None,
        api_base: str | None = None,
    ):
        super().__init__()
        self.credentials_json = credentials_json
        self.property_id = (property_id or "").strip() or None
        self.token_url = token_url or settings.google_oauth_token_url
        self.api_base = (api_base or settings.google_analytics_api_base).rstrip("/")

    def parse_credentials(self) -> tuple[dict[str, Any] | None, ProbeResult | None]:
        """Validate the pasted JSON. Returns (credentials, None) or (None, failure)."""
        if not self.property_id:
            return None, ProbeResult.fail("Google Analytics Property ID is required")
        if not self.credentials_json:
            return None, ProbeResult.fail("Google Analytics Service Account JSON is required")

        try:
            credentials = json.loads(self.credentials_json)
        except ValueError:
            return None, ProbeResult.fail(
                "Invalid JSON format. Please ensure you pasted the Service Account JSON "
                '(not the gtag.js script). The JSON should start with {"type": "service_account", ...}'
            )

        if not isinstance(credentials, dict) or credentials.get("type") != "service_account":
            return None, ProbeResult.fail(
                'Invalid Service Account JSON. The JSON should have "type": "service_account". '
                "Make sure you downloaded the JSON key file from Google Cloud Console, "
                "not the gtag.js script."
            )

        if not all(credentials.get(name) for name in REQUIRED_FIELDS):
            return None, ProbeResult.fail(
                "Invalid Service Account JSON. Missing required fields "
                "(project_id, private_key, or client_email)."
            )

        return credentials, None

    def build_assertion(self, credentials: dict[str, Any]) -> str:
        """Sign the service-account JWT used in the token exchange."""
        issued_at = int(time.time())
        header = {"alg": "RS256", "typ": "JWT"}
        if credentials.get("private_key_id"):
            header["kid"] = credentials["private_key_id"]
        payload = {
            "iss": credentials["client_email"],
            "scope": ANALYTICS_SCOPE,
            "aud": credentials.get("token_uri") or self.token_url,
            "iat": issued_at,
            "exp": issued_at + 3600,
        }
        token = jwt.encode(header, payload, credentials["private_key"])
        return token.decode("utf-8") if isinstance(token, bytes) else token

    def explain(self, message: str, credentials: dict[str, Any]) -> str:
        """Turn a Data API error into operator guidance."""
        if "PERMISSION_DENIED" in message or "403" in message:
            return (
                "Permission denied. Make sure the service account email has been added to your "
                'GA4 property with at least "Viewer" role. Service account email: '
                f"{credentials['client_email']}"
            )
        if "NOT_FOUND" in message or "404" in message:
            return (
                f'Property ID "{self.property_id}" not found. Please verify the Property ID in '
                "Google Analytics Admin → Property Settings."
            )
        if "INVALID_ARGUMENT" in message:
            return 'Invalid Property ID format. Property ID should be a number (e.g., "123456789").'
        return message

    async def probe(self) -> ProbeResult:
        credentials, failure = self.parse_credentials()
        if failure:
            return failure

        try:
            assertion = self.build_assertion(credentials)
        except Exception as e:
            return ProbeResult.fail(f"Failed to initialize Google Analytics client: {e}")

        token_response = await self.client.post(
            credentials.get("token_uri") or self.token_url,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
        )
        if token_response.status_code >= 400:
            return ProbeResult.fail(
                f"Google authentication failed: {error_message(token_response)}"
            )
        access_token = token_response.json()["access_token"]

        today = date.today().isoformat()
        report_response = await self.client.post(
            f"{self.api_base}/properties/{self.property_id}:runReport",
            headers={"Authorization": f"Bearer {access_token}"},
            json={
                "dateRanges": [{"startDate": today, "endDate": today}],
                "metrics": [{"name": "sessions"}, {"name": "totalUsers"}],
                "limit": 1,
            },
        )

        if report_response.status_code >= 400:
            raw = _status_text(report_response)
            return ProbeResult.fail(
                f"Google Analytics API error: {self.explain(raw, credentials)}",
                details=raw,
            )

        rows = report_response.json().get("rows") or []
        metric_values = rows[0].get("metricValues", []) if rows else []

        def metric(index: int) -> str:
            if index < len(metric_values):
                return metric_values[index].get("value") or "0"
            return "0"

        return ProbeResult.ok(
            "Connection successful! Successfully connected to Google Analytics "
            f"Property {self.property_id}.",
            propertyId=self.property_id,
            serviceAccountEmail=credentials["client_email"],
            testData={"sessions": metric(0), "users": metric(1)},
        )


def _status_text(response) -> str:
    """Google errors carry both a message and a canonical status; keep both."""
    message = error_message(response)
    try:
        status = response.json().get("error", {}).get("status")
    except (ValueError, AttributeError):
        status = None
    if status and status not in message:
        return f"{status}: {message}"
    return f"{response.status_code} {message}" if str(response.status_code) not in message else message
