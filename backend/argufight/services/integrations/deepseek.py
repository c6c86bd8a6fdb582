"""DeepSeek connection probe."""

import logging

from argufight.config import settings
from argufight.services.integrations.base import IntegrationProbe, ProbeResult, error_message

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek-chat"

# USD per million tokens
PROMPT_TOKEN_PRICE = 0.27
COMPLETION_TOKEN_PRICE = 1.10


def estimate_cost(prompt_tokens: int, completion_tokens: int) -> float:
    return (prompt_tokens * PROMPT_TOKEN_PRICE + completion_tokens * COMPLETION_TOKEN_PRICE) / 1_000_000


class DeepSeekProbe(IntegrationProbe):
    """Sends a tiny chat completion to prove the API key can generate verdicts."""

    provider_name = "deepseek"
    endpoint = "chat/completions"

    def __init__(self, api_key: str | None, api_base: str | None = None, model: str = DEFAULT_MODEL):
        super().__init__()
        self.api_key = api_key
        self.api_base = (api_base or settings.deepseek_api_base).rstrip("/")
        self.model = model
        self.prompt_tokens = 0
        self.completion_tokens = 0

    async def probe(self) -> ProbeResult:
        if not self.api_key:
            return ProbeResult.fail("DeepSeek API key is not configured")

        response = await self.client.post(
            f"{self.api_base}/{self.endpoint}",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": 'Reply with exactly: "Connection successful"'}],
                "max_tokens": 20,
            },
        )

        if response.status_code == 401:
            return ProbeResult.fail("Invalid DeepSeek API key")
        if response.status_code == 402:
            return ProbeResult.fail("DeepSeek account has insufficient balance")
        if response.status_code >= 400:
            return ProbeResult.fail(f"DeepSeek API error: {error_message(response)}")

        data = response.json()
        usage = data.get("usage") or {}
        self.prompt_tokens = int(usage.get("prompt_tokens") or 0)
        self.completion_tokens = int(usage.get("completion_tokens") or 0)
        tokens_used = int(usage.get("total_tokens") or self.prompt_tokens + self.completion_tokens)
        reply = data["choices"][0]["message"]["content"].strip()

        result = ProbeResult.ok(
            "DeepSeek API key is valid",
            response=reply,
            tokensUsed=tokens_used,
            model=data.get("model", self.model),
        )
        result.tokens_used = tokens_used
        return result
