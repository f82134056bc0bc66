from __future__ import annotations

from typing import Any

from anthropic import AsyncAnthropic

from cryptodash.analysis.prompt import SYSTEM_PROMPT
from cryptodash.core.config import CompletionConfig
from cryptodash.core.logging import get_logger, mask_api_key, safe_json
from cryptodash.providers.errors import NotConfiguredError, ProviderError


class CompletionClient:
    """Single-message chat completion used for coin recommendations."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-3-5-haiku-latest",
        temperature: float = 0.4,
        max_tokens: int = 300,
        client: Any | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client
        self._log = get_logger(__name__)
        self._log.info("CompletionClient init %s", safe_json({"model": model, "api_key": mask_api_key(api_key)}))

    @classmethod
    def from_config(cls, config: CompletionConfig, api_key: str = "") -> CompletionClient:
        return cls(api_key=api_key, model=config.model, temperature=config.temperature, max_tokens=config.max_tokens)

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _require_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise NotConfiguredError("Completion API key not configured")
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        client = self._require_client()
        self._log.info("requesting completion %s", safe_json({"model": self.model, "prompt_chars": len(prompt)}))
        response = await client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(getattr(block, "text", "") for block in (response.content or []))
        if not text.strip():
            raise ProviderError("No response from completion endpoint")
        return text
