"""Generic generation passthrough: free-form completions, images, key checks.

These calls go straight to the OpenAI adapter without agent templates.
Quota and missing-key failures on text generation fall back to canned
copy variations; everything else surfaces as GenerationError.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import BadRequestError
from app.gateway.fallbacks import generation_fallback
from app.gateway.providers import (
    BaseProvider,
    OpenAIProvider,
    ProviderError,
    ProviderKeyMissingError,
    build_providers,
)
from app.gateway.types import CompletionRequest, ProviderName

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Upstream generation failed; rendered as 500 {message, error}."""

    def __init__(self, message: str, error: str):
        super().__init__(f"{message}: {error}")
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        return {"message": self.message, "error": self.error}


def wants_json(response_format: str | Mapping[str, Any] | None) -> bool:
    """Accept both "json" and OpenAI's {"type": "json_object"} shape."""
    if isinstance(response_format, str):
        return response_format.strip().lower() in ("json", "json_object")
    if isinstance(response_format, Mapping):
        return response_format.get("type") == "json_object"
    return False


class GenerationService:
    def __init__(
        self,
        providers: Mapping[ProviderName, BaseProvider] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.providers = dict(providers) if providers is not None else build_providers(self.settings)

    @property
    def openai(self) -> OpenAIProvider:
        return self.providers[ProviderName.OPENAI]

    async def generate(
        self,
        prompt: str | None,
        system_prompt: str = "",
        model: str | None = None,
        temperature: float = 0.7,
        response_format: str | dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Single chat completion; canned variations on quota or missing key."""
        if not prompt or not prompt.strip():
            raise BadRequestError("Prompt is required")

        request = CompletionRequest(
            prompt=prompt,
            system=system_prompt or "",
            model=model or self.settings.openai_default_model,
            temperature=temperature,
            max_tokens=self.settings.openrouter_max_tokens,
            json_mode=wants_json(response_format),
        )
        try:
            completion = await self.openai.complete(request)
        except ProviderError as e:
            if isinstance(e, ProviderKeyMissingError) or e.is_quota_error:
                logger.warning("Generation unavailable (%s) — serving canned variations", e)
                return {"content": json.dumps(generation_fallback(), ensure_ascii=False), "fallback": True}
            logger.error("Error generating content: %s", e)
            raise GenerationError("Error generating content", str(e)) from e

        return {
            "content": completion.content,
            "usage": completion.usage,
            "model": completion.model,
            "fallback": False,
        }

    async def generate_images(
        self,
        prompt: str | None,
        n: int = 1,
        size: str = "1024x1024",
        quality: str = "standard",
    ) -> list[dict[str, Any]]:
        if not prompt or not prompt.strip():
            raise BadRequestError("Prompt is required")
        try:
            return await self.openai.generate_images(
                prompt, n=n, size=size, quality=quality, model=self.settings.openai_image_model
            )
        except ProviderError as e:
            logger.error("Error generating image: %s", e)
            raise GenerationError("Error generating image", str(e)) from e

    async def verify_key(self, provider_name: str = "openai") -> dict[str, Any]:
        """Send a minimal live completion to prove the provider key works."""
        try:
            name = ProviderName(provider_name.strip().lower())
        except ValueError:
            raise BadRequestError(f"Unknown provider: {provider_name}")

        provider = self.providers[name]
        try:
            completion = await provider.complete(
                CompletionRequest(prompt="Say hello", temperature=0.0, max_tokens=5)
            )
        except ProviderError as e:
            logger.error("%s key verification failed: %s", provider.display_name, e)
            raise GenerationError(f"{provider.display_name} API key verification failed", str(e)) from e

        return {
            "status": "success",
            "message": f"{provider.display_name} API key is valid",
            "model": completion.model,
        }


_service: GenerationService | None = None


def get_generation_service() -> GenerationService:
    """FastAPI dependency returning the process-wide generation service."""
    global _service
    if _service is None:
        _service = GenerationService()
    return _service
