"""Provider Adapters — one class per upstream LLM HTTP API.

Each adapter turns a CompletionRequest into the provider's wire format,
performs exactly one HTTP call and returns a ProviderCompletion. There is
no retry and no backoff: any failure is raised to the caller.

Provider-specific behaviors:
  - OpenAI: chat completions (generic generation) + image generation
  - OpenRouter: OpenAI-compatible chat API, requires HTTP-Referer / X-Title
  - Gemini: generateContent with optional Google Search grounding,
    finishReason SAFETY / blocked prompts raise, grounding chunks → citations
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from app.core.config import Settings
from app.core.metrics import PROVIDER_DURATION
from app.gateway.types import CompletionRequest, ProviderCompletion, ProviderName

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Upstream call failed. The message embeds the HTTP status and body text."""

    def __init__(self, message: str, status_code: int = 0, error_code: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code

    @property
    def is_quota_error(self) -> bool:
        return self.status_code == 429 or self.error_code in _QUOTA_ERROR_CODES


class ProviderKeyMissingError(ProviderError):
    """No API key configured; raised before any network I/O."""


class ProviderTimeoutError(ProviderError):
    """The upstream did not answer in time."""


class ProviderNetworkError(ProviderError):
    """Connection-level failure (DNS, refused, reset...)."""


_QUOTA_ERROR_CODES = {"insufficient_quota", "rate_limit_exceeded", "RESOURCE_EXHAUSTED"}


def _error_code_from_body(resp: httpx.Response) -> str:
    """Pull a machine-readable code out of an upstream error body, if any."""
    try:
        data = resp.json()
    except ValueError:
        return ""
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        code = err.get("type") or err.get("status") or err.get("code") or ""
        return str(code)
    if isinstance(err, str):
        return err
    return ""


class BaseProvider(ABC):
    """Base class for all provider adapters."""

    name: ProviderName
    display_name: str = ""
    default_model: str = ""

    def __init__(self, api_key: str, base_url: str, timeout: float = 120.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> ProviderCompletion:
        """Send one completion request and return the raw completion."""
        ...

    def _require_key(self) -> None:
        if not self.configured:
            raise ProviderKeyMissingError(f"{self.display_name} API key is not available")

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST a JSON body and return the decoded JSON response.

        Non-2xx answers raise ProviderError with status and body folded
        into the message.
        """
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"{self.display_name} timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise ProviderNetworkError(f"{self.display_name} network connection error: {e}") from e
        finally:
            PROVIDER_DURATION.labels(provider=self.name.value).observe(time.monotonic() - start)

        if not resp.is_success:
            raise ProviderError(
                f"{self.display_name} API error ({resp.status_code}): {resp.text}",
                status_code=resp.status_code,
                error_code=_error_code_from_body(resp),
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.display_name} returned a non-JSON body ({resp.status_code}): {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e

    async def check_connection(self) -> bool:
        """Send a tiny completion and report whether it worked."""
        try:
            completion = await self.complete(
                CompletionRequest(
                    prompt=f"Hello, please respond with '{self.display_name} is working!'",
                    temperature=0.0,
                    max_tokens=20,
                )
            )
        except ProviderError as e:
            logger.warning("%s connection test failed: %s", self.display_name, e)
            return False
        logger.info("%s connection test succeeded (model=%s)", self.display_name, completion.model)
        return True


# ---------------------------------------------------------------------------
# OpenAI (primary commercial chat API)
# ---------------------------------------------------------------------------


class OpenAIProvider(BaseProvider):
    """OpenAI Chat Completions + Images adapter."""

    name = ProviderName.OPENAI
    display_name = "OpenAI"
    default_model = "gpt-4o"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _chat_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "top_p": request.top_p,
        }
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def complete(self, request: CompletionRequest) -> ProviderCompletion:
        self._require_key()
        model = request.model or self.default_model
        start = time.monotonic()

        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            self._chat_payload(request, model),
            headers=self._headers(),
        )

        try:
            choice = data["choices"][0]
            content = choice["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Invalid response structure from {self.display_name} API") from e
        if not isinstance(content, str):
            raise ProviderError(f"Invalid response structure from {self.display_name} API")

        return ProviderCompletion(
            content=content,
            provider=self.name,
            model=data.get("model", model),
            usage=data.get("usage"),
            latency_ms=int((time.monotonic() - start) * 1000),
            finish_reason=choice.get("finish_reason") or "",
        )

    async def generate_images(
        self,
        prompt: str,
        n: int = 1,
        size: str = "1024x1024",
        quality: str = "standard",
        model: str = "dall-e-3",
    ) -> list[dict[str, Any]]:
        """Generate images; returns a list of {url, revised_prompt?}."""
        self._require_key()
        data = await self._post_json(
            f"{self.base_url}/images/generations",
            {"model": model, "prompt": prompt, "n": n, "size": size, "quality": quality},
            headers=self._headers(),
        )
        images = data.get("data") if isinstance(data, dict) else None
        if not isinstance(images, list):
            raise ProviderError(f"Invalid response structure from {self.display_name} Images API")

        result = []
        for item in images:
            if not isinstance(item, dict):
                continue
            entry = {"url": item.get("url")}
            if item.get("revised_prompt"):
                entry["revised_prompt"] = item["revised_prompt"]
            result.append(entry)
        return result


# ---------------------------------------------------------------------------
# OpenRouter (multi-model aggregator, OpenAI-compatible)
# ---------------------------------------------------------------------------


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter adapter — OpenAI wire format plus app identification headers."""

    name = ProviderName.OPENROUTER
    display_name = "OpenRouter"
    default_model = "mistralai/mistral-7b-instruct"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 120.0,
        referer: str = "",
        title: str = "",
    ):
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout)
        self.referer = referer
        self.title = title

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        # OpenRouter uses these to attribute traffic to the app
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return headers


# ---------------------------------------------------------------------------
# Gemini (search-augmented research)
# ---------------------------------------------------------------------------


class GeminiProvider(BaseProvider):
    """Google Gemini generateContent adapter with SAFETY detection and grounding."""

    name = ProviderName.GEMINI
    display_name = "Gemini"
    default_model = "gemini-2.0-flash"

    def __init__(self, api_key: str, base_url: str, timeout: float = 120.0, search_grounding: bool = True):
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout)
        self.search_grounding = search_grounding

    def _payload(self, request: CompletionRequest) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "temperature": request.temperature,
            "topP": request.top_p,
            "topK": 40,
            "maxOutputTokens": request.max_tokens,
        }
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
            "safetySettings": [
                {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
            ],
        }

        # System instruction is separate from contents in the Gemini API
        if request.system:
            payload["systemInstruction"] = {"parts": [{"text": request.system}]}

        # Gemini rejects a JSON response mime type together with tool use
        if self.search_grounding:
            payload["tools"] = [{"google_search": {}}]
        elif request.json_mode:
            generation_config["responseMimeType"] = "application/json"

        return payload

    async def complete(self, request: CompletionRequest) -> ProviderCompletion:
        self._require_key()
        model = request.model or self.default_model
        start = time.monotonic()

        data = await self._post_json(
            f"{self.base_url}/models/{model}:generateContent",
            self._payload(request),
            headers={"Content-Type": "application/json"},
            params={"key": self.api_key},
        )

        if not isinstance(data, dict):
            raise ProviderError("Invalid response structure from Gemini API")
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason", "")
            if block_reason:
                raise ProviderError(f"Gemini blocked the prompt: {block_reason}", error_code=f"BLOCKED_{block_reason}")
            raise ProviderError("Invalid response structure from Gemini API")

        candidate = candidates[0] if isinstance(candidates, list) else None
        if not isinstance(candidate, dict):
            raise ProviderError("Invalid response structure from Gemini API")
        finish_reason = candidate.get("finishReason", "")
        if finish_reason == "SAFETY":
            raise ProviderError("Gemini safety filter triggered", error_code="SAFETY")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text:
            raise ProviderError("Invalid response structure from Gemini API")

        usage_meta = data.get("usageMetadata") or {}
        usage = None
        if usage_meta:
            usage = {
                "prompt_tokens": usage_meta.get("promptTokenCount", 0),
                "completion_tokens": usage_meta.get("candidatesTokenCount", 0),
                "total_tokens": usage_meta.get("totalTokenCount", 0),
            }

        return ProviderCompletion(
            content=text,
            provider=self.name,
            model=data.get("modelVersion", model),
            usage=usage,
            latency_ms=int((time.monotonic() - start) * 1000),
            finish_reason=finish_reason,
            citations=self._grounding_citations(candidate),
        )

    @staticmethod
    def _grounding_citations(candidate: dict[str, Any]) -> list[dict[str, str]]:
        """Extract unique {title, url} pairs from grounding metadata."""
        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
        seen: set[str] = set()
        result: list[dict[str, str]] = []
        for chunk in chunks:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if not web or not web.get("uri"):
                continue
            url = web["uri"].strip()
            if url in seen:
                continue
            seen.add(url)
            result.append({"title": web.get("title") or url, "url": url})
        return result


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROVIDER_REGISTRY: dict[ProviderName, type[BaseProvider]] = {
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.OPENROUTER: OpenRouterProvider,
    ProviderName.GEMINI: GeminiProvider,
}


def build_providers(settings: Settings) -> dict[ProviderName, BaseProvider]:
    """Factory: one adapter per provider, configured from settings."""
    timeout = settings.provider_timeout_seconds
    return {
        ProviderName.OPENAI: OpenAIProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=timeout,
        ),
        ProviderName.OPENROUTER: OpenRouterProvider(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            timeout=timeout,
            referer=settings.openrouter_referer,
            title=settings.openrouter_title,
        ),
        ProviderName.GEMINI: GeminiProvider(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout=timeout,
            search_grounding=settings.gemini_search_grounding,
        ),
    }
