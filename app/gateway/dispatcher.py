"""Agent Dispatcher — routes one agent request to its provider and shapes the result.

Flow for a single request:
  1. Validate prompt and agent name (400 before any upstream call)
  2. Render the agent's system/user prompts from its template
  3. Call the provider
       - Maven: Gemini only, hard deadline, failures → AgentServiceError
       - Matrix / Max: OpenRouter, any failure → canned fallback
  4. Normalize content into a JSON object and apply agent-specific repair
  5. Record outcome metrics

Usage:
    dispatcher = AgentDispatcher()
    result = await dispatcher.dispatch("matrix", "Launch copy for our B2B app", {"tone": "bold"})
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import BadRequestError
from app.core.metrics import AGENT_REQUESTS
from app.gateway.agents import AgentSpec, get_agent_spec
from app.gateway.normalizer import (
    ResponseValidationError,
    coerce_research_result,
    is_html,
    normalize_content,
    repair_matrix_response,
)
from app.gateway.providers import (
    BaseProvider,
    ProviderError,
    ProviderKeyMissingError,
    ProviderNetworkError,
    ProviderTimeoutError,
    build_providers,
)
from app.gateway.types import (
    AgentErrorCode,
    AgentName,
    AgentResult,
    AgentServiceError,
    CompletionRequest,
    ProviderName,
)

logger = logging.getLogger(__name__)


# User-facing research errors: code → (status, message)
RESEARCH_ERRORS: dict[AgentErrorCode, tuple[int, str]] = {
    AgentErrorCode.API_KEY_MISSING: (
        503,
        "Maven research service is temporarily unavailable. Please try again later.",
    ),
    AgentErrorCode.API_KEY_REQUIRED: (
        503,
        "Maven requires a Gemini API key to perform research. Please provide a valid API key.",
    ),
    AgentErrorCode.API_AUTH_ERROR: (
        503,
        "Maven research service is experiencing authentication issues. Please try again later.",
    ),
    AgentErrorCode.RATE_LIMITED: (
        503,
        "Maven research service is receiving too many requests. Please try again in a few minutes.",
    ),
    AgentErrorCode.TIMEOUT: (
        504,
        "Maven research request timed out. Please try a more specific query or try again later.",
    ),
    AgentErrorCode.NETWORK_ERROR: (
        503,
        "Could not connect to research service. Please check network connectivity and try again.",
    ),
    AgentErrorCode.GENERAL_ERROR: (
        500,
        "We couldn't complete your research at this time. Please try again later.",
    ),
    AgentErrorCode.INVALID_RESPONSE: (
        502,
        "The AI service returned a response that could not be processed. Please try again.",
    ),
}


def agent_error(code: AgentErrorCode) -> AgentServiceError:
    status, message = RESEARCH_ERRORS[code]
    return AgentServiceError(code, message, status_code=status)


def classify_research_failure(exc: ProviderError, key_configured: bool = True) -> AgentErrorCode:
    """Map a provider failure on the research path to a client-facing code.

    Key rejections are auth errors unless no usable key was configured.
    """
    if isinstance(exc, ProviderKeyMissingError):
        return AgentErrorCode.API_KEY_MISSING
    if isinstance(exc, ProviderTimeoutError):
        return AgentErrorCode.TIMEOUT
    if isinstance(exc, ProviderNetworkError):
        return AgentErrorCode.NETWORK_ERROR
    if "api key" in str(exc).lower():
        return AgentErrorCode.API_AUTH_ERROR if key_configured else AgentErrorCode.API_KEY_REQUIRED
    if exc.status_code in (401, 403):
        return AgentErrorCode.API_AUTH_ERROR
    if exc.is_quota_error:
        return AgentErrorCode.RATE_LIMITED
    return AgentErrorCode.GENERAL_ERROR


def _outcome(result: AgentResult) -> str:
    if result.fallback:
        return "fallback"
    if result.degraded:
        return "degraded"
    return "success"


class AgentDispatcher:
    """Dispatches agent requests to providers.

    Stateless across requests: providers are plain adapters that open a
    fresh HTTP client per call.
    """

    def __init__(
        self,
        providers: Mapping[ProviderName, BaseProvider] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.providers = dict(providers) if providers is not None else build_providers(self.settings)

    async def dispatch(
        self,
        agent_name: str,
        prompt: str | None,
        params: Mapping[str, Any] | None = None,
        free_trial: bool = False,
    ) -> AgentResult:
        """Run one agent request end to end.

        Raises BadRequestError on invalid input and AgentServiceError on
        research failures (or malformed content in strict mode).
        """
        if not prompt or not prompt.strip():
            raise BadRequestError("Prompt is required")

        agent = AgentName.parse(agent_name)
        if agent is None:
            raise BadRequestError("Invalid agent type")

        spec = get_agent_spec(agent)
        params = params or {}
        start = time.monotonic()

        logger.info(
            "Dispatching agent=%s provider=%s free_trial=%s prompt_len=%d",
            agent.value,
            spec.provider.value,
            free_trial,
            len(prompt),
        )

        try:
            if spec.fallback is None:
                result = await self._run_research(spec, prompt, params)
            else:
                result = await self._run_with_fallback(spec, prompt, params)
        except AgentServiceError as e:
            AGENT_REQUESTS.labels(agent=agent.value, outcome="error").inc()
            logger.warning("Agent %s failed: %s (%s)", agent.value, e.code.value, e.message)
            raise

        result.processing_time_ms = int((time.monotonic() - start) * 1000)
        AGENT_REQUESTS.labels(agent=agent.value, outcome=_outcome(result)).inc()
        logger.info(
            "Agent %s done: source=%s fallback=%s degraded=%s (%dms)",
            agent.value,
            result.source,
            result.fallback,
            result.degraded,
            result.processing_time_ms,
        )
        return result

    def _build_request(self, spec: AgentSpec, prompt: str, params: Mapping[str, Any]) -> CompletionRequest:
        return CompletionRequest(
            prompt=spec.render_user(prompt),
            system=spec.render_system(params),
            model=spec.model(self.settings),
            temperature=spec.temperature,
            max_tokens=spec.max_tokens or self.settings.openrouter_max_tokens,
            top_p=spec.top_p,
            json_mode=spec.json_mode,
        )

    # ------------------------------------------------------------------
    # Research path (Maven)
    # ------------------------------------------------------------------

    async def _run_research(self, spec: AgentSpec, prompt: str, params: Mapping[str, Any]) -> AgentResult:
        provider = self.providers.get(spec.provider)
        if provider is None or not provider.api_key:
            logger.error("%s API key not configured — research unavailable", spec.provider.value)
            raise agent_error(AgentErrorCode.API_KEY_MISSING)
        if not provider.configured:
            logger.error("%s API key is blank — research unavailable", spec.provider.value)
            raise agent_error(AgentErrorCode.API_KEY_REQUIRED)

        request = self._build_request(spec, prompt, params)
        deadline = self.settings.research_timeout_seconds
        try:
            completion = await asyncio.wait_for(provider.complete(request), timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.error("Research request exceeded %.0fs deadline", deadline)
            raise agent_error(AgentErrorCode.TIMEOUT) from e
        except ProviderError as e:
            code = classify_research_failure(e, key_configured=provider.configured)
            logger.error("Research provider error → %s: %s", code.value, e)
            raise agent_error(code) from e

        try:
            normalized = normalize_content(completion.content, prompt, strict=self.settings.strict_response_validation)
        except ResponseValidationError as e:
            logger.error("Research response rejected: %s", e)
            raise agent_error(AgentErrorCode.INVALID_RESPONSE) from e

        data = normalized.data if normalized.html else coerce_research_result(normalized.data, completion.citations)
        return AgentResult(
            agent=spec.name,
            data=data,
            source=completion.provider.value,
            model=completion.model,
            usage=completion.usage,
            fallback=normalized.html,
            degraded=normalized.degraded,
        )

    # ------------------------------------------------------------------
    # Aggregator path (Matrix, Max)
    # ------------------------------------------------------------------

    async def _run_with_fallback(self, spec: AgentSpec, prompt: str, params: Mapping[str, Any]) -> AgentResult:
        provider = self.providers.get(spec.provider)
        request = self._build_request(spec, prompt, params)
        strict = self.settings.strict_response_validation

        try:
            if provider is None:
                raise ProviderKeyMissingError(f"{spec.provider.value} provider not configured")
            completion = await provider.complete(request)
        except ProviderError as e:
            logger.warning("Agent %s upstream failed (%s) — serving canned fallback", spec.name.value, e)
            return self._fallback_result(spec, prompt)

        if is_html(completion.content) and not strict:
            logger.warning("Agent %s received HTML from upstream — serving canned fallback", spec.name.value)
            return self._fallback_result(spec, prompt)

        try:
            normalized = normalize_content(completion.content, prompt, strict=strict)
            data, degraded = normalized.data, normalized.degraded
            if spec.name is AgentName.MATRIX:
                data, repaired = repair_matrix_response(data, strict=strict)
                degraded = degraded or repaired
        except ResponseValidationError as e:
            logger.error("Agent %s response rejected: %s", spec.name.value, e)
            raise agent_error(AgentErrorCode.INVALID_RESPONSE) from e

        return AgentResult(
            agent=spec.name,
            data=data,
            source=completion.provider.value,
            model=completion.model,
            usage=completion.usage,
            degraded=degraded,
        )

    @staticmethod
    def _fallback_result(spec: AgentSpec, prompt: str) -> AgentResult:
        return AgentResult(
            agent=spec.name,
            data=spec.fallback(prompt),
            source="fallback",
            fallback=True,
            degraded=True,
        )

    def describe_providers(self) -> list[dict[str, Any]]:
        """Configured flag and default model for each provider (never the key)."""
        return [
            {
                "name": name.value,
                "configured": provider.configured,
                "default_model": provider.default_model,
            }
            for name, provider in self.providers.items()
        ]


_dispatcher: AgentDispatcher | None = None


def get_dispatcher() -> AgentDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = AgentDispatcher()
    return _dispatcher
