import asyncio
import time
from collections.abc import AsyncGenerator

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings, settings

# Override settings for tests
settings.jwt_secret_key = "test-secret-key-that-is-at-least-32-bytes-long"
settings.app_env = "development"
settings.openrouter_api_key = ""
settings.gemini_api_key = ""
settings.openai_api_key = ""
settings.free_trial_enabled = True
settings.strict_response_validation = False
settings.provider_startup_check = False
settings.sentry_dsn = ""

from app.core.rate_limit import limiter  # noqa: E402
from app.gateway.dispatcher import AgentDispatcher, get_dispatcher  # noqa: E402
from app.gateway.generation import GenerationService, get_generation_service  # noqa: E402
from app.gateway.providers import BaseProvider, ProviderError, ProviderKeyMissingError  # noqa: E402
from app.gateway.types import CompletionRequest, ProviderCompletion, ProviderName  # noqa: E402
from app.main import app  # noqa: E402

limiter.enabled = False


class FakeProvider(BaseProvider):
    """In-memory provider: records every request, returns canned content or raises."""

    def __init__(
        self,
        name: ProviderName,
        content: str = "{}",
        error: ProviderError | None = None,
        configured: bool = True,
        delay: float = 0.0,
        model: str = "fake-model",
        citations: list[dict[str, str]] | None = None,
        images: list[dict] | None = None,
    ):
        super().__init__(api_key="test-key" if configured else "", base_url="https://fake.invalid")
        self.name = name
        self.display_name = name.value.capitalize()
        self.default_model = model
        self.content = content
        self.error = error
        self.delay = delay
        self.model = model
        self.citations = citations or []
        self.images = images or []
        self.calls: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> ProviderCompletion:
        self.calls.append(request)
        if not self.configured:
            raise ProviderKeyMissingError(f"{self.display_name} API key is not available")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderCompletion(
            content=self.content,
            provider=self.name,
            model=request.model or self.model,
            usage={"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
            citations=list(self.citations),
        )

    async def generate_images(self, prompt: str, **kwargs) -> list[dict]:
        self.calls.append(CompletionRequest(prompt=prompt))
        if self.error is not None:
            raise self.error
        return list(self.images)


def make_providers(**overrides: FakeProvider) -> dict[ProviderName, FakeProvider]:
    """One fake per provider; pass openai=/openrouter=/gemini= to customize."""
    providers = {name: FakeProvider(name) for name in ProviderName}
    for key, provider in overrides.items():
        providers[ProviderName(key)] = provider
    return providers


def make_settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


@pytest.fixture
def providers() -> dict[ProviderName, FakeProvider]:
    return make_providers()


@pytest.fixture
def dispatcher(providers) -> AgentDispatcher:
    return AgentDispatcher(providers=providers, settings=make_settings())


@pytest.fixture
def generation_service(providers) -> GenerationService:
    return GenerationService(providers=providers, settings=make_settings())


@pytest.fixture
async def client(dispatcher, generation_service) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_generation_service] = lambda: generation_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer token signed with the test secret."""
    token = jwt.encode(
        {"sub": "user-123", "exp": int(time.time()) + 3600},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def trial_headers() -> dict[str, str]:
    return {"x-free-trial": "true"}


@pytest.fixture
def fake_provider():
    """The FakeProvider class, for tests that build their own providers."""
    return FakeProvider


@pytest.fixture
def make_dispatcher(providers):
    """Build a dispatcher over the shared fakes with custom settings."""

    def _make(**settings_kwargs) -> AgentDispatcher:
        return AgentDispatcher(providers=providers, settings=make_settings(**settings_kwargs))

    return _make
