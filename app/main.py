import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.router import api_router
from app.core.config import settings, validate_settings_for_production
from app.core.logging import setup_logging
from app.core.metrics import PrometheusMiddleware, metrics_response
from app.core.middleware import RequestLoggingMiddleware
from app.core.rate_limit import limiter
from app.core.sentry import init_sentry
from app.gateway.dispatcher import get_dispatcher
from app.gateway.generation import GenerationError
from app.gateway.types import AgentServiceError, ProviderName

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


def _key_status(key: str) -> str:
    """Describe a key without revealing it."""
    return f"present ({key[:4]}...)" if key else "missing"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    init_sentry()
    logger.info("Starting Marketing Agent Gateway v%s (env=%s)", settings.app_version, settings.app_env)
    logger.info("OpenRouter API key: %s", _key_status(settings.openrouter_api_key))
    logger.info("Gemini API key: %s", _key_status(settings.gemini_api_key))
    logger.info("OpenAI API key: %s", _key_status(settings.openai_api_key))

    # Never blocks startup; agents fall back to canned content
    if settings.provider_startup_check and settings.openrouter_api_key:
        openrouter = get_dispatcher().providers[ProviderName.OPENROUTER]
        if await openrouter.check_connection():
            logger.info("OpenRouter connection verified")
        else:
            logger.warning("OpenRouter connection failed, agents will use fallbacks")

    yield

    # Shutdown
    logger.info("Marketing Agent Gateway shut down")


app = FastAPI(
    title="Marketing Agent Gateway",
    description="Multi-provider AI completion gateway for marketing agents",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(AgentServiceError)
async def _agent_service_error_handler(request: Request, exc: AgentServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(GenerationError)
async def _generation_error_handler(request: Request, exc: GenerationError):
    return JSONResponse(status_code=500, content=exc.to_dict())


# Log unhandled exceptions with traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Metrics + request logging middleware
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": settings.app_version}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
