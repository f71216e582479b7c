"""Generic generation passthrough — completions, images, provider status."""

from fastapi import APIRouter, Depends, Query, Request

from app.core.config import settings
from app.core.dependencies import Caller, get_caller
from app.core.rate_limit import limiter
from app.gateway.dispatcher import AgentDispatcher, get_dispatcher
from app.gateway.generation import GenerationService, get_generation_service
from app.schemas.ai import GenerateRequest, ImageRequest, ImageResult, ProviderInfo

router = APIRouter(prefix="/ai", tags=["generation"])


@router.post("/generate")
@limiter.limit(settings.ai_rate_limit)
async def generate(
    request: Request,
    body: GenerateRequest,
    caller: Caller = Depends(get_caller),
    service: GenerationService = Depends(get_generation_service),
):
    return await service.generate(
        body.prompt,
        system_prompt=body.system_prompt,
        model=body.model,
        temperature=body.temperature,
        response_format=body.response_format,
    )


@router.post("/images", response_model=list[ImageResult], response_model_exclude_none=True)
@limiter.limit(settings.ai_rate_limit)
async def generate_images(
    request: Request,
    body: ImageRequest,
    caller: Caller = Depends(get_caller),
    service: GenerationService = Depends(get_generation_service),
):
    return await service.generate_images(body.prompt, n=body.n, size=body.size, quality=body.quality)


@router.get("/providers", response_model=list[ProviderInfo])
async def list_providers(
    caller: Caller = Depends(get_caller),
    dispatcher: AgentDispatcher = Depends(get_dispatcher),
):
    return dispatcher.describe_providers()


@router.get("/verify-key")
@limiter.limit("5/minute")
async def verify_key(
    request: Request,
    provider: str = Query("openai", description="Provider to verify"),
    caller: Caller = Depends(get_caller),
    service: GenerationService = Depends(get_generation_service),
):
    return await service.verify_key(provider)
