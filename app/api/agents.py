"""Agent endpoint — POST /api/ai/agents/{agent}."""

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.dependencies import Caller, get_caller
from app.core.rate_limit import limiter
from app.gateway.dispatcher import AgentDispatcher, get_dispatcher
from app.schemas.ai import AgentRequest, AgentResponse

router = APIRouter(prefix="/ai", tags=["agents"])


@router.post("/agents/{agent}", response_model=AgentResponse)
@limiter.limit(settings.ai_rate_limit)
async def run_agent(
    request: Request,
    agent: str,
    body: AgentRequest,
    caller: Caller = Depends(get_caller),
    dispatcher: AgentDispatcher = Depends(get_dispatcher),
):
    result = await dispatcher.dispatch(agent, body.prompt, body.params, free_trial=caller.free_trial)
    return result.to_dict()
