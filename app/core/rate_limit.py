"""Rate limiting for the AI endpoints using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.config import settings


def caller_key(request: Request) -> str:
    """Bucket free-trial traffic separately from authenticated traffic per address."""
    address = get_remote_address(request)
    if request.headers.get("x-free-trial", "").lower() == "true":
        return f"trial:{address}"
    return address


limiter = Limiter(key_func=caller_key, enabled=settings.rate_limit_enabled)
