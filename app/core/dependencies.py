from dataclasses import dataclass

import jwt
from fastapi import Header

from app.core.config import settings
from app.core.exceptions import UnauthorizedError


@dataclass(frozen=True)
class Caller:
    """Who is calling the AI endpoints, resolved once per request.

    ``free_trial`` is passed explicitly down to the dispatcher instead of
    being read from ambient state.
    """

    user_id: str | None = None
    free_trial: bool = False


async def get_caller(
    authorization: str | None = Header(None, description="Bearer <token>"),
    x_free_trial: str | None = Header(None, alias="x-free-trial"),
) -> Caller:
    if settings.free_trial_enabled and (x_free_trial or "").strip().lower() == "true":
        return Caller(free_trial=True)

    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Not authenticated")

    token = authorization[7:]
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    return Caller(user_id=str(user_id))
