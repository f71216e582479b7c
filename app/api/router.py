from fastapi import APIRouter

from app.api.agents import router as agents_router
from app.api.generation import router as generation_router

api_router = APIRouter(prefix="/api")
api_router.include_router(agents_router)
api_router.include_router(generation_router)
