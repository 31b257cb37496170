"""API route registration."""

from fastapi import APIRouter
from .question_papers import router as question_papers_router
from .grading import router as grading_router
from .content_cache import router as content_cache_router
from .summaries import router as summaries_router
from .audio_cache import router as audio_cache_router


def register_all_routes(api_router: APIRouter):
    """Include all route modules on the main API router."""
    api_router.include_router(question_papers_router)
    api_router.include_router(grading_router)
    api_router.include_router(content_cache_router)
    api_router.include_router(summaries_router)
    api_router.include_router(audio_cache_router)
