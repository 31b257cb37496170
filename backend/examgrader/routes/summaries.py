"""Chapter summary routes."""

from fastapi import APIRouter, Depends

from ..deps import get_summaries
from ..models.content_cache import ChapterSummaryRequest
from ..services.summaries import ChapterSummaryService

router = APIRouter(tags=["summaries"])


@router.post("/summaries/chapter")
async def chapter_summary(
    request: ChapterSummaryRequest,
    summaries: ChapterSummaryService = Depends(get_summaries),
):
    """Cached chapter summary, generated on first request per chapter and language"""
    summary = await summaries.get_summary(request)
    return summary.model_dump()
