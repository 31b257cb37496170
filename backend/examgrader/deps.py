"""
FastAPI dependencies - caller identity, admin check, and service wiring.

Authentication happens upstream; the gateway forwards the verified identity in
X-User-Id / X-User-Email / X-User-Role headers.
"""

from collections import Counter
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel

from .config import ADMIN_EMAILS, AUDIO_CACHE_DIR, UPLOAD_DIR, get_llm_api_key
from .database import get_database
from .services.audio_cache import AudioCacheService
from .services.content_cache import ContentCacheStore
from .services.extraction import QuestionPaperExtractor
from .services.grading import GradingOrchestrator
from .services.gradings import GradingRepository
from .services.llm import GeminiAnalyzer
from .services.multi_page import MultiPageAggregator
from .services.question_papers import QuestionPaperRepository
from .services.storage import FileStore
from .services.summaries import ChapterSummaryService


class CurrentUser(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: str = "student"


# ============== IDENTITY ==============

async def get_optional_user(request: Request) -> Optional[CurrentUser]:
    user_id = request.headers.get("X-User-Id")
    if not user_id:
        return None
    return CurrentUser(
        user_id=user_id,
        email=request.headers.get("X-User-Email"),
        role=request.headers.get("X-User-Role", "student"),
    )


async def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def is_admin(user: CurrentUser) -> bool:
    return user.role == "admin" or (user.email or "").lower() in ADMIN_EMAILS


async def get_admin_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


# ============== SERVICES ==============

def get_db():
    return get_database()


@lru_cache(maxsize=1)
def get_analyzer():
    return GeminiAnalyzer(api_key=get_llm_api_key())


def get_file_store() -> FileStore:
    return FileStore(UPLOAD_DIR)


def get_content_cache(db=Depends(get_db)) -> ContentCacheStore:
    return ContentCacheStore(db)


def get_question_papers(db=Depends(get_db)) -> QuestionPaperRepository:
    return QuestionPaperRepository(db)


def get_gradings(db=Depends(get_db)) -> GradingRepository:
    return GradingRepository(db)


def get_extractor(analyzer=Depends(get_analyzer)) -> QuestionPaperExtractor:
    return QuestionPaperExtractor(analyzer)


def get_orchestrator(
    analyzer=Depends(get_analyzer),
    gradings: GradingRepository = Depends(get_gradings),
    question_papers: QuestionPaperRepository = Depends(get_question_papers),
    extractor: QuestionPaperExtractor = Depends(get_extractor),
) -> GradingOrchestrator:
    return GradingOrchestrator(analyzer, gradings, question_papers, extractor)


def get_aggregator(
    orchestrator: GradingOrchestrator = Depends(get_orchestrator),
    gradings: GradingRepository = Depends(get_gradings),
    question_papers: QuestionPaperRepository = Depends(get_question_papers),
) -> MultiPageAggregator:
    return MultiPageAggregator(orchestrator, gradings, question_papers)


def get_summaries(
    cache: ContentCacheStore = Depends(get_content_cache),
    analyzer=Depends(get_analyzer),
) -> ChapterSummaryService:
    return ChapterSummaryService(cache, analyzer)


@lru_cache(maxsize=1)
def get_audio_counters() -> Counter:
    return Counter()


def get_audio_cache(
    cache: ContentCacheStore = Depends(get_content_cache),
    counters: Counter = Depends(get_audio_counters),
) -> AudioCacheService:
    # no synthesizer here: the API only reads and maintains what was generated
    return AudioCacheService(cache, root=AUDIO_CACHE_DIR, counters=counters)
