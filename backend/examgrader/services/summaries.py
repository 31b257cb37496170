"""Chapter summaries - cache first, analyzer on a miss."""

from ..config import logger
from ..errors import AnalyzerReplyError
from ..models.content_cache import CacheKey, ChapterSummary, ChapterSummaryRequest
from ..utils.reply_parsing import extract_json_text
from .content_cache import ContentCacheStore
from .prompts import build_chapter_summary_prompt

SUMMARY_MODULE = "ncert"
SUMMARY_CONTENT_TYPE = "summary"


class ChapterSummaryService:

    def __init__(self, cache: ContentCacheStore, analyzer):
        self.cache = cache
        self.analyzer = analyzer

    async def get_summary(self, request: ChapterSummaryRequest) -> ChapterSummary:
        key = CacheKey(
            module=SUMMARY_MODULE,
            content_type=SUMMARY_CONTENT_TYPE,
            identifier=request.chapter_id,
            language=request.language,
        )

        cached = await self.cache.get(key)
        if cached:
            return ChapterSummary(
                chapter_id=request.chapter_id,
                chapter_name=cached.title or request.chapter_name,
                language=request.language,
                summary=cached.content,
                source="cache",
            )

        logger.info(f"Generating summary for chapter {request.chapter_id} ({request.language})")
        text = await self.analyzer.analyze([], build_chapter_summary_prompt(request))
        summary = extract_json_text(text or "")
        if not summary:
            raise AnalyzerReplyError("Analyzer returned an empty summary", raw_text=text or "")

        await self.cache.put(
            key,
            summary,
            source="llm",
            title=request.chapter_name,
            subject=request.subject,
            class_level=request.class_level,
        )
        return ChapterSummary(
            chapter_id=request.chapter_id,
            chapter_name=request.chapter_name,
            language=request.language,
            summary=summary,
            source="generated",
        )
