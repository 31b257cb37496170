"""Pydantic models for ExamGrader"""

from .question_paper import (
    Position,
    Question,
    QuestionPaper,
    ExtractedQuestion,
    ExtractedPaper,
)
from .grading import (
    ImageDimensions,
    Annotation,
    AnalyzedAnswer,
    AnalyzerGradingReply,
    Answer,
    Page,
    GradingResult,
    Grading,
    MultiPageResult,
)
from .content_cache import (
    CacheKey,
    ContentCacheEntry,
    ContentCacheWrite,
    CacheStats,
    AudioKey,
    AudioRequest,
    AudioMetadata,
    AudioResult,
    AudioCacheStats,
    ChapterSummaryRequest,
    ChapterSummary,
)
