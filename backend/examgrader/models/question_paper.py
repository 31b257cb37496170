"""Question paper Pydantic models"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Any
from datetime import datetime, timezone


def _as_text(value: Any) -> Any:
    """Analyzer replies sometimes carry numbers where we expect labels ("2" vs 2)."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return value


class Position(BaseModel):
    """Location on the source image as percentages (0-100) from the top-left corner"""
    model_config = ConfigDict(extra="ignore")
    x: Optional[float] = None
    y: Optional[float] = None

    @field_validator("x", "y")
    @classmethod
    def clamp_percentage(cls, v):
        if v is None:
            return v
        return max(0.0, min(100.0, float(v)))


class Question(BaseModel):
    question_number: str  # not necessarily numeric, e.g. "2a"
    question_text: str
    max_score: Optional[float] = None
    topic: Optional[str] = None
    concept: Optional[str] = None
    position: Optional[Position] = None


class QuestionPaper(BaseModel):
    model_config = ConfigDict(extra="ignore")
    paper_id: str
    title: Optional[str] = None
    subject: str
    grade_level: str
    language: str
    image_url: str
    image_hash: str
    total_questions: int
    usage_count: int = 0
    questions: List[Question] = []
    grading_count: Optional[int] = None  # only filled in listings
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def max_scores_known(self) -> bool:
        return bool(self.questions) and all(q.max_score is not None for q in self.questions)


# ============== ANALYZER REPLY (EXTRACTION) ==============

class ExtractedQuestion(BaseModel):
    """One question as the analyzer reports it (camelCase keys accepted)"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    question_number: str = Field(alias="questionNumber")
    question_text: str = Field("", alias="questionText")
    max_score: Optional[float] = Field(None, alias="maxScore")
    topic: Optional[str] = None
    concept: Optional[str] = None
    position: Optional[Position] = None

    @field_validator("question_number", mode="before")
    @classmethod
    def coerce_number(cls, v):
        return _as_text(v)

    @field_validator("max_score", mode="before")
    @classmethod
    def coerce_max_score(cls, v):
        if isinstance(v, str):
            try:
                return float(v.strip())
            except ValueError:
                return None
        return v


class ExtractedPaper(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    subject: str = "Unknown"
    language: str = "Unknown"
    grade_level: str = Field("Unknown", alias="gradeLevel")
    questions: List[ExtractedQuestion]

    @field_validator("questions")
    @classmethod
    def require_questions(cls, v):
        if not v:
            raise ValueError("no questions extracted")
        return v
