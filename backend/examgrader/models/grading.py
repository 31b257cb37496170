"""Grading-related Pydantic models"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime, timezone

from .question_paper import Position, _as_text


class ImageDimensions(BaseModel):
    width: int
    height: int


class Annotation(BaseModel):
    """One overlay mark on an answer-sheet image"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    id: Optional[str] = None
    type: str  # checkmark, cross, score, comment
    position: Position
    color: str = "green"
    text: Optional[str] = None
    question_id: Optional[str] = Field(None, alias="questionId")
    clickable: bool = True


class AnalyzedAnswer(BaseModel):
    """One entry of the analyzer's detailedAnalysis list"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    id: Optional[str] = None
    question_number: Optional[str] = Field(None, alias="questionNumber")
    question: Optional[str] = None
    student_answer: Optional[str] = Field(None, alias="studentAnswer")
    correct: bool = False
    score: str = ""
    remarks: str = ""
    topic: Optional[str] = None
    concept: Optional[str] = None
    position: Optional[Position] = None
    matched: bool = True
    match_confidence: float = Field(1.0, alias="matchConfidence")

    @field_validator("question_number", "id", "score", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator("score", "remarks", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("correct", "matched", mode="before")
    @classmethod
    def none_to_default(cls, v, info):
        if v is None:
            return info.field_name == "matched"
        return v

    @field_validator("match_confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return 1.0
        return max(0.0, min(1.0, float(v)))

    @field_validator("student_answer", mode="before")
    @classmethod
    def blank_is_unanswered(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AnalyzerGradingReply(BaseModel):
    """Typed view of the analyzer's grading JSON"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    subject: str = "Unknown"
    language: str = "Unknown"
    grade_level: str = Field("Unknown", alias="gradeLevel")
    total_score: Optional[str] = Field(None, alias="totalScore")
    feedback: str = ""
    image_dimensions: Optional[ImageDimensions] = Field(None, alias="imageDimensions")
    annotations: List[Annotation] = []
    detailed_analysis: List[AnalyzedAnswer] = Field(alias="detailedAnalysis")

    @field_validator("total_score", mode="before")
    @classmethod
    def coerce_total(cls, v):
        return _as_text(v)

    @field_validator("subject", "language", "grade_level", "feedback", mode="before")
    @classmethod
    def none_to_default(cls, v, info):
        if v is None:
            return "" if info.field_name == "feedback" else "Unknown"
        return v

    @field_validator("annotations", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []


class Answer(BaseModel):
    """One graded question instance"""
    model_config = ConfigDict(extra="ignore")
    id: Optional[str] = None
    question_number: str
    question: Optional[str] = None
    student_answer: Optional[str] = None  # None = not attempted
    correct: bool = False
    score: str = ""
    remarks: str = ""
    topic: Optional[str] = None
    concept: Optional[str] = None
    matched: bool = True
    match_confidence: float = 1.0
    position: Optional[Position] = None
    page_number: Optional[int] = None


class Page(BaseModel):
    """One physical answer-sheet page within a multi-page grading"""
    page_number: int  # 1-indexed, upload order
    image_url: str
    annotations: List[Annotation] = []
    image_dimensions: Optional[ImageDimensions] = None
    answers: List[Answer] = []
    correct: int = 0
    total: int = 0


class GradingResult(BaseModel):
    """Outcome of grading one image (single mode or against a question paper)"""
    grading_id: Optional[str] = None
    mode: str = "single"  # single, dual
    question_paper_id: Optional[str] = None
    subject: str = "Unknown"
    language: str = "Unknown"
    grade_level: str = "Unknown"
    total_score: Optional[str] = None
    feedback: Optional[str] = None
    image_dimensions: Optional[ImageDimensions] = None
    annotations: List[Annotation] = []
    answers: List[Answer] = []
    total_questions: int = 0
    answered_questions: int = 0
    correct_answers: int = 0
    unanswered_questions: List[str] = []
    unmatched_answers: List[str] = []
    error: Optional[str] = None
    raw_response: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


class Grading(BaseModel):
    """Persisted grading run"""
    model_config = ConfigDict(extra="ignore")
    grading_id: str
    user_id: Optional[str] = None
    question_paper_id: Optional[str] = None
    answer_sheet_url: str
    total_pages: int = 1
    subject: str
    language: str
    grade_level: str
    total_score: Optional[str] = None
    feedback: Optional[str] = None
    matching_mode: str = "single"
    total_questions: int = 0
    answered_questions: int = 0
    annotations: List[Annotation] = []
    image_dimensions: Optional[ImageDimensions] = None
    pages: List[Page] = []
    answers: List[Answer] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MultiPageResult(BaseModel):
    grading_id: Optional[str] = None
    question_paper_id: str
    pages: List[Page] = []
    answers: List[Answer] = []
    total_score: str
    overall_feedback: str
    subject: str
    language: str
    grade_level: str
    total_questions: int
    answered_questions: int
    correct_answers: int
    unanswered_questions: List[str] = []
