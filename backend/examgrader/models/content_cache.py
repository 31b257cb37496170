"""Content cache Pydantic models"""

import re

from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, Optional, Literal
from datetime import datetime, timezone

CacheSource = Literal["manual", "llm", "import"]


class CacheKey(BaseModel):
    """Semantic key of a cache row; unique as a 4-tuple"""
    module: str  # e.g. "ncert"
    content_type: str  # e.g. "summary"
    identifier: str  # e.g. chapter id
    language: str = "en"

    def as_filter(self) -> dict:
        return self.model_dump()


class ContentCacheEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")
    entry_id: str
    module: str
    content_type: str
    identifier: str
    language: str = "en"
    content: str
    title: Optional[str] = None
    source: CacheSource = "llm"
    subject: Optional[str] = None
    class_level: Optional[str] = None
    created_by: Optional[str] = None
    access_count: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_accessed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> CacheKey:
        return CacheKey(
            module=self.module,
            content_type=self.content_type,
            identifier=self.identifier,
            language=self.language,
        )


class ContentCacheWrite(BaseModel):
    """Body of an admin cache write"""
    content: str
    source: CacheSource = "manual"
    title: Optional[str] = None
    subject: Optional[str] = None
    class_level: Optional[str] = None


class CacheStats(BaseModel):
    total_cached: int = 0
    manual_entries: int = 0
    llm_generated: int = 0
    imported: int = 0
    audio_entries: int = 0
    total_accesses: int = 0


# ============== AUDIO ==============

AudioModule = Literal["ncert", "revision", "doubts", "worksheets"]
AudioProvider = Literal["google", "elevenlabs", "browser"]

AUDIO_CONTENT_TYPE = "audio"


def _slug(value: str) -> str:
    return re.sub(r"_+", "_", re.sub(r"[^a-z0-9]", "_", value.lower())).strip("_")


class AudioKey(BaseModel):
    """
    Identifies one narration file. Provider and voice are not part of it,
    so audio made by one provider is reused by the others.
    """
    module: AudioModule
    identifier: str
    subject: Optional[str] = None
    class_level: Optional[str] = None
    language: str = "en"
    version: str = "v1"

    def _parts(self) -> list:
        parts = []
        if self.subject:
            parts.append(self.subject.lower())
        if self.class_level:
            parts.append(self.class_level)
        parts.append(_slug(self.identifier))
        return parts

    def cache_key(self) -> CacheKey:
        return CacheKey(
            module=self.module,
            content_type=AUDIO_CONTENT_TYPE,
            identifier="_".join(self._parts() + [self.version]),
            language=self.language,
        )

    @property
    def file_name(self) -> str:
        return "_".join([self.module] + self._parts() + [self.language, self.version]) + ".mp3"


class AudioRequest(AudioKey):
    text: str
    provider: AudioProvider = "google"
    voice_id: Optional[str] = None
    model_id: Optional[str] = None


class AudioMetadata(BaseModel):
    """Stored as the JSON content of an audio cache entry"""
    file_path: str
    file_name: str
    provider: AudioProvider = "google"
    voice_id: Optional[str] = None
    model_id: Optional[str] = None
    character_count: int = 0
    file_size: int = 0
    duration_seconds: float = 0
    estimated_cost: float = 0
    version: str = "v1"
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AudioResult(BaseModel):
    audio_url: str
    source: Literal["cache", "google", "elevenlabs", "browser"]
    cache_key: str
    metadata: AudioMetadata


class ProviderUsage(BaseModel):
    files: int = 0
    size: int = 0
    cost: float = 0


class AudioCacheStats(BaseModel):
    total_files: int = 0
    total_size: int = 0
    total_characters: int = 0
    total_duration_seconds: float = 0
    total_accesses: int = 0
    hit_count: int = 0
    miss_count: int = 0
    hit_ratio: float = 0  # percent, this process only
    providers: Dict[str, ProviderUsage] = Field(default_factory=dict)
    total_estimated_cost: float = 0
    cost_saved: float = 0


class ChapterSummaryRequest(BaseModel):
    chapter_id: str
    chapter_name: str
    subject: str
    class_level: str
    chapter_number: Optional[int] = None
    book_name: Optional[str] = None
    language: str = "en"


class ChapterSummary(BaseModel):
    chapter_id: str
    chapter_name: str
    language: str
    summary: str
    source: Literal["cache", "generated"]
