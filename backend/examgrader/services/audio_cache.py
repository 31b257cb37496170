"""
Audio cache - narration files for study content, generated once per key and
served from disk afterwards.

Files live under `<root>/<module>/<file_name>`; their metadata is an entry
in the content cache with content_type "audio", so hits and accesses are
tracked the same way as any other cached content. The speech synthesizer is
injected; anything with `async synthesize(text, language, voice_id) -> bytes`
works.
"""

import asyncio
from collections import Counter
from pathlib import Path
from typing import Optional, Union, get_args

from pydantic import ValidationError

from ..config import logger, AUDIO_CACHE_DIR, AUDIO_PRICE_PER_1000_CHARS, AUDIO_WORDS_PER_MINUTE
from ..errors import AnalyzerError, ValidationFailure
from ..models.content_cache import (
    AUDIO_CONTENT_TYPE,
    AudioCacheStats,
    AudioKey,
    AudioMetadata,
    AudioModule,
    AudioRequest,
    AudioResult,
    ProviderUsage,
)
from .content_cache import ContentCacheStore

AUDIO_MODULES = get_args(AudioModule)


def estimate_cost(character_count: int) -> float:
    return round(character_count / 1000 * AUDIO_PRICE_PER_1000_CHARS, 6)


def estimate_duration(text: str) -> float:
    """Seconds of speech at a steady reading pace."""
    return round(len(text.split()) / AUDIO_WORDS_PER_MINUTE * 60, 1)


def _file_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return None


class AudioCacheService:

    def __init__(
        self,
        cache: ContentCacheStore,
        synthesizer=None,
        root: Union[str, Path] = AUDIO_CACHE_DIR,
        counters: Optional[Counter] = None,
    ):
        self.cache = cache
        self.synthesizer = synthesizer
        self.root = Path(root)
        # hits/misses since process start when the caller shares one Counter
        self.counters = counters if counters is not None else Counter()

    def path_for(self, key: AudioKey) -> Path:
        return self.root / key.module / key.file_name

    @staticmethod
    def url_for(key: AudioKey) -> str:
        return f"/audio-cache/{key.module}/{key.file_name}"

    async def get_cached(self, key: AudioKey) -> Optional[AudioResult]:
        """
        A hit needs both a non-empty file and its cache entry. A missing or
        empty file is a miss even if the entry is still there.
        """
        size = await asyncio.to_thread(_file_size, self.path_for(key))
        if size is None:
            return None
        if size == 0:
            logger.warning(f"Corrupted audio file (0 bytes): {key.file_name}")
            return None

        entry = await self.cache.get(key.cache_key())
        if entry is None:
            logger.info(f"Audio file {key.file_name} has no cache entry, treating as a miss")
            return None
        try:
            metadata = AudioMetadata.model_validate_json(entry.content)
        except ValidationError as e:
            logger.warning(f"Unreadable audio metadata for {key.file_name}: {e}")
            return None

        self.counters["hits"] += 1
        logger.info(f"🔊 Audio cache hit {key.file_name} [{metadata.provider}] "
                    f"(saved ${metadata.estimated_cost:.6f})")
        return AudioResult(
            audio_url=self.url_for(key),
            source="cache",
            cache_key=key.file_name,
            metadata=metadata,
        )

    async def save(self, request: AudioRequest, audio: bytes) -> AudioMetadata:
        """Write the file, then record its metadata. Last write wins."""
        path = self.path_for(request)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, audio)

        metadata = AudioMetadata(
            file_path=str(path),
            file_name=request.file_name,
            provider=request.provider,
            voice_id=request.voice_id,
            model_id=request.model_id,
            character_count=len(request.text),
            file_size=len(audio),
            duration_seconds=estimate_duration(request.text),
            estimated_cost=estimate_cost(len(request.text)),
            version=request.version,
        )
        await self.cache.put(
            request.cache_key(),
            metadata.model_dump_json(),
            source="llm",
            title=request.identifier,
            subject=request.subject,
            class_level=request.class_level,
        )
        logger.info(f"Saved audio {request.file_name} [{request.provider}] ({len(audio)} bytes)")
        return metadata

    async def get_or_generate(self, request: AudioRequest) -> AudioResult:
        if not request.text.strip():
            raise ValidationFailure("No text to narrate")

        cached = await self.get_cached(request)
        if cached:
            return cached

        if self.synthesizer is None:
            raise AnalyzerError("No speech synthesizer configured")

        self.counters["misses"] += 1
        logger.info(f"🔊 Generating {request.file_name} with {request.provider} ({len(request.text)} chars)")
        audio = await self.synthesizer.synthesize(request.text, request.language, request.voice_id)
        if not audio:
            raise AnalyzerError(f"Speech synthesizer returned no audio for {request.file_name}")

        metadata = await self.save(request, audio)
        return AudioResult(
            audio_url=self.url_for(request),
            source=request.provider,
            cache_key=request.file_name,
            metadata=metadata,
        )

    async def invalidate(self, key: AudioKey) -> bool:
        """Drop both the entry and the file. True if either existed."""
        removed = await self.cache.delete(key.cache_key())
        path = self.path_for(key)
        existed = await asyncio.to_thread(path.exists)
        if existed:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        if removed or existed:
            logger.info(f"Invalidated audio {key.file_name}")
        return removed or existed

    async def get_stats(self, module: Optional[str] = None) -> AudioCacheStats:
        hits, misses = self.counters["hits"], self.counters["misses"]
        stats = AudioCacheStats(hit_count=hits, miss_count=misses)
        if hits + misses:
            stats.hit_ratio = round(hits / (hits + misses) * 100, 2)

        for name in ([module] if module else AUDIO_MODULES):
            for entry in await self.cache.list_by_module(name, content_type=AUDIO_CONTENT_TYPE):
                try:
                    metadata = AudioMetadata.model_validate_json(entry.content)
                except ValidationError:
                    logger.warning(f"Skipping unreadable audio metadata in {entry.entry_id}")
                    continue
                usage = stats.providers.setdefault(metadata.provider, ProviderUsage())
                usage.files += 1
                usage.size += metadata.file_size
                usage.cost += metadata.estimated_cost

                stats.total_files += 1
                stats.total_size += metadata.file_size
                stats.total_characters += metadata.character_count
                stats.total_duration_seconds += metadata.duration_seconds
                stats.total_accesses += entry.access_count
                stats.total_estimated_cost += metadata.estimated_cost
                stats.cost_saved += entry.access_count * metadata.estimated_cost

        stats.total_estimated_cost = round(stats.total_estimated_cost, 6)
        stats.cost_saved = round(stats.cost_saved, 6)
        return stats
