"""Audio cache routes - lookup, stats, and admin invalidation."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..config import logger
from ..deps import CurrentUser, get_admin_user, get_audio_cache
from ..errors import NotFoundError
from ..models.content_cache import AudioKey, AudioModule
from ..services.audio_cache import AudioCacheService

router = APIRouter(tags=["audio-cache"])


def _key(module, identifier, subject, class_level, language, version) -> AudioKey:
    return AudioKey(
        module=module,
        identifier=identifier,
        subject=subject,
        class_level=class_level,
        language=language,
        version=version,
    )


@router.get("/audio-cache/stats")
async def audio_cache_stats(module: Optional[AudioModule] = None,
                            audio: AudioCacheService = Depends(get_audio_cache)):
    stats = await audio.get_stats(module)
    return stats.model_dump()


@router.get("/audio-cache/{module}/{identifier}")
async def get_cached_audio(
    module: AudioModule,
    identifier: str,
    subject: Optional[str] = None,
    class_level: Optional[str] = None,
    language: str = "en",
    version: str = "v1",
    audio: AudioCacheService = Depends(get_audio_cache),
):
    result = await audio.get_cached(_key(module, identifier, subject, class_level, language, version))
    if not result:
        raise NotFoundError("Audio not cached")
    return result.model_dump(mode="json")


@router.delete("/audio-cache/{module}/{identifier}")
async def invalidate_audio(
    module: AudioModule,
    identifier: str,
    subject: Optional[str] = None,
    class_level: Optional[str] = None,
    language: str = "en",
    version: str = "v1",
    admin: CurrentUser = Depends(get_admin_user),
    audio: AudioCacheService = Depends(get_audio_cache),
):
    key = _key(module, identifier, subject, class_level, language, version)
    if not await audio.invalidate(key):
        raise NotFoundError("Audio not cached")
    logger.info(f"Admin {admin.user_id} invalidated audio {key.file_name}")
    return {"message": "Audio invalidated"}
