"""Content cache routes - lookup, stats, and admin maintenance."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..config import logger
from ..deps import CurrentUser, get_admin_user, get_content_cache
from ..errors import NotFoundError
from ..models.content_cache import CacheKey, ContentCacheWrite
from ..services.content_cache import ContentCacheStore

router = APIRouter(tags=["content-cache"])


@router.get("/content-cache")
async def list_cache_entries(
    module: str = Query(...),
    subject: Optional[str] = None,
    class_level: Optional[str] = None,
    source: Optional[str] = None,
    cache: ContentCacheStore = Depends(get_content_cache),
):
    entries = await cache.list_by_module(module, subject=subject, class_level=class_level, source=source)
    return {"entries": [e.model_dump(mode="json") for e in entries]}


@router.get("/content-cache/stats")
async def cache_stats(module: Optional[str] = None, cache: ContentCacheStore = Depends(get_content_cache)):
    stats = await cache.get_stats(module)
    return stats.model_dump()


@router.get("/content-cache/{module}/{content_type}/{identifier}")
async def get_cache_entry(
    module: str,
    content_type: str,
    identifier: str,
    language: str = "en",
    cache: ContentCacheStore = Depends(get_content_cache),
):
    key = CacheKey(module=module, content_type=content_type, identifier=identifier, language=language)
    entry = await cache.get(key)
    if not entry:
        raise NotFoundError("Cache entry not found")
    return entry.model_dump(mode="json")


@router.put("/content-cache/{module}/{content_type}/{identifier}")
async def put_cache_entry(
    module: str,
    content_type: str,
    identifier: str,
    body: ContentCacheWrite,
    language: str = "en",
    admin: CurrentUser = Depends(get_admin_user),
    cache: ContentCacheStore = Depends(get_content_cache),
):
    key = CacheKey(module=module, content_type=content_type, identifier=identifier, language=language)
    entry = await cache.put(
        key,
        body.content,
        source=body.source,
        title=body.title,
        subject=body.subject,
        class_level=body.class_level,
        created_by=admin.user_id,
    )
    logger.info(f"Admin {admin.user_id} wrote cache entry {entry.entry_id}")
    return entry.model_dump(mode="json")


@router.delete("/content-cache/{module}/{content_type}/{identifier}")
async def delete_cache_entry(
    module: str,
    content_type: str,
    identifier: str,
    language: str = "en",
    admin: CurrentUser = Depends(get_admin_user),
    cache: ContentCacheStore = Depends(get_content_cache),
):
    key = CacheKey(module=module, content_type=content_type, identifier=identifier, language=language)
    if not await cache.delete(key):
        raise NotFoundError("Cache entry not found")
    logger.info(f"Admin {admin.user_id} deleted cache entry {module}/{content_type}/{identifier} ({language})")
    return {"message": "Cache entry deleted"}
