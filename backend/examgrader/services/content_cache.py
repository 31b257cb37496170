"""
Content cache - read-through store for generated pedagogical content
(chapter summaries and the like) keyed by module/content_type/identifier/language.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..config import logger
from ..models.content_cache import AUDIO_CONTENT_TYPE, CacheKey, CacheStats, ContentCacheEntry

_NO_ID = {"_id": 0}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContentCacheStore:
    """Upsert-only cache collection; the 4-tuple key is backed by a unique index."""

    def __init__(self, db):
        self.collection = db.content_cache

    async def get(self, key: CacheKey) -> Optional[ContentCacheEntry]:
        """Exact-match lookup. A hit bumps access_count and last_accessed_at."""
        doc = await self.collection.find_one_and_update(
            key.as_filter(),
            {"$inc": {"access_count": 1}, "$set": {"last_accessed_at": _now()}},
            projection=_NO_ID,
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            logger.info(f"Cache miss: {key.module}/{key.content_type}/{key.identifier} ({key.language})")
            return None
        logger.info(f"Cache hit: {key.module}/{key.content_type}/{key.identifier} ({key.language}), "
                    f"accesses={doc['access_count']}")
        return ContentCacheEntry(**doc)

    async def put(
        self,
        key: CacheKey,
        content: str,
        source: str = "llm",
        title: Optional[str] = None,
        subject: Optional[str] = None,
        class_level: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ContentCacheEntry:
        """Insert or overwrite the entry for `key`. Last write wins."""
        now = _now()
        to_set = {
            "content": content,
            "title": title,
            "source": source,
            "created_by": created_by,
            "updated_at": now,
        }
        on_insert = {
            "entry_id": f"cc_{uuid.uuid4().hex[:12]}",
            "access_count": 0,
            "created_at": now,
            "last_accessed_at": now,
        }
        # Subject/class only overwrite when supplied; otherwise they are insert-time metadata
        for field, value in (("subject", subject), ("class_level", class_level)):
            if value is not None:
                to_set[field] = value
            else:
                on_insert[field] = None

        update = {"$set": to_set, "$setOnInsert": on_insert}
        try:
            doc = await self._upsert(key, update)
        except DuplicateKeyError:
            # A concurrent put inserted the row between our match and insert; it exists now
            logger.info(f"Concurrent cache insert for {key.module}/{key.identifier}, retrying as update")
            doc = await self._upsert(key, update)

        logger.info(f"Cached {key.module}/{key.content_type}/{key.identifier} ({key.language}) source={source}")
        return ContentCacheEntry(**doc)

    async def _upsert(self, key: CacheKey, update: dict) -> dict:
        return await self.collection.find_one_and_update(
            key.as_filter(),
            update,
            projection=_NO_ID,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, key: CacheKey) -> bool:
        result = await self.collection.delete_one(key.as_filter())
        if result.deleted_count:
            logger.info(f"Deleted cache entry {key.module}/{key.content_type}/{key.identifier} ({key.language})")
        return result.deleted_count > 0

    async def delete_by_id(self, entry_id: str) -> bool:
        result = await self.collection.delete_one({"entry_id": entry_id})
        return result.deleted_count > 0

    async def list_by_module(
        self,
        module: str,
        subject: Optional[str] = None,
        class_level: Optional[str] = None,
        source: Optional[str] = None,
        content_type: Optional[str] = None,
        limit: int = 500,
    ) -> List[ContentCacheEntry]:
        """Entries of one module, most recently updated first."""
        query = {"module": module}
        if content_type:
            query["content_type"] = content_type
        if subject:
            query["subject"] = subject
        if class_level:
            query["class_level"] = class_level
        if source:
            query["source"] = source

        docs = await self.collection.find(query, _NO_ID).sort("updated_at", -1).to_list(limit)
        return [ContentCacheEntry(**d) for d in docs]

    async def get_stats(self, module: Optional[str] = None) -> CacheStats:
        base = {"module": module} if module else {}

        total, manual, llm, imported, audio, accesses = await asyncio.gather(
            self.collection.count_documents(base),
            self.collection.count_documents({**base, "source": "manual"}),
            self.collection.count_documents({**base, "source": "llm"}),
            self.collection.count_documents({**base, "source": "import"}),
            self.collection.count_documents({**base, "content_type": AUDIO_CONTENT_TYPE}),
            self.collection.aggregate([
                {"$match": base},
                {"$group": {"_id": None, "total": {"$sum": "$access_count"}}},
            ]).to_list(1),
        )

        return CacheStats(
            total_cached=total,
            manual_entries=manual,
            llm_generated=llm,
            imported=imported,
            audio_entries=audio,
            total_accesses=accesses[0]["total"] if accesses else 0,
        )
