"""
Database connections - MongoDB async (Motor) client and index setup.

The client is created lazily and handed to services explicitly so tests can
swap in another database object.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .config import MONGO_URL, DB_NAME, logger

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    """Return the process-wide Motor client, creating it on first use."""
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(MONGO_URL)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[DB_NAME]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


async def ensure_indexes(db):
    """Create the unique keys the dedup and cache layers rely on."""
    await db.question_papers.create_index("paper_id", unique=True)
    await db.question_papers.create_index("image_hash", unique=True)
    await db.question_papers.create_index([("created_at", DESCENDING)])

    await db.content_cache.create_index("entry_id", unique=True)
    await db.content_cache.create_index(
        [
            ("module", ASCENDING),
            ("content_type", ASCENDING),
            ("identifier", ASCENDING),
            ("language", ASCENDING),
        ],
        unique=True,
    )

    await db.gradings.create_index("grading_id", unique=True)
    await db.gradings.create_index("question_paper_id")
    await db.gradings.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    logger.info("MongoDB indexes ensured")
