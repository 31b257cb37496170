"""
Grading store. A grading, its pages and all answers live in one document, so
a single insert_one is all-or-nothing.
"""

from typing import List, Optional

from ..config import logger
from ..models.grading import Grading

_NO_ID = {"_id": 0}


class GradingRepository:

    def __init__(self, db):
        self.collection = db.gradings

    async def insert(self, grading: Grading) -> str:
        await self.collection.insert_one(grading.model_dump(mode="json"))
        logger.info(f"Stored grading {grading.grading_id} ({grading.matching_mode}, "
                    f"{grading.total_pages} page(s), score {grading.total_score})")
        return grading.grading_id

    async def get(self, grading_id: str) -> Optional[Grading]:
        doc = await self.collection.find_one({"grading_id": grading_id}, _NO_ID)
        if not doc:
            return None
        grading = Grading(**doc)
        grading.pages.sort(key=lambda p: p.page_number)
        return grading

    async def list_for_user(self, user_id: str, limit: int = 20) -> List[Grading]:
        docs = await self.collection.find({"user_id": user_id}, _NO_ID).sort("created_at", -1).to_list(limit)
        return [Grading(**d) for d in docs]
