"""
Question paper store - deduplicated by the SHA256 of the paper image, so the
same worksheet is only sent through extraction once.
"""

import asyncio
import uuid
from pathlib import Path
from typing import List, Optional, Union

from pymongo.errors import DuplicateKeyError

from ..config import logger
from ..models.question_paper import ExtractedPaper, Question, QuestionPaper
from ..utils.hashing import hash_file
from ..utils.scoring import natural_key

_NO_ID = {"_id": 0}


class QuestionPaperRepository:

    def __init__(self, db):
        self.collection = db.question_papers
        self.gradings = db.gradings

    async def find_by_hash(self, image_hash: str) -> Optional[QuestionPaper]:
        doc = await self.collection.find_one({"image_hash": image_hash}, _NO_ID)
        return QuestionPaper(**doc) if doc else None

    async def get(self, paper_id: str) -> Optional[QuestionPaper]:
        doc = await self.collection.find_one({"paper_id": paper_id}, _NO_ID)
        return QuestionPaper(**doc) if doc else None

    async def store(
        self,
        image_path: Union[str, Path],
        extracted: ExtractedPaper,
        title: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> QuestionPaper:
        """
        Store an extracted paper under the hash of `image_path`.

        Idempotent: if a paper with the same hash exists it is returned
        unchanged and `extracted` is discarded. Paper and questions are one
        document, so they are inserted together or not at all.
        """
        image_hash = await asyncio.to_thread(hash_file, image_path)

        existing = await self.find_by_hash(image_hash)
        if existing:
            logger.info(f"Question paper already exists, returning existing: {existing.paper_id}")
            return existing

        questions = [
            Question(
                question_number=q.question_number,
                question_text=q.question_text,
                max_score=q.max_score,
                topic=q.topic,
                concept=q.concept,
                position=q.position,
            )
            for q in extracted.questions
        ]
        questions.sort(key=lambda q: natural_key(q.question_number))

        paper = QuestionPaper(
            paper_id=f"qp_{uuid.uuid4().hex[:12]}",
            title=title,
            subject=extracted.subject,
            grade_level=extracted.grade_level,
            language=extracted.language,
            image_url=image_url or str(image_path),
            image_hash=image_hash,
            total_questions=len(questions),
            usage_count=0,
            questions=questions,
        )

        try:
            await self.collection.insert_one(paper.model_dump(mode="json", exclude={"grading_count"}))
        except DuplicateKeyError:
            # Lost an insert race for the same image; the winner's row is the answer
            winner = await self.find_by_hash(image_hash)
            if winner is None:
                raise
            logger.info(f"Concurrent insert for hash {image_hash[:12]}, using {winner.paper_id}")
            return winner

        logger.info(f"Stored new question paper: {paper.paper_id} ({paper.total_questions} questions)")
        return paper

    async def list_recent(self, limit: int = 20) -> List[QuestionPaper]:
        """Most recent papers first, each with the number of gradings that used it."""
        docs = await self.collection.find({}, _NO_ID).sort("created_at", -1).to_list(limit)
        if not docs:
            return []

        paper_ids = [d["paper_id"] for d in docs]
        counts = await self.gradings.aggregate([
            {"$match": {"question_paper_id": {"$in": paper_ids}}},
            {"$group": {"_id": "$question_paper_id", "count": {"$sum": 1}}},
        ]).to_list(len(paper_ids))
        count_by_id = {c["_id"]: c["count"] for c in counts}

        return [QuestionPaper(**d, grading_count=count_by_id.get(d["paper_id"], 0)) for d in docs]

    async def increment_usage(self, paper_id: str):
        """Best-effort counter bump after a grading used this paper."""
        try:
            await self.collection.update_one({"paper_id": paper_id}, {"$inc": {"usage_count": 1}})
        except Exception as e:
            logger.error(f"Failed to increment usage for question paper {paper_id}: {e}")
