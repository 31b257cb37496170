"""
Question paper extraction - turns a question paper photo into structured
questions via the analyzer, reusing stored papers whenever the image bytes
have been seen before.
"""

import asyncio
from pathlib import Path
from typing import Optional, Tuple, Union

from ..config import logger
from ..models.question_paper import ExtractedPaper, QuestionPaper
from ..utils.hashing import hash_file
from ..utils.reply_parsing import parse_reply
from .llm import ImageContent
from .prompts import build_extraction_prompt
from .question_papers import QuestionPaperRepository
from .storage import FileStore


class QuestionPaperExtractor:

    def __init__(self, analyzer):
        self.analyzer = analyzer

    async def extract(self, image: bytes) -> ExtractedPaper:
        """Raises AnalyzerError / AnalyzerReplyError; nothing is stored here."""
        text = await self.analyzer.analyze([ImageContent(image)], build_extraction_prompt())
        extracted = parse_reply(text, ExtractedPaper)
        logger.info(f"Extracted {len(extracted.questions)} questions ({extracted.subject}, {extracted.language})")
        return extracted


async def resolve_question_paper(
    repository: QuestionPaperRepository,
    extractor: QuestionPaperExtractor,
    image_path: Union[str, Path],
    title: Optional[str] = None,
    file_store: Optional[FileStore] = None,
) -> Tuple[QuestionPaper, bool]:
    """
    Hash-first lookup. Returns (paper, cached).

    On a miss the image is extracted and stored, then promoted to permanent
    storage when a file store is given.
    """
    image_hash = await asyncio.to_thread(hash_file, image_path)
    existing = await repository.find_by_hash(image_hash)
    if existing:
        logger.info(f"Question paper cache hit {existing.paper_id} (hash {image_hash[:12]})")
        return existing, True

    logger.info(f"Question paper cache miss (hash {image_hash[:12]}), extracting")
    image = await asyncio.to_thread(Path(image_path).read_bytes)
    extracted = await extractor.extract(image)

    # the image is promoted only after the paper is stored
    image_url = None
    if file_store is not None:
        image_url = str(file_store.question_paper_path(image_path, image_hash))

    paper = await repository.store(image_path, extracted, title=title, image_url=image_url)
    if file_store is not None:
        await file_store.keep_question_paper(image_path, image_hash)
    return paper, False
