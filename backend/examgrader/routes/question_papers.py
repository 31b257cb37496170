"""Question paper routes - extract (hash-deduplicated), list, fetch."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ..config import logger
from ..deps import get_extractor, get_file_store, get_question_papers
from ..errors import NotFoundError, ValidationFailure
from ..services.extraction import QuestionPaperExtractor, resolve_question_paper
from ..services.question_papers import QuestionPaperRepository
from ..services.storage import FileStore

router = APIRouter(tags=["question-papers"])


@router.post("/question-papers/extract")
async def extract_question_paper(
    question_paper: Optional[UploadFile] = File(None, alias="questionPaper"),
    title: Optional[str] = Form(None),
    repository: QuestionPaperRepository = Depends(get_question_papers),
    extractor: QuestionPaperExtractor = Depends(get_extractor),
    file_store: FileStore = Depends(get_file_store),
):
    """Extract a question paper, or return the stored one for identical image bytes"""
    if question_paper is None:
        raise ValidationFailure("No file uploaded")

    tmp_path = await file_store.save_upload(question_paper)
    try:
        paper, cached = await resolve_question_paper(
            repository, extractor, tmp_path, title=title, file_store=file_store
        )
    finally:
        # Promoted on a miss; still the temp file on a hit or an error
        file_store.discard(tmp_path)

    logger.info(f"Question paper {paper.paper_id} served (cached={cached})")
    return {
        **paper.model_dump(mode="json", exclude={"grading_count"}),
        "cached": cached,
        "message": "Question paper already exists in database" if cached else "Question paper extracted and stored",
    }


@router.get("/question-papers")
async def list_question_papers(
    limit: int = Query(20, ge=1, le=100),
    repository: QuestionPaperRepository = Depends(get_question_papers),
):
    papers = await repository.list_recent(limit)
    return {"question_papers": [p.model_dump(mode="json") for p in papers]}


@router.get("/question-papers/{paper_id}")
async def get_question_paper(
    paper_id: str,
    repository: QuestionPaperRepository = Depends(get_question_papers),
):
    paper = await repository.get(paper_id)
    if not paper:
        raise NotFoundError("Question paper not found")
    return paper.model_dump(mode="json", exclude={"grading_count"})
