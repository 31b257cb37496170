"""Grading routes - single/dual grading, multi-page grading, grading lookup."""

from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from ..config import logger, MAX_UPLOAD_PAGES
from ..deps import (
    CurrentUser,
    get_aggregator,
    get_current_user,
    get_file_store,
    get_gradings,
    get_optional_user,
    get_orchestrator,
    get_question_papers,
)
from ..errors import NotFoundError, ValidationFailure
from ..services.grading import GradingOrchestrator
from ..services.gradings import GradingRepository
from ..services.multi_page import MultiPageAggregator
from ..services.question_papers import QuestionPaperRepository
from ..services.storage import FileStore

router = APIRouter(tags=["grading"])


@router.post("/grade")
async def grade(
    mode: str = Form("single"),
    question_paper_id: Optional[str] = Form(None, alias="questionPaperId"),
    exam: Optional[UploadFile] = File(None),
    question_paper: Optional[UploadFile] = File(None, alias="questionPaper"),
    answer_sheet: Optional[UploadFile] = File(None, alias="answerSheet"),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    orchestrator: GradingOrchestrator = Depends(get_orchestrator),
    question_papers: QuestionPaperRepository = Depends(get_question_papers),
    file_store: FileStore = Depends(get_file_store),
):
    """Grade one image (single mode) or an answer sheet against a question paper (dual mode)"""
    user_id = user.user_id if user else None
    logger.info(f"=== GRADING REQUEST === user={user_id or 'guest'} mode={mode}")

    if mode not in ("single", "dual"):
        raise ValidationFailure("mode must be 'single' or 'dual'")

    if mode == "single":
        if exam is None:
            raise ValidationFailure("No file uploaded")
        return await _grade_single(exam, user_id, orchestrator, file_store)

    if answer_sheet is None:
        raise ValidationFailure("Answer sheet is required for dual mode")
    if not question_paper_id and question_paper is None:
        raise ValidationFailure("Question paper or questionPaperId is required for dual mode")

    if question_paper_id:
        paper = await question_papers.get(question_paper_id)
        if not paper:
            raise NotFoundError("Question paper not found")
        answer_path = await _keep_answer_sheet(answer_sheet, file_store)
        result = await _discard_on_failure(
            file_store, answer_path, orchestrator.grade_against_paper(answer_path, paper, user_id=user_id)
        )
        return {**result.model_dump(mode="json"), "question_paper_cached": True}

    paper_tmp = await file_store.save_upload(question_paper)
    try:
        answer_path = await _keep_answer_sheet(answer_sheet, file_store)
        paper, cached, result = await _discard_on_failure(
            file_store,
            answer_path,
            orchestrator.grade_with_new_paper(paper_tmp, answer_path, user_id=user_id, file_store=file_store),
            unwrap=lambda r: r[2],
        )
    finally:
        file_store.discard(paper_tmp)
    return {**result.model_dump(mode="json"), "question_paper_cached": cached}


async def _keep_answer_sheet(upload: UploadFile, file_store: FileStore) -> Path:
    tmp_path = await file_store.save_upload(upload)
    return await file_store.keep_answer_sheet(tmp_path)


async def _discard_on_failure(file_store: FileStore, path: Path, grading, unwrap=lambda r: r):
    """Await a grading call; drop the stored image unless a grading now references it."""
    try:
        outcome = await grading
    except Exception:
        file_store.discard(path)
        raise
    if unwrap(outcome).degraded:
        file_store.discard(path)
    return outcome


async def _grade_single(exam: UploadFile, user_id: Optional[str],
                        orchestrator: GradingOrchestrator, file_store: FileStore):
    exam_path = await _keep_answer_sheet(exam, file_store)
    result = await _discard_on_failure(file_store, exam_path, orchestrator.grade_single(exam_path, user_id=user_id))
    return result.model_dump(mode="json")


@router.post("/grade/multi-page")
async def grade_multi_page(
    request: Request,
    pages: Optional[List[UploadFile]] = File(None, alias="answerSheetPages"),
    question_paper_id: Optional[str] = Form(None, alias="questionPaperId"),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    aggregator: MultiPageAggregator = Depends(get_aggregator),
    question_papers: QuestionPaperRepository = Depends(get_question_papers),
    file_store: FileStore = Depends(get_file_store),
):
    """Grade several answer-sheet pages as one submission (all pages or nothing)"""
    if not pages:
        raise ValidationFailure("No files uploaded")
    if len(pages) > MAX_UPLOAD_PAGES:
        raise ValidationFailure(f"Maximum {MAX_UPLOAD_PAGES} pages allowed")
    if not question_paper_id:
        raise ValidationFailure("Question paper ID is required for multi-page grading")

    paper = await question_papers.get(question_paper_id)
    if not paper:
        raise NotFoundError("Question paper not found")

    user_id = user.user_id if user else None
    logger.info(f"=== MULTI-PAGE GRADING REQUEST === user={user_id or 'guest'} "
                f"pages={len(pages)} paper={question_paper_id}")

    page_paths: List[Path] = []
    try:
        for upload in pages:
            page_paths.append(await _keep_answer_sheet(upload, file_store))
        result = await aggregator.grade_pages(
            paper, page_paths, user_id=user_id, is_cancelled=request.is_disconnected
        )
    except Exception:
        file_store.discard(*page_paths)
        raise

    return result.model_dump(mode="json")


@router.get("/gradings")
async def list_my_gradings(
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    gradings: GradingRepository = Depends(get_gradings),
):
    items = await gradings.list_for_user(user.user_id, limit)
    return {"gradings": [g.model_dump(mode="json", exclude={"pages", "answers", "annotations"}) for g in items]}


@router.get("/gradings/{grading_id}")
async def get_grading(grading_id: str, gradings: GradingRepository = Depends(get_gradings)):
    grading = await gradings.get(grading_id)
    if not grading:
        raise NotFoundError("Grading not found")
    return grading.model_dump(mode="json")
