"""
Multi-page grading - one exam photographed over several pages, graded page by
page against the same question paper and stored as a single grading.
"""

import uuid
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..config import logger
from ..errors import GradingCancelled, PageGradingError, ValidationFailure
from ..models.grading import Answer, Grading, GradingResult, MultiPageResult, Page
from ..models.question_paper import QuestionPaper
from .gradings import GradingRepository
from .grading import GradingOrchestrator
from .prompts import build_page_grading_prompt
from .question_papers import QuestionPaperRepository

ImagePath = Union[str, Path]

# (minimum percentage, template); first match wins
FEEDBACK_BANDS = [
    (90, "🎯 Outstanding! You scored {score}. Your grip on {subject} is really strong, keep it up! 🌟"),
    (75, "✨ Great work! You got {score} across all pages. A little more practice and it'll be perfect! 💪"),
    (60, "💪 Good effort! You scored {score}. A few concepts need more work, let's tackle them together! 📚"),
    (40, "📚 You got {score}. Let's strengthen the basics; regular practice will show results. You've got this! 🚀"),
    (0, "🎯 You scored {score}. Revise the concepts and keep practicing, I'm here to help you improve! 💡"),
]


def overall_feedback(correct: int, total: int, subject: str) -> str:
    """Canned, percentage-banded feedback; no extra analyzer call."""
    percentage = (correct / total * 100) if total else 0
    score = f"{correct}/{total}"
    template = next(t for threshold, t in FEEDBACK_BANDS if percentage >= threshold)
    return template.format(score=score, subject=subject or "this subject")


def _answer_owners(graded: List[Tuple[int, ImagePath, GradingResult]]) -> Dict[str, Tuple[int, str]]:
    """
    Map each paper question to the (page, answer id) that answers it.

    The first real answer in page order wins. Null entries and later repeats are
    not owners, so every question counts at most once across the submission.
    """
    owners: Dict[str, Tuple[int, str]] = {}
    for page_number, _, result in graded:
        for answer in result.answers:
            if not answer.matched or answer.student_answer is None:
                continue
            owner = owners.get(answer.question_number)
            if owner is None:
                owners[answer.question_number] = (page_number, answer.id)
            elif owner[0] != page_number:
                logger.warning(f"Question {answer.question_number} answered again on page {page_number}, "
                               f"keeping page {owner[0]}")
    return owners


class MultiPageAggregator:

    def __init__(
        self,
        orchestrator: GradingOrchestrator,
        gradings: GradingRepository,
        question_papers: QuestionPaperRepository,
    ):
        self.orchestrator = orchestrator
        self.gradings = gradings
        self.question_papers = question_papers

    async def grade_pages(
        self,
        paper: QuestionPaper,
        page_paths: Sequence[ImagePath],
        user_id: Optional[str] = None,
        is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> MultiPageResult:
        """
        Grade pages strictly in upload order, then store everything at once.

        The primary page (page 1) decides subject, language and grade level for
        the whole submission. Any page failure aborts the batch with nothing
        stored. `is_cancelled` is polled before each page.
        """
        if not page_paths:
            raise ValidationFailure("No files uploaded")

        logger.info(f"📚 Grading {len(page_paths)} pages against {paper.paper_id}...")
        graded: List[Tuple[int, ImagePath, GradingResult]] = []

        for page_number, path in enumerate(page_paths, start=1):
            if is_cancelled is not None and await is_cancelled():
                logger.warning(f"Client went away before page {page_number}, abandoning multi-page grading")
                raise GradingCancelled(f"Cancelled before page {page_number} of {len(page_paths)}")

            logger.info(f"📄 Processing page {page_number}/{len(page_paths)}...")
            prompt = build_page_grading_prompt(paper, page_number, len(page_paths))
            try:
                result = await self.orchestrator.grade_page(path, paper, fill_unanswered=False, prompt=prompt)
            except Exception as e:
                logger.error(f"❌ Error grading page {page_number}: {e}")
                raise PageGradingError(page_number, e) from e
            graded.append((page_number, path, result))

        primary = graded[0][2]
        for page_number, _, result in graded[1:]:
            for field in ("subject", "language", "grade_level"):
                if getattr(result, field) != getattr(primary, field):
                    logger.warning(f"Page {page_number} reports {field}={getattr(result, field)!r}, "
                                   f"keeping page 1 value {getattr(primary, field)!r}")

        owners = _answer_owners(graded)

        pages: List[Page] = []
        answers: List[Answer] = []
        for page_number, path, result in graded:
            kept, dropped = [], []
            for a in result.answers:
                owned = not a.matched or owners.get(a.question_number) == (page_number, a.id)
                (kept if owned else dropped).append(a)
            dropped_ids = {a.id for a in dropped} - {a.id for a in kept}
            page_answers = [a.model_copy(update={"page_number": page_number}) for a in kept]
            pages.append(Page(
                page_number=page_number,
                image_url=str(path),
                annotations=[n for n in result.annotations if n.question_id not in dropped_ids],
                image_dimensions=result.image_dimensions,
                answers=page_answers,
                correct=sum(1 for a in page_answers if a.matched and a.correct),
                total=sum(1 for a in page_answers if a.matched),
            ))
            answers.extend(page_answers)

        total_correct = sum(p.correct for p in pages)
        total_questions = sum(p.total for p in pages)
        answered = total_questions

        unanswered = [q.question_number for q in paper.questions if q.question_number not in owners]

        total_score = f"{total_correct}/{total_questions}"
        feedback = overall_feedback(total_correct, total_questions, primary.subject)

        grading = Grading(
            grading_id=f"grd_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            question_paper_id=paper.paper_id,
            answer_sheet_url=pages[0].image_url,
            total_pages=len(pages),
            subject=primary.subject,
            language=primary.language,
            grade_level=primary.grade_level,
            total_score=total_score,
            feedback=feedback,
            matching_mode="dual",
            total_questions=total_questions,
            answered_questions=answered,
            pages=pages,
            answers=answers,
        )
        await self.gradings.insert(grading)
        await self.question_papers.increment_usage(paper.paper_id)

        logger.info(f"✅ Multi-page grading complete: {total_score}")
        return MultiPageResult(
            grading_id=grading.grading_id,
            question_paper_id=paper.paper_id,
            pages=pages,
            answers=answers,
            total_score=total_score,
            overall_feedback=feedback,
            subject=primary.subject,
            language=primary.language,
            grade_level=primary.grade_level,
            total_questions=total_questions,
            answered_questions=answered,
            correct_answers=total_correct,
            unanswered_questions=unanswered,
        )
