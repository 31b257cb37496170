"""
Grading service - sends answer-sheet images to the analyzer and reconciles
the reply with the stored question paper before persisting it.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..config import logger, DEFAULT_IMAGE_DIMENSIONS
from ..errors import AnalyzerReplyError
from ..models.grading import (
    AnalyzedAnswer,
    AnalyzerGradingReply,
    Answer,
    Grading,
    GradingResult,
    ImageDimensions,
)
from ..models.question_paper import Question, QuestionPaper
from ..utils.images import read_dimensions
from ..utils.reply_parsing import parse_reply
from ..utils.scoring import (
    format_fraction,
    normalize_question_number,
    parse_fraction,
    score_points,
)
from .annotation import generate_default_annotations
from .extraction import QuestionPaperExtractor, resolve_question_paper
from .gradings import GradingRepository
from .llm import ImageContent
from .prompts import build_paper_grading_prompt, build_single_grading_prompt
from .question_papers import QuestionPaperRepository
from .storage import FileStore

ImagePath = Union[str, Path]

UNANSWERED_REMARK = "Not attempted"


def _answer_from_reply(item: AnalyzedAnswer, index: int, question_number: str,
                       matched: bool, question_text: Optional[str] = None) -> Answer:
    return Answer(
        id=item.id or f"q{index}",
        question_number=question_number,
        question=item.question or question_text,
        student_answer=item.student_answer,
        correct=item.correct if item.student_answer is not None else False,
        score=item.score,
        remarks=item.remarks,
        topic=item.topic,
        concept=item.concept,
        matched=matched,
        match_confidence=item.match_confidence,
        position=item.position,
    )


def _unanswered(question: Question) -> Answer:
    zero = format_fraction(0, question.max_score) if question.max_score is not None else "0"
    return Answer(
        id=f"unanswered-{question.question_number}",
        question_number=question.question_number,
        question=question.question_text,
        student_answer=None,
        correct=False,
        score=zero,
        remarks=UNANSWERED_REMARK,
        topic=question.topic,
        concept=question.concept,
        matched=True,
        match_confidence=1.0,
    )


def _count(answers: List[Answer]) -> Tuple[int, int, int]:
    """(total, answered, correct) over matched answers only."""
    matched = [a for a in answers if a.matched]
    answered = sum(1 for a in matched if a.student_answer is not None)
    correct = sum(1 for a in matched if a.correct)
    return len(matched), answered, correct


def paper_total_score(answers: List[Answer], paper: QuestionPaper,
                      reported: Optional[str]) -> Optional[str]:
    """
    Points-based total against the paper's max scores.

    Recomputed from the per-answer scores when every question has a max score
    and every matched score parses; otherwise the analyzer's own total is kept,
    capped at the paper maximum.
    """
    max_by_number: Dict[str, float] = {q.question_number: q.max_score for q in paper.questions}
    matched = [a for a in answers if a.matched]
    if not paper.max_scores_known or not matched:
        return reported

    points = 0.0
    for answer in matched:
        earned = score_points(answer.score)
        if earned is None:
            points = None
            break
        points += min(earned, max_by_number[answer.question_number])

    possible = sum(max_by_number[a.question_number] for a in matched)
    if points is not None:
        return format_fraction(points, possible)

    fraction = parse_fraction(reported)
    if fraction and fraction[0] > possible:
        logger.warning(f"Analyzer total {reported} exceeds paper maximum {possible}, capping")
        return format_fraction(possible, possible)
    return reported


class GradingOrchestrator:

    def __init__(
        self,
        analyzer,
        gradings: GradingRepository,
        question_papers: QuestionPaperRepository,
        extractor: Optional[QuestionPaperExtractor] = None,
    ):
        self.analyzer = analyzer
        self.gradings = gradings
        self.question_papers = question_papers
        self.extractor = extractor or QuestionPaperExtractor(analyzer)

    async def _ask(self, image: bytes, prompt: str) -> AnalyzerGradingReply:
        text = await self.analyzer.analyze([ImageContent(image)], prompt)
        return parse_reply(text, AnalyzerGradingReply)

    @staticmethod
    async def _read(image_path: ImagePath) -> bytes:
        return await asyncio.to_thread(Path(image_path).read_bytes)

    @staticmethod
    def _finish_layout(result: GradingResult, reply: AnalyzerGradingReply, image: bytes):
        if reply.annotations:
            result.annotations = reply.annotations
        else:
            logger.info("No annotations provided by analyzer, generating defaults")
            result.annotations = generate_default_annotations(result.answers)

        dimensions = reply.image_dimensions
        if dimensions is None:
            dimensions = ImageDimensions(**(read_dimensions(image) or DEFAULT_IMAGE_DIMENSIONS))
        result.image_dimensions = dimensions

    @staticmethod
    def _degraded(mode: str, error: AnalyzerReplyError,
                  paper: Optional[QuestionPaper] = None) -> GradingResult:
        logger.warning(f"Degraded {mode} grading result: {error.detail}")
        return GradingResult(
            mode=mode,
            question_paper_id=paper.paper_id if paper else None,
            subject=paper.subject if paper else "Unknown",
            language=paper.language if paper else "Unknown",
            grade_level=paper.grade_level if paper else "Unknown",
            total_score=None,
            feedback=None,
            error=error.error,
            raw_response=error.raw_text,
        )

    async def _persist(self, result: GradingResult, image_path: ImagePath,
                       user_id: Optional[str], paper: Optional[QuestionPaper]) -> str:
        grading = Grading(
            grading_id=f"grd_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            question_paper_id=paper.paper_id if paper else None,
            answer_sheet_url=str(image_path),
            total_pages=1,
            subject=result.subject,
            language=result.language,
            grade_level=result.grade_level,
            total_score=result.total_score,
            feedback=result.feedback,
            matching_mode=result.mode,
            total_questions=result.total_questions,
            answered_questions=result.answered_questions,
            annotations=result.annotations,
            image_dimensions=result.image_dimensions,
            answers=result.answers,
        )
        grading_id = await self.gradings.insert(grading)
        if paper is not None:
            await self.question_papers.increment_usage(paper.paper_id)
        return grading_id

    # ============== SINGLE MODE ==============

    async def grade_single(self, image_path: ImagePath, user_id: Optional[str] = None) -> GradingResult:
        """The image holds both questions and answers; the analyzer does everything."""
        image = await self._read(image_path)
        try:
            reply = await self._ask(image, build_single_grading_prompt())
        except AnalyzerReplyError as e:
            return self._degraded("single", e)

        answers: List[Answer] = []
        seen = set()
        for index, item in enumerate(reply.detailed_analysis, start=1):
            number = item.question_number or item.id or str(index)
            if number in seen:
                logger.warning(f"Duplicate entry for question {number} in analyzer reply, keeping first")
                continue
            seen.add(number)
            answers.append(_answer_from_reply(item, index, number, matched=True))

        total, answered, correct = _count(answers)
        result = GradingResult(
            mode="single",
            subject=reply.subject,
            language=reply.language,
            grade_level=reply.grade_level,
            total_score=reply.total_score,
            feedback=reply.feedback,
            answers=answers,
            total_questions=total,
            answered_questions=answered,
            correct_answers=correct,
        )
        self._finish_layout(result, reply, image)
        result.grading_id = await self._persist(result, image_path, user_id, None)
        return result

    # ============== DUAL MODE ==============

    async def grade_page(self, image_path: ImagePath, paper: QuestionPaper,
                         fill_unanswered: bool = True, prompt: Optional[str] = None) -> GradingResult:
        """
        Grade one answer-sheet image against a paper without persisting.

        Raises AnalyzerError / AnalyzerReplyError. With `fill_unanswered`,
        paper questions missing from the reply are added as unanswered; the
        multi-page flow turns that off because they may be on another page,
        and passes its own page-scoped `prompt`.
        """
        image = await self._read(image_path)
        reply = await self._ask(image, prompt or build_paper_grading_prompt(paper))
        return self._reconcile(reply, paper, image, fill_unanswered)

    def _reconcile(self, reply: AnalyzerGradingReply, paper: QuestionPaper,
                   image: bytes, fill_unanswered: bool) -> GradingResult:
        by_number = {normalize_question_number(q.question_number): q for q in paper.questions}
        order = {q.question_number: i for i, q in enumerate(paper.questions)}

        matched: Dict[str, Answer] = {}
        unmatched: List[Answer] = []
        unmatched_seen = set()

        for index, item in enumerate(reply.detailed_analysis, start=1):
            label = item.question_number or item.id or str(index)
            question = by_number.get(normalize_question_number(label))
            if question is None:
                key = normalize_question_number(label)
                if key in unmatched_seen:
                    continue
                unmatched_seen.add(key)
                unmatched.append(_answer_from_reply(item, index, label, matched=False))
                continue
            if question.question_number in matched:
                logger.warning(f"Duplicate entry for question {question.question_number}, keeping first")
                continue
            matched[question.question_number] = _answer_from_reply(
                item, index, question.question_number, matched=True, question_text=question.question_text
            )

        missing = [q for q in paper.questions if q.question_number not in matched]
        if fill_unanswered:
            for question in missing:
                matched[question.question_number] = _unanswered(question)

        answers = sorted(matched.values(), key=lambda a: order[a.question_number]) + unmatched
        total, answered, correct = _count(answers)

        if unmatched:
            logger.info(f"{len(unmatched)} answer(s) matched no question: {[a.question_number for a in unmatched]}")

        result = GradingResult(
            mode="dual",
            question_paper_id=paper.paper_id,
            subject=reply.subject if reply.subject != "Unknown" else paper.subject,
            language=reply.language if reply.language != "Unknown" else paper.language,
            grade_level=reply.grade_level if reply.grade_level != "Unknown" else paper.grade_level,
            total_score=paper_total_score(answers, paper, reply.total_score),
            feedback=reply.feedback,
            answers=answers,
            total_questions=total,
            answered_questions=answered,
            correct_answers=correct,
            unanswered_questions=[a.question_number for a in answers if a.matched and a.student_answer is None],
            unmatched_answers=[a.question_number for a in unmatched],
        )
        self._finish_layout(result, reply, image)
        return result

    async def grade_against_paper(self, image_path: ImagePath, paper: QuestionPaper,
                                  user_id: Optional[str] = None) -> GradingResult:
        try:
            result = await self.grade_page(image_path, paper)
        except AnalyzerReplyError as e:
            return self._degraded("dual", e, paper)

        result.grading_id = await self._persist(result, image_path, user_id, paper)
        logger.info(f"Graded against {paper.paper_id}: {result.total_score} "
                    f"({result.answered_questions}/{result.total_questions} answered)")
        return result

    async def grade_with_new_paper(
        self,
        question_paper_path: ImagePath,
        answer_sheet_path: ImagePath,
        user_id: Optional[str] = None,
        title: Optional[str] = None,
        file_store: Optional[FileStore] = None,
    ) -> Tuple[QuestionPaper, bool, GradingResult]:
        """Resolve (or extract) the paper from its image, then grade against it."""
        paper, cached = await resolve_question_paper(
            self.question_papers, self.extractor, question_paper_path, title=title, file_store=file_store
        )
        result = await self.grade_against_paper(answer_sheet_path, paper, user_id=user_id)
        return paper, cached, result
