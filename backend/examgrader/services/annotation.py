"""
Annotation layout fallback.

When the analyzer omits overlay coordinates every answer still gets a
mark, a score badge and (for wrong answers) a remark bubble, laid out as
evenly spaced rows down the page.
"""

from typing import List

from ..models.grading import Annotation, Answer
from ..models.question_paper import Position

MARGIN_X = 10.0
SCORE_OFFSET_X = -5.0
COMMENT_OFFSET_X = 30.0
COMMENT_OFFSET_Y = 2.0
COMMENT_MAX_CHARS = 50


def _truncate(text: str, limit: int = COMMENT_MAX_CHARS) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def generate_default_annotations(answers: List[Answer]) -> List[Annotation]:
    annotations: List[Annotation] = []
    if not answers:
        return annotations

    spacing = 100 / (len(answers) + 1)

    for index, answer in enumerate(answers, start=1):
        question_id = answer.id or f"q{index}"
        pos = answer.position
        y = pos.y if pos and pos.y is not None else spacing * index
        x = pos.x if pos and pos.x is not None else MARGIN_X
        color = "green" if answer.correct else "red"

        annotations.append(Annotation(
            id=f"ann-{question_id}-mark",
            type="checkmark" if answer.correct else "cross",
            position=Position(x=x, y=y),
            color=color,
            question_id=question_id,
        ))
        annotations.append(Annotation(
            id=f"ann-{question_id}-score",
            type="score",
            position=Position(x=x + SCORE_OFFSET_X, y=y),
            text=answer.score,
            color=color,
            question_id=question_id,
        ))
        if not answer.correct and answer.remarks:
            annotations.append(Annotation(
                id=f"ann-{question_id}-comment",
                type="comment",
                position=Position(x=x + COMMENT_OFFSET_X, y=y + COMMENT_OFFSET_Y),
                text=_truncate(answer.remarks),
                color="red",
                question_id=question_id,
            ))

    return annotations
