import asyncio

import pytest

from examgrader.errors import AnalyzerError
from examgrader.models.grading import Answer
from examgrader.models.question_paper import ExtractedPaper, Question, QuestionPaper
from examgrader.services.annotation import generate_default_annotations
from examgrader.services.grading import GradingOrchestrator, paper_total_score
from examgrader.services.gradings import GradingRepository
from examgrader.services.question_papers import QuestionPaperRepository

from conftest import FakeAnalyzer, answer_entry, extraction_reply, grading_reply, make_png


def _setup(db, write_image, analyzer, max_scores=(5, 5, 5)):
    papers = QuestionPaperRepository(db)
    gradings = GradingRepository(db)
    paper = asyncio.run(papers.store(
        write_image(make_png((50, 60, 70))),
        ExtractedPaper.model_validate(extraction_reply(max_scores)),
    ))
    return GradingOrchestrator(analyzer, gradings, papers), paper, gradings, papers


def test_partial_sheet_scores_against_paper(db, write_image):
    """Q1 and Q3 right, Q2 left blank: 10/15 with Q2 surfaced as not attempted."""
    analyzer = FakeAnalyzer(grading_reply([
        answer_entry("1", True, "5/5"),
        answer_entry("3", True, "5/5"),
    ], total_score="10/10"))
    orchestrator, paper, gradings, papers = _setup(db, write_image, analyzer)
    sheet = write_image(make_png((200, 200, 200)))

    result = asyncio.run(orchestrator.grade_against_paper(sheet, paper, user_id="user-1"))

    assert result.total_score == "10/15"
    assert result.answered_questions == 2
    assert result.total_questions == 3
    assert result.correct_answers == 2
    assert result.unanswered_questions == ["2"]
    q2 = next(a for a in result.answers if a.question_number == "2")
    assert q2.student_answer is None
    assert q2.score == "0/5"
    assert q2.remarks == "Not attempted"
    assert [a.question_number for a in result.answers] == ["1", "2", "3"]

    stored = asyncio.run(gradings.get(result.grading_id))
    assert stored.user_id == "user-1"
    assert stored.question_paper_id == paper.paper_id
    assert stored.total_score == "10/15"
    assert stored.matching_mode == "dual"
    assert asyncio.run(papers.get(paper.paper_id)).usage_count == 1
    assert "Question 2 [5 marks]: Question 2" in analyzer.calls[0]["prompt"]


def test_answers_matching_no_question_are_excluded_from_totals(db, write_image):
    analyzer = FakeAnalyzer(grading_reply([
        answer_entry("Q1", True, "5"),
        answer_entry("Question 2", False, "2"),
        answer_entry("3", True, "4"),
        answer_entry("7", True, "5"),
    ]))
    orchestrator, paper, _, _ = _setup(db, write_image, analyzer)

    result = asyncio.run(orchestrator.grade_against_paper(write_image(make_png((1, 1, 1))), paper))

    assert result.total_questions == 3
    assert result.correct_answers == 2
    assert result.unmatched_answers == ["7"]
    assert result.total_score == "11/15"
    unmatched = result.answers[-1]
    assert unmatched.matched is False
    assert unmatched.question_number == "7"
    assert [a.question_number for a in result.answers[:3]] == ["1", "2", "3"]


def test_duplicate_question_entries_keep_the_first(db, write_image):
    analyzer = FakeAnalyzer(grading_reply([
        answer_entry("1", True, "5"),
        answer_entry("1", False, "0"),
        answer_entry("2", True, "5"),
        answer_entry("3", True, "5"),
    ]))
    orchestrator, paper, _, _ = _setup(db, write_image, analyzer)

    result = asyncio.run(orchestrator.grade_against_paper(write_image(make_png((2, 2, 2))), paper))

    assert len(result.answers) == 3
    assert result.answers[0].correct is True
    assert result.total_score == "15/15"


def test_analyzer_total_kept_when_max_scores_unknown(db, write_image):
    analyzer = FakeAnalyzer(grading_reply([
        answer_entry("1", True, "full"),
        answer_entry("2", False, "0"),
    ], total_score="1/2"))
    papers = QuestionPaperRepository(db)
    paper = asyncio.run(papers.store(
        write_image(make_png((90, 90, 90))),
        ExtractedPaper.model_validate({"questions": [
            {"questionNumber": "1", "questionText": "a"},
            {"questionNumber": "2", "questionText": "b"},
        ]}),
    ))
    orchestrator = GradingOrchestrator(analyzer, GradingRepository(db), papers)

    result = asyncio.run(orchestrator.grade_against_paper(write_image(make_png((3, 3, 3))), paper))
    assert result.total_score == "1/2"


def test_analyzer_total_is_capped_at_paper_maximum():
    paper_answers = [
        Answer(question_number="1", score="five", matched=True),
        Answer(question_number="2", score="5", matched=True),
    ]

    paper = QuestionPaper(
        paper_id="qp_test", subject="Mathematics", grade_level="6", language="English",
        image_url="paper.png", image_hash="abc", total_questions=2,
        questions=[
            Question(question_number="1", question_text="a", max_score=5),
            Question(question_number="2", question_text="b", max_score=5),
        ],
    )

    assert paper_total_score(paper_answers, paper, "14/10") == "10/10"
    assert paper_total_score(paper_answers, paper, "8/10") == "8/10"


def test_missing_annotations_are_generated(db, write_image):
    analyzer = FakeAnalyzer(grading_reply([
        answer_entry("1", True, "5/5"),
        answer_entry("2", False, "1/5", remarks="Carried the wrong digit in the tens column of the sum"),
        answer_entry("3", True, "5/5"),
    ]))
    orchestrator, paper, _, _ = _setup(db, write_image, analyzer)

    result = asyncio.run(orchestrator.grade_against_paper(write_image(make_png((4, 4, 4))), paper))

    marks = [a for a in result.annotations if a.type in ("checkmark", "cross")]
    assert [m.type for m in marks] == ["checkmark", "cross", "checkmark"]
    assert [m.position.y for m in marks] == [25.0, 50.0, 75.0]
    comment = next(a for a in result.annotations if a.type == "comment")
    assert comment.question_id == "q2"
    assert comment.text.endswith("...")
    assert len(comment.text) == 53
    assert comment.position.x == 40.0


def test_default_annotations_respect_reported_positions():
    answers = [Answer(id="q1", question_number="1", correct=True, score="2/2",
                      position={"x": 20, "y": 33})]
    annotations = generate_default_annotations(answers)
    assert [a.type for a in annotations] == ["checkmark", "score"]
    assert annotations[0].position.x == 20.0
    assert annotations[1].position.x == 15.0
    assert annotations[1].text == "2/2"
    assert generate_default_annotations([]) == []


def test_image_dimensions_fall_back_to_pillow(db, write_image):
    reply = grading_reply([answer_entry("1", True, "5")])
    del reply["imageDimensions"]
    orchestrator, paper, _, _ = _setup(db, write_image, FakeAnalyzer(reply))

    sheet = write_image(make_png((5, 5, 5), size=(120, 90)))
    result = asyncio.run(orchestrator.grade_against_paper(sheet, paper))

    assert (result.image_dimensions.width, result.image_dimensions.height) == (120, 90)


def test_unparseable_reply_degrades_without_persisting(db, write_image):
    analyzer = FakeAnalyzer("The handwriting is too faint to grade.")
    orchestrator, paper, gradings, papers = _setup(db, write_image, analyzer)

    result = asyncio.run(orchestrator.grade_against_paper(write_image(make_png((6, 6, 6))), paper))

    assert result.degraded
    assert result.raw_response == "The handwriting is too faint to grade."
    assert result.total_score is None
    assert result.feedback is None
    assert result.grading_id is None
    assert result.subject == "Mathematics"
    assert asyncio.run(db.gradings.count_documents({})) == 0
    assert asyncio.run(papers.get(paper.paper_id)).usage_count == 0


def test_analyzer_outage_propagates(db, write_image):
    analyzer = FakeAnalyzer(AnalyzerError("Analyzer call failed: 401 invalid key"))
    orchestrator, paper, _, _ = _setup(db, write_image, analyzer)

    with pytest.raises(AnalyzerError):
        asyncio.run(orchestrator.grade_against_paper(write_image(make_png((7, 7, 7))), paper))
    assert asyncio.run(db.gradings.count_documents({})) == 0


def test_single_mode_grades_and_persists(db, write_image):
    analyzer = FakeAnalyzer(grading_reply([
        answer_entry("1", True, "3/3"),
        answer_entry("2", False, "0/2", student_answer=""),
        answer_entry("2", True, "2/2"),
    ], total_score="3/5", subject="Science"))
    orchestrator = GradingOrchestrator(analyzer, GradingRepository(db), QuestionPaperRepository(db))

    result = asyncio.run(orchestrator.grade_single(write_image(make_png((8, 8, 8))), user_id="u-9"))

    assert result.mode == "single"
    assert result.subject == "Science"
    assert result.total_score == "3/5"
    assert result.total_questions == 2
    assert result.answered_questions == 1
    assert result.answers[1].student_answer is None
    assert result.answers[1].correct is False
    assert result.grading_id.startswith("grd_")
    stored = asyncio.run(GradingRepository(db).get(result.grading_id))
    assert stored.question_paper_id is None
    assert stored.matching_mode == "single"


def test_single_mode_degrades_on_schema_mismatch(db, write_image):
    orchestrator = GradingOrchestrator(
        FakeAnalyzer('{"subject": "Science"}'), GradingRepository(db), QuestionPaperRepository(db)
    )
    result = asyncio.run(orchestrator.grade_single(write_image(make_png((9, 9, 9)))))
    assert result.degraded
    assert result.raw_response == '{"subject": "Science"}'
    assert asyncio.run(db.gradings.count_documents({})) == 0


def test_new_paper_flow_extracts_once_and_reuses(db, write_image, file_store):
    analyzer = FakeAnalyzer(
        extraction_reply((2, 2)),
        grading_reply([answer_entry("1", True, "2/2"), answer_entry("2", True, "1/2")]),
        grading_reply([answer_entry("1", False, "0/2")]),
    )
    papers = QuestionPaperRepository(db)
    orchestrator = GradingOrchestrator(analyzer, GradingRepository(db), papers)
    paper_bytes = make_png((11, 12, 13))

    async def scenario():
        first = await orchestrator.grade_with_new_paper(
            write_image(paper_bytes), write_image(make_png((1, 0, 0))), user_id="a", file_store=file_store
        )
        second = await orchestrator.grade_with_new_paper(
            write_image(paper_bytes), write_image(make_png((0, 1, 0))), user_id="b", file_store=file_store
        )
        return first, second

    (paper_a, cached_a, result_a), (paper_b, cached_b, result_b) = asyncio.run(scenario())

    assert (cached_a, cached_b) == (False, True)
    assert paper_a.paper_id == paper_b.paper_id
    assert result_a.total_score == "3/4"
    assert result_b.total_score == "0/4"
    assert len(analyzer.calls) == 3
    assert asyncio.run(papers.get(paper_a.paper_id)).usage_count == 2
