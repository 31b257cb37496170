"""Instruction prompts sent to the analyzer."""

from ..models.question_paper import QuestionPaper
from ..models.content_cache import ChapterSummaryRequest

FEEDBACK_TONE = """FEEDBACK TONE:
- Talk to the student directly ("you", "your"), warm and encouraging
- Celebrate what went well before pointing at mistakes
- Be specific and actionable about what to fix
- Keep remarks to 1-2 sentences and the overall feedback under 100 words
- Avoid "the student", "demonstrates", "adequate", "satisfactory"
"""

ANNOTATION_RULES = """ANNOTATIONS (like a teacher marking a physical paper):
- "checkmark" (green) at the left margin of correct work
- "cross" (red) on mistakes, with a short "text" explaining what went wrong
- "score" badges ("3/5") just left of the mark, green for full marks, red otherwise
- "comment" bubbles for key feedback, yellow when neutral, red for errors
- position x, y are percentages (0-100) from the top-left corner of the image
- questionId must equal the id of the matching detailedAnalysis entry ("q1", "q2", ...)
"""


def build_extraction_prompt() -> str:
    return """You are analyzing a question paper. Extract every question with its details.

IMPORTANT: Return ONLY valid JSON, no other text.

{
  "subject": "Mathematics/Physics/Chemistry/etc",
  "language": "English/Hindi/Bengali/etc",
  "gradeLevel": "Grade 9-10/High School/etc",
  "questions": [
    {
      "questionNumber": "1",
      "questionText": "Full question text",
      "maxScore": 5,
      "topic": "Algebra",
      "concept": "Linear Equations",
      "position": { "x": 10, "y": 25 }
    }
  ]
}

Keep question numbers exactly as printed ("2a", "3(ii)"). Positions are percentages (0-100)
of the image where each question starts. Use null for a maxScore that is not printed."""


def build_single_grading_prompt() -> str:
    return f"""You are a caring teacher grading a student's exam. The image shows both the
questions and the student's handwritten work.

For every question you can identify:
1. Locate it on the image (percentages from the top-left corner)
2. Transcribe the student's answer (null if not attempted)
3. Decide whether it is correct and award a score
4. Write a short remark

{FEEDBACK_TONE}
{ANNOTATION_RULES}
Return ONLY this JSON structure:
{{
  "subject": "Mathematics",
  "language": "language of the paper",
  "gradeLevel": "estimate from difficulty",
  "totalScore": "8/10",
  "feedback": "overall feedback",
  "imageDimensions": {{ "width": 1200, "height": 1600 }},
  "annotations": [
    {{ "id": "ann-1", "type": "checkmark", "position": {{ "x": 10, "y": 25 }}, "color": "green", "questionId": "q1" }}
  ],
  "detailedAnalysis": [
    {{
      "id": "q1",
      "questionNumber": "1",
      "question": "question text",
      "studentAnswer": "student's work or null",
      "correct": true,
      "score": "5/5",
      "remarks": "short remark",
      "topic": "topic",
      "concept": "concept",
      "position": {{ "x": 10, "y": 25 }}
    }}
  ]
}}"""


def _questions_text(paper: QuestionPaper) -> str:
    return "\n".join(
        f"Question {q.question_number}"
        + (f" [{q.max_score:g} marks]" if q.max_score is not None else "")
        + f": {q.question_text}"
        for q in paper.questions
    )


def build_paper_grading_prompt(paper: QuestionPaper) -> str:
    questions_text = _questions_text(paper)

    return f"""You are a caring {paper.subject} teacher ({paper.grade_level}) grading a student's answer sheet.

QUESTION PAPER (already extracted):
{questions_text}

ANSWER SHEET IMAGE:
The student's handwritten answers are in the image.

Your task:
1. Extract each answer from the answer sheet together with the question number it answers
2. Match each answer to a question number from the question paper above
3. Grade each answer against its question; score out of its marks when marks are given
4. List question numbers that were not answered (studentAnswer null)
5. Report answers that match no question with "matched": false
6. Place annotations on the student's work

{FEEDBACK_TONE}
{ANNOTATION_RULES}
Return ONLY valid JSON:
{{
  "subject": "{paper.subject}",
  "language": "{paper.language}",
  "gradeLevel": "{paper.grade_level}",
  "totalScore": "13/15",
  "feedback": "overall feedback",
  "imageDimensions": {{ "width": 1200, "height": 1600 }},
  "annotations": [
    {{ "id": "ann-1", "type": "score", "position": {{ "x": 90, "y": 28 }}, "color": "green", "text": "3/5", "questionId": "q1" }}
  ],
  "detailedAnalysis": [
    {{
      "id": "q1",
      "questionNumber": "1",
      "question": "question text from the question paper",
      "studentAnswer": "extracted answer or null if not attempted",
      "correct": true,
      "score": "points earned",
      "remarks": "short remark",
      "position": {{ "x": 10, "y": 25 }},
      "matched": true,
      "matchConfidence": 1.0
    }}
  ]
}}"""


def build_page_grading_prompt(paper: QuestionPaper, page_number: int, total_pages: int) -> str:
    """One page of a multi-page answer sheet; the other pages are graded separately."""
    questions_text = _questions_text(paper)

    return f"""You are a caring {paper.subject} teacher ({paper.grade_level}) grading page {page_number} of {total_pages} of a student's answer sheet.

QUESTION PAPER (already extracted, covers all pages):
{questions_text}

ANSWER SHEET IMAGE:
Only page {page_number} is shown. Answers to the other questions are on other pages.

Your task:
1. Extract each answer written on THIS page together with the question number it answers
2. Match each answer to a question number from the question paper above
3. Grade each answer against its question; score out of its marks when marks are given
4. Report ONLY questions whose answer appears on this page. Do NOT list questions that are missing from this page
5. Report answers that match no question with "matched": false
6. Place annotations on the student's work

{FEEDBACK_TONE}
{ANNOTATION_RULES}
Return ONLY valid JSON:
{{
  "subject": "{paper.subject}",
  "language": "{paper.language}",
  "gradeLevel": "{paper.grade_level}",
  "feedback": "feedback on this page",
  "imageDimensions": {{ "width": 1200, "height": 1600 }},
  "annotations": [
    {{ "id": "ann-1", "type": "checkmark", "position": {{ "x": 10, "y": 28 }}, "color": "green", "questionId": "q1" }}
  ],
  "detailedAnalysis": [
    {{
      "id": "q1",
      "questionNumber": "1",
      "question": "question text from the question paper",
      "studentAnswer": "answer extracted from this page",
      "correct": true,
      "score": "points earned",
      "remarks": "short remark",
      "position": {{ "x": 10, "y": 25 }},
      "matched": true,
      "matchConfidence": 1.0
    }}
  ]
}}"""


def build_chapter_summary_prompt(request: ChapterSummaryRequest) -> str:
    book = f" from the book \"{request.book_name}\"" if request.book_name else ""
    number = f" (chapter {request.chapter_number})" if request.chapter_number else ""
    return f"""Write a study summary of the chapter "{request.chapter_name}"{number}{book}
for a class {request.class_level} {request.subject} student.

- Write in the language with code "{request.language}"
- Start with a two-sentence overview, then the key ideas as short bullet points
- Explain every key term in simple words
- End with three quick self-check questions
- Use Markdown headings and bullets, no JSON"""
