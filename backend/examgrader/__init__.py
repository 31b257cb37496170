"""ExamGrader - question paper dedup, content cache and answer-sheet grading."""
