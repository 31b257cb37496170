"""Shared fixtures: in-memory Mongo, a scripted analyzer and sample images."""

import asyncio
import io
import json
import uuid

import mongomock
import pytest
from PIL import Image

from examgrader.database import ensure_indexes
from examgrader.services.storage import FileStore


class AsyncCursor:
    """Motor-style cursor over a mongomock cursor."""

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    async def to_list(self, length=None):
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class AsyncCollection:
    """Awaitable facade over a mongomock collection, shaped like Motor's."""

    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self._collection.find(*args, **kwargs))

    def aggregate(self, pipeline, **kwargs):
        return AsyncCursor(self._collection.aggregate(pipeline, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, **kwargs):
            return method(*args, **kwargs)
        return call


class AsyncDatabase:

    def __init__(self, database):
        self._database = database

    def __getattr__(self, name):
        return AsyncCollection(self._database[name])


class FakeAnalyzer:
    """Replays scripted replies in order; exceptions in the script are raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def analyze(self, images, prompt):
        self.calls.append({"images": list(images), "prompt": prompt})
        if not self.replies:
            raise AssertionError("FakeAnalyzer ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return "```json\n" + json.dumps(reply) + "\n```"
        return reply


def make_png(color=(255, 255, 255), size=(40, 60)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def extraction_reply(max_scores=(5, 5, 5), subject="Mathematics"):
    return {
        "subject": subject,
        "language": "English",
        "gradeLevel": "Grade 6",
        "questions": [
            {"questionNumber": str(i), "questionText": f"Question {i}", "maxScore": score}
            for i, score in enumerate(max_scores, start=1)
        ],
    }


def answer_entry(number, correct, score, student_answer="work shown", remarks=""):
    return {
        "id": f"q{number}",
        "questionNumber": number,
        "question": f"Question {number}",
        "studentAnswer": student_answer,
        "correct": correct,
        "score": score,
        "remarks": remarks,
    }


def grading_reply(entries, total_score=None, subject="Mathematics", annotations=None):
    reply = {
        "subject": subject,
        "language": "English",
        "gradeLevel": "Grade 6",
        "feedback": "Nice work on the arithmetic!",
        "detailedAnalysis": entries,
        "imageDimensions": {"width": 800, "height": 1000},
    }
    if total_score is not None:
        reply["totalScore"] = total_score
    if annotations is not None:
        reply["annotations"] = annotations
    return reply


@pytest.fixture
def db():
    database = AsyncDatabase(mongomock.MongoClient()[f"examgrader_test_{uuid.uuid4().hex[:8]}"])
    asyncio.run(ensure_indexes(database))
    return database


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def file_store(tmp_path):
    return FileStore(tmp_path / "uploads")


@pytest.fixture
def write_image(tmp_path):
    """Write image bytes to a fresh file and return its path."""
    def _write(data: bytes, name=None):
        path = tmp_path / (name or f"{uuid.uuid4().hex}.png")
        path.write_bytes(data)
        return path
    return _write
