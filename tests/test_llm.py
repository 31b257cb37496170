import asyncio

import pytest
from google.api_core import exceptions as google_exceptions

from examgrader.errors import AnalyzerError
from examgrader.services.llm import GeminiAnalyzer, ImageContent

from conftest import make_png


class ScriptedModel:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def generate_content(self, parts):
        self.requests.append(parts)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return type("Response", (), {"text": outcome})()


def _analyzer(model, max_retries=3):
    analyzer = GeminiAnalyzer(api_key="test-key", max_retries=max_retries, base_retry_delay=0)
    analyzer._model = model
    return analyzer


def test_image_content_sniffs_mime_type():
    part = ImageContent(make_png()).to_genai_part()
    assert part["inline_data"]["mime_type"] == "image/png"
    assert ImageContent(b"raw", mime_type="image/webp").mime_type == "image/webp"


def test_missing_api_key_fails_fast():
    with pytest.raises(AnalyzerError, match="Missing API Key"):
        asyncio.run(GeminiAnalyzer(api_key=None).analyze([], "hello"))


def test_sends_images_before_prompt():
    model = ScriptedModel('{"ok": true}')
    text = asyncio.run(_analyzer(model).analyze([ImageContent(make_png())], "grade this"))

    assert text == '{"ok": true}'
    parts = model.requests[0]
    assert parts[0]["inline_data"]["mime_type"] == "image/png"
    assert parts[-1] == "grade this"


def test_transient_errors_are_retried():
    model = ScriptedModel(
        google_exceptions.ServiceUnavailable("Service Unavailable"),
        google_exceptions.ResourceExhausted("Quota exceeded"),
        "done",
    )
    assert asyncio.run(_analyzer(model).analyze([], "p")) == "done"
    assert len(model.requests) == 3


def test_retries_are_bounded():
    model = ScriptedModel(google_exceptions.DeadlineExceeded("slow"), google_exceptions.InternalServerError("boom"))
    with pytest.raises(AnalyzerError, match="after 2 attempts"):
        asyncio.run(_analyzer(model, max_retries=2).analyze([], "p"))


def test_permanent_errors_are_not_retried():
    model = ScriptedModel(google_exceptions.InvalidArgument("API key not valid"), "never")
    with pytest.raises(AnalyzerError, match="API key not valid"):
        asyncio.run(_analyzer(model).analyze([], "p"))
    assert len(model.requests) == 1


def test_error_text_that_looks_transient_is_not_retried():
    model = ScriptedModel(ValueError("max tokens 5000 exceeded"), "never")
    with pytest.raises(AnalyzerError, match="max tokens 5000"):
        asyncio.run(_analyzer(model).analyze([], "p"))
    assert len(model.requests) == 1
