"""
Analyzer client - sends images plus an instruction prompt to a Gemini vision
model and returns the reply text.

Services receive an analyzer instance through their constructor; anything with
an `async analyze(images, prompt) -> str` method works (tests use a scripted
fake).
"""

import asyncio
from typing import List, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ..config import (
    logger,
    GEMINI_MODEL,
    ANALYZER_TIMEOUT_SECONDS,
    ANALYZER_MAX_RETRIES,
)
from ..errors import AnalyzerError
from ..utils.images import detect_mime_type

# 429, 503, 504 and 500 from the Gemini API
_TRANSIENT_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)


class ImageContent:
    """Wraps raw image bytes for inclusion in a request."""

    def __init__(self, data: bytes, mime_type: Optional[str] = None):
        self.data = data
        self.mime_type = mime_type or detect_mime_type(data)

    def to_genai_part(self) -> dict:
        """Convert to google-generativeai inline_data format."""
        return {
            "inline_data": {
                "mime_type": self.mime_type,
                "data": self.data,
            }
        }


class GeminiAnalyzer:
    """
    Opaque `Analyze(images, prompt) -> text` collaborator backed by Gemini.

    The SDK call is synchronous, so it runs in the default executor. Transient
    failures (timeouts, quota, 5xx from the API) are retried with exponential backoff; anything
    else surfaces as AnalyzerError.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = GEMINI_MODEL,
        temperature: Optional[float] = 0,
        timeout: float = ANALYZER_TIMEOUT_SECONDS,
        max_retries: int = ANALYZER_MAX_RETRIES,
        base_retry_delay: float = 2.0,
    ):
        self._api_key = api_key
        self._model_name = model_name
        self._temperature = temperature
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._base_retry_delay = base_retry_delay
        self._model = None  # lazily created

        if api_key:
            genai.configure(api_key=api_key)

    def _ensure_model(self):
        if self._model is None:
            gen_config = {}
            if self._temperature is not None:
                gen_config["temperature"] = self._temperature
            self._model = genai.GenerativeModel(
                model_name=self._model_name,
                generation_config=gen_config or None,
            )
        return self._model

    async def analyze(self, images: Sequence[ImageContent], prompt: str) -> str:
        if not self._api_key:
            raise AnalyzerError("AI service not configured (Missing API Key)")

        model = self._ensure_model()
        parts: List = [img.to_genai_part() for img in images]
        parts.append(prompt)

        loop = asyncio.get_running_loop()
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            if attempt > 0:
                wait_time = self._base_retry_delay * (2 ** attempt)
                logger.info(f"Waiting {wait_time}s before analyzer retry {attempt + 1}")
                await asyncio.sleep(wait_time)

            try:
                response = await asyncio.wait_for(
                    loop.run_in_executor(None, lambda: model.generate_content(parts)),
                    timeout=self._timeout,
                )
                return response.text
            except asyncio.TimeoutError as e:
                logger.error(f"Analyzer timed out after {self._timeout}s (attempt {attempt + 1})")
                last_error = e
            except _TRANSIENT_ERRORS as e:
                logger.warning(f"Transient analyzer error (attempt {attempt + 1}/{self._max_retries}): {e}")
                last_error = e
            except Exception as e:
                logger.error(f"Analyzer call failed: {e}")
                raise AnalyzerError(f"Analyzer call failed: {e}") from e

        raise AnalyzerError(f"Analyzer failed after {self._max_retries} attempts: {last_error}")
