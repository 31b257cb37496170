"""Error taxonomy for extraction and grading."""

from typing import Optional


class GradingError(Exception):
    """Base class for failures surfaced to API callers as structured payloads."""

    status_code = 500
    error = "Grading failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.error)
        self.detail = detail or self.error

    def to_payload(self) -> dict:
        return {"error": self.error, "detail": self.detail}


class ValidationFailure(GradingError):
    status_code = 400
    error = "Invalid request"


class NotFoundError(GradingError):
    status_code = 404
    error = "Not found"


class AnalyzerError(GradingError):
    """The external analyzer could not be reached or refused the request."""

    status_code = 502
    error = "Analyzer call failed"


class AnalyzerReplyError(AnalyzerError):
    """The analyzer answered, but with text we cannot use."""

    error = "Failed to parse structured response"

    def __init__(self, detail: str, raw_text: str = ""):
        super().__init__(detail)
        self.raw_text = raw_text

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["raw_response"] = self.raw_text
        return payload


class PageGradingError(GradingError):
    """One page of a multi-page submission failed; the whole batch is void."""

    status_code = 502
    error = "Failed to grade multi-page exam"

    def __init__(self, page_number: int, cause: Exception):
        super().__init__(f"Failed to grade page {page_number}: {cause}")
        self.page_number = page_number
        self.cause = cause

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["page_number"] = self.page_number
        raw_text: Optional[str] = getattr(self.cause, "raw_text", None)
        if raw_text:
            payload["raw_response"] = raw_text
        return payload


class GradingCancelled(GradingError):
    status_code = 499
    error = "Grading cancelled"
