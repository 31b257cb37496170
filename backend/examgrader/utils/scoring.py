"""Question-number matching and free-form score arithmetic."""

import re
from typing import Optional, Tuple

_PREFIX_RE = re.compile(r"^(?:question|ques|qn|q)\s*[.:#-]?\s*", re.IGNORECASE)
_NOISE_RE = re.compile(r"[\s()\[\].:_\-]")
_SCORE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(?:/\s*(\d+(?:\.\d+)?))?")
_NATURAL_RE = re.compile(r"\d+|\D+")


def normalize_question_number(label: str) -> str:
    """'Q.2(a)', 'question 2a' and '2a' all normalize to '2a'."""
    text = str(label).strip().lower()
    text = _PREFIX_RE.sub("", text)
    return _NOISE_RE.sub("", text)


def natural_key(label: str) -> Tuple:
    """Sort key putting '2' before '2a' before '10'."""
    parts = _NATURAL_RE.findall(str(label).strip().lower())
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts)


def score_points(score: str) -> Optional[float]:
    """Numerator of a score string like '3', '3.5' or '3/5'; None when unparseable."""
    if score is None:
        return None
    match = _SCORE_RE.match(str(score))
    if not match:
        return None
    return max(0.0, float(match.group(1)))


def parse_fraction(score: Optional[str]) -> Optional[Tuple[float, Optional[float]]]:
    if not score:
        return None
    match = _SCORE_RE.match(score)
    if not match:
        return None
    denominator = float(match.group(2)) if match.group(2) else None
    return float(match.group(1)), denominator


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_fraction(numerator: float, denominator: float) -> str:
    return f"{format_number(numerator)}/{format_number(denominator)}"
