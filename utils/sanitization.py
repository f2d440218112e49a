# utils/sanitization.py
from difflib import SequenceMatcher
from typing import Optional
import re

CONTROL_CHARS = r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]"
TITLE_SIMILARITY_THRESHOLD = 0.8


def clean_text(value: Optional[str]) -> str:
    if value is None:
        return ""

    text = re.sub(CONTROL_CHARS, "", value)
    text = text.strip()

    # Optional: normalize whitespace
    text = re.sub(r"\s+", " ", text)

    return text


def normalize_title(value: Optional[str]) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    text = clean_text(value).lower()
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def titles_match(a: Optional[str], b: Optional[str], threshold: float = TITLE_SIMILARITY_THRESHOLD) -> bool:
    """
    True when one normalized title contains the other or their
    similarity ratio is above the threshold.
    """
    left, right = normalize_title(a), normalize_title(b)
    if not left or not right:
        return False
    if left in right or right in left:
        return True
    return SequenceMatcher(None, left, right).ratio() > threshold
