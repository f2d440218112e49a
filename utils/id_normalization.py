# utils/id_normalization.py
from typing import Optional
import re

# 2301.01234, 2301.01234v2, hep-th/9901001, math.GT/0309136
ARXIV_ID_PATTERN = re.compile(
    r"(?P<id>\d{4}\.\d{4,5}(?:v\d+)?|[a-z\-]+(?:\.[A-Z]{2})?/\d{7}(?:v\d+)?)"
)
ARXIV_HOSTS = ("arxiv.org", "export.arxiv.org")


def normalize_arxiv_id(raw_id: Optional[str]) -> Optional[str]:
    """Strip any version suffix and ".pdf" from an arXiv id."""
    if not raw_id or not raw_id.strip():
        return None
    clean = raw_id.strip()
    if clean.endswith(".pdf"):
        clean = clean[:-4]
    return re.sub(r"v\d+$", "", clean)


def extract_arxiv_id(value: Optional[str]) -> Optional[str]:
    """
    Accepts an abs/pdf URL or a bare id.
    Returns None for URLs from other hosts.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    if "://" in value:
        if not any(host in value for host in ARXIV_HOSTS):
            return None
        path = value.split("://", 1)[1].split("/", 1)[-1]
        path = re.sub(r"^(abs|pdf)/", "", path)
    else:
        path = value

    match = ARXIV_ID_PATTERN.search(path)
    if not match:
        return None
    return normalize_arxiv_id(match.group("id"))


def arxiv_pdf_url(arxiv_id: str) -> str:
    return f"https://arxiv.org/pdf/{arxiv_id}.pdf"


def resolve_pdf_url(value: str) -> Optional[str]:
    """
    PDF location for an arXiv URL/id, or the value itself when it already
    points at a PDF. None when nothing downloadable can be derived.
    """
    arxiv_id = extract_arxiv_id(value)
    if arxiv_id:
        return arxiv_pdf_url(arxiv_id)
    if value and value.strip().lower().split("?", 1)[0].endswith(".pdf"):
        return value.strip()
    return None
