# clients/arxiv_client.py
import logging
from typing import Dict, Optional

import requests
from requests.exceptions import RequestException
from defusedxml import ElementTree as ET
from defusedxml.common import DefusedXmlException

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
ATOM_NS = "{http://www.w3.org/2005/Atom}"


def _parse_entry(entry) -> Optional[Dict]:
    id_elem = entry.find(f"{ATOM_NS}id")
    title_elem = entry.find(f"{ATOM_NS}title")

    if not (id_elem is not None and id_elem.text and title_elem is not None and title_elem.text):
        return None

    summary_elem = entry.find(f"{ATOM_NS}summary")
    summary = " ".join(summary_elem.text.split()) if summary_elem is not None and summary_elem.text else ""

    authors = [
        name.text.strip()
        for a in entry.findall(f"{ATOM_NS}author")
        if (name := a.find(f"{ATOM_NS}name")) is not None and name.text
    ]

    published = entry.find(f"{ATOM_NS}published")

    return {
        "id": id_elem.text.strip(),
        "title": " ".join(title_elem.text.split()),
        "summary": summary,
        "authors": authors,
        "published": published.text.strip() if published is not None and published.text else None,
    }


def parse_arxiv_feed(xml_text: str) -> Optional[Dict]:
    """First entry of an Atom feed, or None."""
    try:
        root = ET.fromstring(xml_text)
    except (ET.ParseError, DefusedXmlException):
        logger.exception("Failed to parse arXiv API response")
        return None

    for entry in root.findall(f"{ATOM_NS}entry"):
        parsed = _parse_entry(entry)
        if parsed:
            return parsed
    return None


def fetch_arxiv_metadata(arxiv_id: str, timeout: float = 10) -> Optional[Dict]:
    """
    Title, authors, abstract and published date for one arXiv id.
    Returns None when the lookup fails; metadata is best effort.
    """
    params = {"id_list": arxiv_id, "max_results": 1}

    try:
        response = requests.get(ARXIV_API_URL, params=params, timeout=timeout)
        response.raise_for_status()
    except RequestException:
        logger.exception(f"arXiv API request failed for {arxiv_id}")
        return None

    return parse_arxiv_feed(response.text)
