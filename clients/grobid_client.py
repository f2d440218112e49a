# clients/grobid_client.py
import logging
import os
from typing import Any, Dict, List, Optional

import aiohttp
from defusedxml import ElementTree as ET
from defusedxml.common import DefusedXmlException

from utils.sanitization import clean_text

logger = logging.getLogger(__name__)

GROBID_URL = os.getenv("GROBID_URL", "http://localhost:8070")
EXTRACTION_TIMEOUT = float(os.getenv("EXTRACTION_TIMEOUT", "120"))
PDF_DOWNLOAD_TIMEOUT = 60

TEI_NS = "{http://www.tei-c.org/ns/1.0}"
XML_ID = "{http://www.w3.org/XML/1998/namespace}id"
CONTEXT_WINDOW = 200


class GrobidError(RuntimeError):
    """PDF download, GROBID processing or TEI parsing failed."""


# ------------------------------------------------------------
# HTTP
# ------------------------------------------------------------
async def download_pdf(pdf_url: str, timeout: float = PDF_DOWNLOAD_TIMEOUT) -> bytes:
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.get(pdf_url, headers={"Accept": "application/pdf"}) as resp:
                if resp.status != 200:
                    raise GrobidError(f"PDF download failed ({resp.status}): {pdf_url}")
                pdf_bytes = await resp.read()
    except aiohttp.ClientError as e:
        raise GrobidError(f"PDF request failed for {pdf_url}: {e}") from e

    if not pdf_bytes.startswith(b"%PDF"):
        raise GrobidError(f"Response from {pdf_url} is not a PDF")

    logger.info(f"📥 Downloaded PDF ({len(pdf_bytes)} bytes): {pdf_url}")
    return pdf_bytes


async def process_fulltext(
    pdf_bytes: bytes,
    grobid_url: str = GROBID_URL,
    timeout: float = EXTRACTION_TIMEOUT,
) -> str:
    """Send a PDF to GROBID and return the TEI XML."""
    form = aiohttp.FormData()
    form.add_field("input", pdf_bytes, filename="paper.pdf", content_type="application/pdf")
    form.add_field("consolidateCitations", "0")

    endpoint = f"{grobid_url.rstrip('/')}/api/processFulltextDocument"
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.post(endpoint, data=form, headers={"Accept": "application/xml"}) as resp:
                if resp.status != 200:
                    raise GrobidError(f"GROBID returned {resp.status}")
                return await resp.text()
    except aiohttp.ClientError as e:
        raise GrobidError(f"GROBID request failed: {e}") from e


# ------------------------------------------------------------
# TEI parsing
# ------------------------------------------------------------
def _text(elem) -> str:
    if elem is None:
        return ""
    return clean_text("".join(elem.itertext()))


def _person_name(author) -> str:
    pers = author.find(f"{TEI_NS}persName")
    if pers is None:
        return _text(author)
    forenames = " ".join(_text(f) for f in pers.findall(f"{TEI_NS}forename"))
    surname = _text(pers.find(f"{TEI_NS}surname"))
    return f"{forenames} {surname}".strip()


def _bibl_title(bibl) -> str:
    for title in bibl.iter(f"{TEI_NS}title"):
        if title.get("level") == "a" and _text(title):
            return _text(title)
    return _text(bibl.find(f".//{TEI_NS}title"))


def _bibl_year(bibl) -> str:
    date = bibl.find(f".//{TEI_NS}date")
    if date is None:
        return ""
    when = date.get("when") or _text(date)
    return when[:4] if when else ""


def _parse_bibliography(root) -> Dict[str, Dict[str, Any]]:
    entries = {}
    for list_bibl in root.iter(f"{TEI_NS}listBibl"):
        for bibl in list_bibl.findall(f"{TEI_NS}biblStruct"):
            xml_id = bibl.get(XML_ID)
            if not xml_id:
                continue
            entries[xml_id] = {
                "id": xml_id,
                "title": _bibl_title(bibl),
                "authors": [n for n in (_person_name(a) for a in bibl.iter(f"{TEI_NS}author")) if n],
                "year": _bibl_year(bibl),
            }
    return entries


def _context_windows(paragraph: str, marker: str):
    idx = paragraph.find(marker) if marker else -1
    if idx == -1:
        return "", ""
    start = max(0, idx - CONTEXT_WINDOW)
    end = min(len(paragraph), idx + len(marker) + CONTEXT_WINDOW)
    return paragraph[start:idx].strip(), paragraph[idx + len(marker):end].strip()


def _dedupe_citations(citations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique = []
    for c in citations:
        key = ((c["title"] or "").lower(), c["year"], c["context"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(c)
    return unique


def parse_tei(tei_xml: str) -> Dict[str, Any]:
    """
    Header metadata plus in-text citations from a GROBID TEI document.
    Every citation carries the paragraph it appears in and the text
    around its marker.
    """
    try:
        root = ET.fromstring(tei_xml)
    except (ET.ParseError, DefusedXmlException) as e:
        raise GrobidError(f"Invalid TEI XML: {e}") from e

    header = root.find(f"{TEI_NS}teiHeader")
    title = ""
    authors: List[str] = []
    abstract = ""
    if header is not None:
        title = _text(header.find(f".//{TEI_NS}titleStmt/{TEI_NS}title"))
        analytic = header.find(f".//{TEI_NS}sourceDesc/{TEI_NS}biblStruct/{TEI_NS}analytic")
        if analytic is not None:
            if not title:
                title = _bibl_title(analytic)
            authors = [n for n in (_person_name(a) for a in analytic.findall(f"{TEI_NS}author")) if n]
        abstract = _text(header.find(f".//{TEI_NS}profileDesc/{TEI_NS}abstract"))

    bibliography = _parse_bibliography(root)

    citations = []
    body = root.find(f".//{TEI_NS}body")
    if body is not None:
        for div in body.iter(f"{TEI_NS}div"):
            section = _text(div.find(f"{TEI_NS}head"))
            for paragraph in div.findall(f"{TEI_NS}p"):
                paragraph_text = _text(paragraph)
                for ref in paragraph.iter(f"{TEI_NS}ref"):
                    if ref.get("type") != "bibr":
                        continue
                    target = ref.get("target") or ""
                    if not target.startswith("#"):
                        continue
                    bib = bibliography.get(target[1:])
                    if bib is None:
                        continue
                    before, after = _context_windows(paragraph_text, _text(ref))
                    citations.append({
                        **bib,
                        "section": section,
                        "context": paragraph_text,
                        "contextBefore": before,
                        "contextAfter": after,
                    })

    unique = _dedupe_citations(citations)
    logger.info(
        f"📑 TEI parsed: {len(bibliography)} bibliography entries, "
        f"{len(citations)} citations ({len(unique)} unique)"
    )

    return {
        "paperTitle": title,
        "paperAuthors": authors,
        "paperAbstract": abstract,
        "citations": unique,
    }
