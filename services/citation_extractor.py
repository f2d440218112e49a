# services/citation_extractor.py
import asyncio
import logging
from typing import Any, Dict, Optional

from clients import grobid_client
from clients.arxiv_client import fetch_arxiv_metadata
from services.cache_service import CacheService
from utils.id_normalization import extract_arxiv_id, resolve_pdf_url

logger = logging.getLogger(__name__)


def _failure(url: str, error: str) -> Dict[str, Any]:
    return {"success": False, "url": url, "citations": [], "error": error}


class CitationExtractor:
    """
    Turns a paper URL into metadata plus in-text citations.

    Extraction goes PDF -> GROBID -> TEI; arXiv metadata, when available,
    wins over the TEI header. Successful results are cached by URL.
    """

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        grobid=grobid_client,
        metadata_lookup=fetch_arxiv_metadata,
    ):
        self.cache = cache
        self.grobid = grobid
        self.metadata_lookup = metadata_lookup

    async def extract(self, url: str) -> Dict[str, Any]:
        cache_key = CacheService.paper_key(url)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info(f"♻️ Using cached extraction for {url}")
                return cached

        pdf_url = resolve_pdf_url(url)
        if not pdf_url:
            logger.warning(f"⚠️ Cannot derive a PDF location from {url}")
            return _failure(url, "Unsupported paper URL")

        arxiv_id = extract_arxiv_id(url)

        try:
            pdf_bytes = await self.grobid.download_pdf(pdf_url)
            tei_xml = await self.grobid.process_fulltext(pdf_bytes)
            parsed = self.grobid.parse_tei(tei_xml)
        except grobid_client.GrobidError as e:
            logger.warning(f"❌ Extraction failed for {url}: {e}")
            return _failure(url, str(e))

        metadata = None
        if arxiv_id:
            metadata = await asyncio.to_thread(self.metadata_lookup, arxiv_id)

        result = {
            "success": True,
            "url": url,
            "arxivId": arxiv_id,
            "paperTitle": parsed["paperTitle"],
            "paperAuthors": parsed["paperAuthors"],
            "paperAbstract": parsed["paperAbstract"],
            "publishedDate": None,
            "citations": parsed["citations"],
        }
        if metadata:
            result["paperTitle"] = metadata.get("title") or result["paperTitle"]
            result["paperAuthors"] = metadata.get("authors") or result["paperAuthors"]
            result["paperAbstract"] = metadata.get("summary") or result["paperAbstract"]
            result["publishedDate"] = metadata.get("published")

        if not result["paperTitle"]:
            logger.warning(f"⚠️ No title recovered for {url}")
            return _failure(url, "No title found in document")

        logger.info(f"✅ Extracted '{result['paperTitle'][:60]}' with {len(result['citations'])} citations")

        if self.cache is not None:
            self.cache.set(cache_key, result)
        return result
