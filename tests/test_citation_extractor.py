import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from clients.grobid_client import GrobidError
from services.cache_service import CacheService
from services.citation_extractor import CitationExtractor

URL = "https://arxiv.org/abs/2301.00001"
PARSED = {
    "paperTitle": "TEI title",
    "paperAuthors": ["TEI Author"],
    "paperAbstract": "TEI abstract",
    "citations": [{"id": "b0", "title": "Cited", "context": "ctx"}],
}


def _fake_grobid(parsed=PARSED, error=None):
    grobid = MagicMock()
    grobid.download_pdf = AsyncMock(side_effect=error, return_value=b"%PDF-1.4")
    grobid.process_fulltext = AsyncMock(return_value="<TEI/>")
    grobid.parse_tei = MagicMock(return_value=parsed)
    return grobid


class TestCitationExtractor(unittest.TestCase):

    def test_arxiv_metadata_wins_over_tei_header(self):
        grobid = _fake_grobid()
        lookup = MagicMock(return_value={"title": "arXiv title", "authors": ["A"], "summary": "S", "published": "2023"})
        extractor = CitationExtractor(grobid=grobid, metadata_lookup=lookup)

        result = asyncio.run(extractor.extract(URL))

        self.assertTrue(result["success"])
        self.assertEqual(result["url"], URL)
        self.assertEqual(result["paperTitle"], "arXiv title")
        self.assertEqual(result["paperAbstract"], "S")
        self.assertEqual(result["publishedDate"], "2023")
        self.assertEqual(len(result["citations"]), 1)
        grobid.download_pdf.assert_awaited_once_with("https://arxiv.org/pdf/2301.00001.pdf")
        lookup.assert_called_once_with("2301.00001")

    def test_falls_back_to_tei_header(self):
        extractor = CitationExtractor(grobid=_fake_grobid(), metadata_lookup=MagicMock(return_value=None))
        result = asyncio.run(extractor.extract(URL))
        self.assertEqual(result["paperTitle"], "TEI title")

    def test_grobid_failure_is_reported_not_raised(self):
        extractor = CitationExtractor(grobid=_fake_grobid(error=GrobidError("down")), metadata_lookup=MagicMock())
        result = asyncio.run(extractor.extract(URL))
        self.assertFalse(result["success"])
        self.assertEqual(result["citations"], [])

    def test_unsupported_url(self):
        grobid = _fake_grobid()
        extractor = CitationExtractor(grobid=grobid, metadata_lookup=MagicMock())
        result = asyncio.run(extractor.extract("https://example.com/landing"))
        self.assertFalse(result["success"])
        grobid.download_pdf.assert_not_awaited()

    def test_results_are_cached_by_url(self):
        grobid = _fake_grobid()
        cache = CacheService()
        extractor = CitationExtractor(cache=cache, grobid=grobid, metadata_lookup=MagicMock(return_value=None))

        first = asyncio.run(extractor.extract(URL))
        second = asyncio.run(extractor.extract(URL))

        self.assertEqual(first, second)
        self.assertEqual(grobid.download_pdf.await_count, 1)
        self.assertTrue(cache.has(CacheService.paper_key(URL)))


if __name__ == "__main__":
    unittest.main()
