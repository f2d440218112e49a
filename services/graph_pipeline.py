# services/graph_pipeline.py
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from services.citation_extractor import CitationExtractor
from services.errors import GraphBuildError, GraphPayloadError
from services.graph_assembler import assemble_graph
from services.graph_normalizer import normalize_graph
from services.relationship_classifier import RelationshipClassifier, relationship_classifier
from utils.sanitization import titles_match

logger = logging.getLogger(__name__)

MAX_PAPERS_PER_REQUEST = int(os.getenv("MAX_PAPERS_PER_REQUEST", "10"))
LLM_MAX_CONCURRENCY = int(os.getenv("LLM_MAX_CONCURRENCY", "3"))
LLM_BATCH_DELAY = float(os.getenv("LLM_BATCH_DELAY", "0.5"))
EXTRACTION_TIMEOUT = float(os.getenv("EXTRACTION_TIMEOUT", "120"))
CLASSIFICATION_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "30")) * 2
MAX_CONTEXTS_PER_PAIR = 3


def _dedupe_urls(urls: List[str]) -> List[str]:
    seen = set()
    result = []
    for url in urls:
        if not isinstance(url, str) or not url.strip():
            continue
        url = url.strip()
        if url not in seen:
            seen.add(url)
            result.append(url)
    return result


def _paper_from_extraction(extraction: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": extraction["url"],
        "url": extraction["url"],
        "title": extraction["paperTitle"],
        "authors": extraction.get("paperAuthors") or [],
        "abstract": extraction.get("paperAbstract") or "",
        "arxivId": extraction.get("arxivId"),
        "publishedDate": extraction.get("publishedDate"),
        "citationCount": len(extraction.get("citations") or []),
    }


def _citation_context(citation: Dict[str, Any]) -> str:
    before = citation.get("contextBefore") or ""
    after = citation.get("contextAfter") or ""
    if before or after:
        return f"{before} [CITATION] {after}".strip()
    return citation.get("context") or ""


def build_classification_jobs(papers: List[Dict[str, Any]], extractions: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    One job per ordered (citing, cited) pair whose citations mention the
    cited paper's title. Contexts from all matching citations are joined.
    """
    jobs = []
    for citing in papers:
        citations = extractions[citing["id"]].get("citations") or []
        for cited in papers:
            if cited["id"] == citing["id"]:
                continue
            contexts = []
            for citation in citations:
                if not titles_match(citation.get("title"), cited["title"]):
                    continue
                context = _citation_context(citation)
                if context and context not in contexts:
                    contexts.append(context)
            if contexts:
                jobs.append({
                    "from": citing,
                    "to": cited,
                    "context": "\n\n".join(contexts[:MAX_CONTEXTS_PER_PAIR]),
                })
    return jobs


class GraphPipeline:
    """
    URLs -> extraction fan-out -> batched classification -> assembled graph.
    """

    def __init__(
        self,
        extractor: CitationExtractor,
        classifier: RelationshipClassifier = relationship_classifier,
        batch_size: int = LLM_MAX_CONCURRENCY,
        batch_delay: float = LLM_BATCH_DELAY,
        extraction_timeout: float = EXTRACTION_TIMEOUT,
        classification_timeout: float = CLASSIFICATION_TIMEOUT,
        max_papers: int = MAX_PAPERS_PER_REQUEST,
        sleep=asyncio.sleep,
    ):
        self.extractor = extractor
        self.classifier = classifier
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.extraction_timeout = extraction_timeout
        self.classification_timeout = classification_timeout
        self.max_papers = max_papers
        self._sleep = sleep

    async def _extract_one(self, url: str) -> Optional[Dict[str, Any]]:
        try:
            result = await asyncio.wait_for(self.extractor.extract(url), timeout=self.extraction_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Extraction timed out for {url}")
            return None
        except Exception as e:
            logger.warning(f"⚠️ Extraction failed for {url}: {e}", exc_info=True)
            return None
        if not result or not result.get("success"):
            return None
        return result

    async def _classify_one(self, job: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            result = await asyncio.wait_for(
                self.classifier.classify(job["from"]["title"], job["to"]["title"], job["context"]),
                timeout=self.classification_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Classification timed out: {job['from']['id']} -> {job['to']['id']}")
            return None
        except Exception as e:
            logger.warning(f"⚠️ Classification failed: {job['from']['id']} -> {job['to']['id']}: {e}", exc_info=True)
            return None
        if not result:
            return None
        return {
            "fromPaperId": job["from"]["id"],
            "toPaperId": job["to"]["id"],
            **result,
        }

    async def classify_jobs(self, jobs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        relationships = []
        for start in range(0, len(jobs), self.batch_size):
            if start > 0 and self.batch_delay > 0:
                await self._sleep(self.batch_delay)
            batch = jobs[start:start + self.batch_size]
            logger.info(f"🔗 Classifying batch {start // self.batch_size + 1} ({len(batch)} pairs)")
            results = await asyncio.gather(*(self._classify_one(job) for job in batch))
            relationships.extend(r for r in results if r)
        return relationships

    async def build_graph(self, urls: List[str]) -> Dict[str, Any]:
        if not isinstance(urls, list):
            raise GraphPayloadError("urls must be a list")
        unique_urls = _dedupe_urls(urls)
        if not unique_urls:
            raise GraphPayloadError("At least one paper URL is required")
        if len(unique_urls) > self.max_papers:
            raise GraphPayloadError(f"At most {self.max_papers} papers can be analyzed per request")

        logger.info(f"🚀 Building graph for {len(unique_urls)} papers")

        results = await asyncio.gather(*(self._extract_one(url) for url in unique_urls))
        extractions = {}
        papers = []
        for extraction in results:
            if extraction is None:
                continue
            paper = _paper_from_extraction(extraction)
            if paper["id"] in extractions:
                continue
            extractions[paper["id"]] = extraction
            papers.append(paper)

        failed = len(unique_urls) - len(papers)
        if not papers:
            raise GraphBuildError("No papers could be extracted")

        jobs = build_classification_jobs(papers, extractions)
        relationships = await self.classify_jobs(jobs)

        graph = normalize_graph(assemble_graph(papers, relationships, original_papers=unique_urls))
        if not graph["nodes"]:
            raise GraphBuildError("Graph build produced no nodes")

        statistics = {
            "requestedPapers": len(unique_urls),
            "extractedPapers": len(papers),
            "failedPapers": failed,
            "totalCitations": sum(p["citationCount"] for p in papers),
            "classificationJobs": len(jobs),
            "relationships": len(relationships),
            "totalNodes": len(graph["nodes"]),
            "totalEdges": len(graph["edges"]),
        }
        logger.info(f"✅ Graph built: {statistics}")

        return {
            "graph": graph,
            "papers": papers,
            "originalPapers": unique_urls,
            "statistics": statistics,
        }
