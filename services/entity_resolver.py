# services/entity_resolver.py
import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from database.models.paper_model import Paper
from services.errors import GraphPayloadError
from services.graph_normalizer import endpoint_id
from utils.sanitization import clean_text

logger = logging.getLogger(__name__)


def payload_url(payload: Dict[str, Any]) -> Optional[str]:
    url = payload.get("url")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


def _as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value if v is not None and str(v).strip()]


def _column_values(payload: Dict[str, Any]) -> Dict[str, Any]:
    title = clean_text(payload.get("title") or payload.get("label") or "") or payload_url(payload)
    return {
        "title": title[:512],
        "authors": _as_string_list(payload.get("authors")),
        "abstract": payload.get("abstract") or "",
        "introduction": payload.get("introduction"),
        "full_text": payload.get("fullText"),
        "doi": payload.get("doi") or None,
        "arxiv_id": payload.get("arxivId") or None,
        "published_date": payload.get("publishedDate") or None,
        "tags": sorted(set(_as_string_list(payload.get("tags")))),
    }


class IdMapping:
    """
    Per-call correspondence between ephemeral ids and durable paper ids.
    """

    def __init__(self):
        self.papers: "OrderedDict[str, Paper]" = OrderedDict()
        self.by_url: Dict[str, str] = {}
        self.by_original_id: Dict[str, str] = {}

    def record(self, paper: Paper, original_id: Optional[str] = None):
        self.papers[paper.id] = paper
        self.by_url[paper.url] = paper.id
        self.by_original_id[paper.id] = paper.id
        if original_id:
            self.by_original_id[original_id] = paper.id

    def paper_id_for_node(self, node: Dict[str, Any]) -> Optional[str]:
        """Exact url first, then the id correspondence recorded during upsert."""
        url = payload_url(node)
        if url and url in self.by_url:
            return self.by_url[url]
        node_id = endpoint_id(node.get("id"))
        if node_id:
            return self.by_original_id.get(node_id)
        return None

    def node_mapping(self, nodes: Iterable[Dict[str, Any]]) -> Dict[str, str]:
        mapping: Dict[str, str] = {}
        for node in nodes:
            durable = self.paper_id_for_node(node)
            if durable:
                mapping[node["id"]] = durable
        # Edges may also reference durable ids directly
        for durable in self.papers:
            mapping.setdefault(durable, durable)
        return mapping


class EntityResolver:
    """
    Maps paper URLs to durable Paper rows, creating or updating as needed.

    Payloads are keyed by url within one call, so a url is written once
    and every original id submitted for it maps to the same row.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def validate(payloads: Iterable[Dict[str, Any]]):
        for payload in payloads:
            if not isinstance(payload, dict):
                raise GraphPayloadError("Every paper must be an object")
            if not payload_url(payload):
                raise GraphPayloadError(
                    f"Paper '{payload.get('title') or payload.get('id') or '?'}' is missing a url"
                )

    def upsert_paper(self, payload: Dict[str, Any]) -> Paper:
        paper, _ = self._upsert(payload)
        return paper

    def _upsert(self, payload: Dict[str, Any]):
        url = payload_url(payload)
        if not url:
            raise GraphPayloadError("Paper payload is missing a url")

        values = _column_values(payload)
        existing = self.db.query(Paper).filter(Paper.url == url).one_or_none()

        if existing:
            # Last write wins, no per-field merge
            for column, value in values.items():
                setattr(existing, column, value)
            paper = existing
        else:
            paper = Paper(url=url, **values)
            self.db.add(paper)

        self.db.flush()
        return paper, existing is None

    def resolve(self, payloads: List[Dict[str, Any]], mapping: Optional[IdMapping] = None) -> IdMapping:
        """
        Upsert every payload and record original id -> durable id.
        The caller commits.
        """
        self.validate(payloads)
        mapping = mapping or IdMapping()

        grouped: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for payload in payloads:
            grouped.setdefault(payload_url(payload), []).append(payload)

        created = 0
        for same_url in grouped.values():
            paper, is_new = self._upsert(same_url[-1])
            created += int(is_new)
            for payload in same_url:
                mapping.record(paper, endpoint_id(payload.get("id")))

        logger.info(f"📚 Resolved {len(grouped)} papers ({created} new, {len(payloads)} payloads)")
        return mapping
