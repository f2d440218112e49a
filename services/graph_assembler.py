# services/graph_assembler.py
import logging
from typing import Any, Dict, List, Optional

import networkx as nx

from services.graph_normalizer import endpoint_id, normalize_relationship

logger = logging.getLogger(__name__)

LABEL_MAX_LENGTH = 50


def _truncate(text: str, max_length: int = LABEL_MAX_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _paper_key(paper: Dict[str, Any]) -> Optional[str]:
    pid = endpoint_id(paper.get("id"))
    if pid:
        return pid
    url = paper.get("url")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


def _relationship_endpoint(rel: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = endpoint_id(rel.get(key))
        if value:
            return value
    return None


def assemble_graph(
    papers: List[Dict[str, Any]],
    relationships: List[Dict[str, Any]],
    original_papers: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Build one ephemeral graph from enriched papers and classified relationships.

    Nodes are deduplicated by paper id (or url when the id is absent).
    A relationship whose endpoint matches no node, or that points a paper at
    itself, is dropped and logged. Output order does not depend on the order
    in which extraction or classification results arrived beyond the input
    list order.
    """
    G = nx.MultiDiGraph()
    alias: Dict[str, str] = {}

    for paper in papers:
        key = _paper_key(paper)
        if not key:
            logger.warning("Skipping paper without id or url: %s", paper.get("title"))
            continue

        if key in alias:
            continue

        url = paper.get("url")
        if isinstance(url, str) and url.strip() and url.strip() in alias:
            # Same paper submitted under a different id
            alias[key] = alias[url.strip()]
            continue

        title = (paper.get("title") or "").strip() or key
        attrs = {k: v for k, v in paper.items() if k not in ("id", "label")}
        attrs["title"] = title
        G.add_node(key, label=_truncate(title), **attrs)

        alias[key] = key
        if isinstance(url, str) and url.strip():
            alias.setdefault(url.strip(), key)

    dropped_unknown = 0
    dropped_self = 0
    for index, rel in enumerate(relationships):
        src = _relationship_endpoint(rel, "fromPaperId", "from", "source")
        tgt = _relationship_endpoint(rel, "toPaperId", "to", "target")
        src_key = alias.get(src) if src else None
        tgt_key = alias.get(tgt) if tgt else None

        if not src_key or not tgt_key:
            logger.warning(f"Dropping relationship #{index} with unknown endpoint: {src} -> {tgt}")
            dropped_unknown += 1
            continue
        if src_key == tgt_key:
            logger.info(f"Dropping self-relationship #{index} on {src_key}")
            dropped_self += 1
            continue

        relationship = normalize_relationship(rel.get("relationship"))
        try:
            strength = float(rel.get("strength", 0.5))
        except (TypeError, ValueError):
            strength = 0.5

        G.add_edge(
            src_key,
            tgt_key,
            relationship=relationship,
            strength=max(0.0, min(1.0, strength)),
            evidence=rel.get("evidence") or "",
            description=rel.get("description") or "",
        )

    nodes = [{"id": node_id, **data} for node_id, data in G.nodes(data=True)]
    edges = []
    for index, (src, tgt, data) in enumerate(G.edges(data=True)):
        edges.append({
            "id": f"edge-{src}-{tgt}-{index}",
            "from": src,
            "to": tgt,
            "label": data["relationship"],
            **data,
        })

    logger.info(
        "🧩 Assembled graph: %d nodes, %d edges (dropped %d unknown, %d self)",
        G.number_of_nodes(),
        G.number_of_edges(),
        dropped_unknown,
        dropped_self,
    )

    graph = {"nodes": nodes, "edges": edges}
    if original_papers is not None:
        graph["originalPapers"] = list(original_papers)
    return graph
