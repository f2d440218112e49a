# services/graph_merge_service.py
import logging
from typing import Any, Dict, Iterable, Optional

from database.db import SessionLocal
from database.models.analysis_model import Analysis
from database.models.session_model import AnalysisSession
from services.errors import SessionAccessError, SessionNotFoundError
from services.graph_normalizer import edge_endpoints, endpoint_id, normalize_graph

logger = logging.getLogger(__name__)


def merge_graphs(graphs: Iterable[Optional[Dict[str, Any]]]) -> Dict[str, Any]:
    """
    Union of several partial graphs, first occurrence wins.

    Nodes are keyed by id and edges by id; an edge without an id is keyed
    as ``edge-<from>-<to>``. Merging a graph with itself is a no-op, so
    per-paper subgraphs and full-graph copies merge to the same result.
    """
    nodes: Dict[str, Dict[str, Any]] = {}
    edges: Dict[str, Dict[str, Any]] = {}

    for graph in graphs:
        if not graph:
            continue

        for node in graph.get("nodes") or []:
            node_id = endpoint_id(node.get("id")) if isinstance(node, dict) else None
            if node_id and node_id not in nodes:
                nodes[node_id] = node

        for edge in graph.get("edges") or graph.get("links") or []:
            if not isinstance(edge, dict):
                continue
            src, tgt = edge_endpoints(edge)
            if src is None or tgt is None:
                continue
            edge_id = endpoint_id(edge.get("id")) or f"edge-{src}-{tgt}"
            if edge_id not in edges:
                edges[edge_id] = dict(edge, id=edge_id)

    return normalize_graph({"nodes": list(nodes.values()), "edges": list(edges.values())})


def get_session_graph(
    session_id: str,
    user_id: Optional[str] = None,
    session_factory=SessionLocal,
) -> Optional[Dict[str, Any]]:
    """
    Rebuild a session's full graph from its Analysis rows.
    Returns None when the session has no analyses.
    """
    with session_factory() as db:
        if user_id is not None:
            session = db.get(AnalysisSession, session_id)
            if session is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            if session.user_id != user_id:
                raise SessionAccessError("Not authorized to view this session")

        rows = (
            db.query(Analysis.relationship_graph)
            .filter(Analysis.session_id == session_id)
            .order_by(Analysis.created_at, Analysis.id)
            .all()
        )

    if not rows:
        return None

    merged = merge_graphs(row[0] for row in rows)
    logger.info(
        "📥 Loading session %s: %d nodes, %d edges",
        session_id,
        len(merged["nodes"]),
        len(merged["edges"]),
    )
    return merged
