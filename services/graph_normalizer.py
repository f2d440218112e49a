# services/graph_normalizer.py
import copy
import logging
import uuid
from typing import Any, Dict, List, Optional

from services.errors import GraphPayloadError

logger = logging.getLogger(__name__)

RELATIONSHIP_TYPES = (
    "builds_on",
    "extends",
    "applies",
    "compares",
    "critiques",
    "references",
    "related",
)
DEFAULT_RELATIONSHIP = "related"

# Keys that carry endpoints in non-canonical edge shapes
_LEGACY_ENDPOINT_KEYS = ("source", "target")


def endpoint_id(value: Any) -> Optional[str]:
    """
    Resolve an edge endpoint to a string id.

    Endpoints arrive either as a plain id or as a node object
    (force-layout libraries replace ids with the node they point to).
    """
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("id")
        if value is None:
            return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    return None


def edge_endpoints(edge: Dict[str, Any]):
    """Return (from, to) for an edge in either `from/to` or `source/target` shape."""
    src = endpoint_id(edge.get("from"))
    if src is None:
        src = endpoint_id(edge.get("source"))
    tgt = endpoint_id(edge.get("to"))
    if tgt is None:
        tgt = endpoint_id(edge.get("target"))
    return src, tgt


def normalize_relationship(value: Any) -> str:
    if isinstance(value, str):
        rel = value.strip().lower().replace(" ", "_").replace("-", "_")
        if rel in RELATIONSHIP_TYPES:
            return rel
    return DEFAULT_RELATIONSHIP


def synthetic_node_id(node: Dict[str, Any]) -> str:
    url = node.get("url")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return f"node-{uuid.uuid4().hex[:12]}"


def _normalize_node(raw: Dict[str, Any]) -> Dict[str, Any]:
    node = copy.deepcopy(raw)
    node_id = endpoint_id(node.get("id"))
    if node_id is None:
        node_id = synthetic_node_id(node)
    node["id"] = node_id

    label = node.get("label")
    if not isinstance(label, str) or not label.strip():
        title = node.get("title")
        label = title.strip() if isinstance(title, str) and title.strip() else node_id
    node["label"] = label
    return node


def _normalize_edge(raw: Dict[str, Any], index: int) -> Optional[Dict[str, Any]]:
    src, tgt = edge_endpoints(raw)
    if src is None or tgt is None:
        logger.warning(f"Dropping edge #{index} without resolvable endpoints: {raw.get('id')}")
        return None

    edge = copy.deepcopy(raw)
    for key in _LEGACY_ENDPOINT_KEYS:
        edge.pop(key, None)

    edge_id = endpoint_id(edge.get("id"))
    edge["id"] = edge_id or f"edge-{src}-{tgt}-{index}"
    edge["from"] = src
    edge["to"] = tgt

    relationship = edge.get("relationship")
    label = edge.get("label")
    if not relationship:
        relationship = label
    edge["relationship"] = normalize_relationship(relationship)
    if not isinstance(label, str) or not label.strip():
        edge["label"] = edge["relationship"]

    try:
        strength = float(edge.get("strength", 1.0))
    except (TypeError, ValueError):
        strength = 1.0
    edge["strength"] = max(0.0, min(1.0, strength))
    edge["evidence"] = edge.get("evidence") or ""
    edge["description"] = edge.get("description") or ""
    return edge


def normalize_graph(graph: Any) -> Dict[str, Any]:
    """
    Convert a graph payload into the canonical shape:

        {"nodes": [{"id", "label", ...}],
         "edges": [{"id", "from", "to", "label", "relationship",
                    "strength", "evidence", "description", ...}]}

    Pure and idempotent; the input is never mutated. Any extra top-level
    keys (e.g. ``originalPapers``) are carried over.

    Raises:
        GraphPayloadError: if ``nodes`` or ``edges`` is missing or not a list.
    """
    if not isinstance(graph, dict):
        raise GraphPayloadError("Graph payload must be an object with nodes and edges")

    nodes = graph.get("nodes")
    edges = graph.get("edges")
    if edges is None and isinstance(graph.get("links"), list):
        edges = graph["links"]
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise GraphPayloadError("Graph payload must contain 'nodes' and 'edges' arrays")

    normalized_nodes: List[Dict[str, Any]] = []
    for raw in nodes:
        if not isinstance(raw, dict):
            raise GraphPayloadError("Every graph node must be an object")
        normalized_nodes.append(_normalize_node(raw))

    normalized_edges: List[Dict[str, Any]] = []
    for index, raw in enumerate(edges):
        if not isinstance(raw, dict):
            raise GraphPayloadError("Every graph edge must be an object")
        edge = _normalize_edge(raw, index)
        if edge is not None:
            normalized_edges.append(edge)

    result = {
        key: copy.deepcopy(value)
        for key, value in graph.items()
        if key not in ("nodes", "edges", "links")
    }
    result["nodes"] = normalized_nodes
    result["edges"] = normalized_edges
    return result
