import copy
import logging
from typing import Dict, Any

from services.errors import GraphPayloadError
from services.graph_normalizer import normalize_graph

logger = logging.getLogger(__name__)

EDIT_ACTIONS = ("add_node", "update_node", "delete_node", "add_edge", "update_edge", "delete_edge")


def apply_graph_edit(graph_data: Dict[str, Any], action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply a manual edit to a canonical graph (nodes/edges).
    Returns a new normalized graph; the input is left untouched.
    """
    if action not in EDIT_ACTIONS:
        raise GraphPayloadError(f"Unknown edit action: {action}")

    graph = normalize_graph(copy.deepcopy(graph_data))
    nodes = graph["nodes"]
    edges = graph["edges"]

    # helper to find index
    def find_node_idx(nid):
        return next((i for i, n in enumerate(nodes) if n["id"] == nid), -1)

    def find_edge_idx(eid):
        return next((i for i, e in enumerate(edges) if e["id"] == eid), -1)

    if action == "add_node":
        new_node = payload.get("node")
        if not new_node or not new_node.get("id"):
            raise GraphPayloadError("add_node requires a node with an id")
        if find_node_idx(new_node["id"]) == -1:
            nodes.append(new_node)

    elif action == "update_node":
        # payload: { "id": "...", "updates": { ... } }
        idx = find_node_idx(payload.get("id"))
        if idx != -1:
            updates = {k: v for k, v in (payload.get("updates") or {}).items() if k != "id"}
            nodes[idx].update(updates)

    elif action == "delete_node":
        nid = payload.get("id")
        nodes = [n for n in nodes if n["id"] != nid]
        # Remove connected edges
        edges = [e for e in edges if e["from"] != nid and e["to"] != nid]

    elif action == "add_edge":
        # payload: { "from": "...", "to": "...", "relationship": "..." } (source/target accepted)
        edge = normalize_graph({"nodes": [], "edges": [payload]})["edges"]
        if not edge:
            raise GraphPayloadError("add_edge requires both endpoints")
        edge = edge[0]
        if edge["from"] == edge["to"]:
            raise GraphPayloadError("A paper cannot relate to itself")
        if find_node_idx(edge["from"]) == -1 or find_node_idx(edge["to"]) == -1:
            raise GraphPayloadError("add_edge endpoints must be existing nodes")
        exists = any(e["from"] == edge["from"] and e["to"] == edge["to"] for e in edges)
        if not exists:
            if not payload.get("id"):
                edge["id"] = f"edge-{edge['from']}-{edge['to']}-{len(edges)}"
            edges.append(edge)

    elif action == "update_edge":
        idx = find_edge_idx(payload.get("id"))
        if idx != -1:
            updates = {
                k: v for k, v in (payload.get("updates") or {}).items()
                if k not in ("id", "from", "to", "source", "target")
            }
            edges[idx].update(updates)
            if "relationship" in updates and "label" not in updates:
                edges[idx]["label"] = updates["relationship"]

    elif action == "delete_edge":
        eid = payload.get("id")
        if eid:
            edges = [e for e in edges if e["id"] != eid]
        else:
            src = payload.get("from") or payload.get("source")
            tgt = payload.get("to") or payload.get("target")
            edges = [e for e in edges if not (e["from"] == src and e["to"] == tgt)]

    logger.info(f"✏️ Applied graph edit '{action}'")
    graph["nodes"] = nodes
    graph["edges"] = edges
    return normalize_graph(graph)
