import pytest

from services.errors import GraphPayloadError
from services.graph_editing_service import apply_graph_edit

GRAPH = {
    "nodes": [{"id": "a"}, {"id": "b"}, {"id": "c"}],
    "edges": [{"id": "e1", "from": "a", "to": "b", "relationship": "extends"}],
}


def test_add_edge_accepts_source_target():
    result = apply_graph_edit(GRAPH, "add_edge", {"source": "b", "target": "c", "relationship": "applies"})

    assert len(result["edges"]) == 2
    added = result["edges"][1]
    assert (added["from"], added["to"], added["relationship"]) == ("b", "c", "applies")
    assert len(GRAPH["edges"]) == 1


def test_add_edge_skips_duplicate_pair_and_rejects_bad_endpoints():
    assert len(apply_graph_edit(GRAPH, "add_edge", {"from": "a", "to": "b"})["edges"]) == 1

    with pytest.raises(GraphPayloadError):
        apply_graph_edit(GRAPH, "add_edge", {"from": "a", "to": "a"})
    with pytest.raises(GraphPayloadError):
        apply_graph_edit(GRAPH, "add_edge", {"from": "a", "to": "zzz"})


def test_delete_node_drops_incident_edges():
    result = apply_graph_edit(GRAPH, "delete_node", {"id": "b"})
    assert [n["id"] for n in result["nodes"]] == ["a", "c"]
    assert result["edges"] == []


def test_update_edge_keeps_label_in_sync():
    result = apply_graph_edit(GRAPH, "update_edge", {"id": "e1", "updates": {"relationship": "critiques", "from": "c"}})
    edge = result["edges"][0]
    assert edge["relationship"] == "critiques"
    assert edge["label"] == "critiques"
    assert edge["from"] == "a"


def test_delete_edge_by_endpoints():
    result = apply_graph_edit(GRAPH, "delete_edge", {"from": "a", "to": "b"})
    assert result["edges"] == []


def test_add_and_update_node():
    result = apply_graph_edit(GRAPH, "add_node", {"node": {"id": "d", "title": "Paper D"}})
    result = apply_graph_edit(result, "update_node", {"id": "d", "updates": {"label": "D!"}})
    assert result["nodes"][-1]["label"] == "D!"


def test_unknown_action():
    with pytest.raises(GraphPayloadError):
        apply_graph_edit(GRAPH, "explode", {})
