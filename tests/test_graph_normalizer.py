import pytest

from services.errors import GraphPayloadError
from services.graph_normalizer import edge_endpoints, endpoint_id, normalize_graph


def test_accepts_source_target_and_object_endpoints():
    graph = {
        "nodes": [{"id": "a", "title": "Paper A"}, {"id": "b"}],
        "edges": [
            {"source": "a", "target": "b", "relationship": "builds_on"},
            {"source": {"id": "b"}, "target": {"id": "a"}, "label": "critiques"},
        ],
    }

    result = normalize_graph(graph)

    assert [(e["from"], e["to"]) for e in result["edges"]] == [("a", "b"), ("b", "a")]
    assert all("source" not in e and "target" not in e for e in result["edges"])
    assert result["edges"][1]["relationship"] == "critiques"
    assert result["nodes"][0]["label"] == "Paper A"
    assert result["nodes"][1]["label"] == "b"


def test_fills_edge_defaults():
    result = normalize_graph({"nodes": [], "edges": [{"from": "a", "to": "b"}]})
    edge = result["edges"][0]

    assert edge["id"] == "edge-a-b-0"
    assert edge["relationship"] == "related"
    assert edge["label"] == "related"
    assert edge["strength"] == 1.0
    assert edge["evidence"] == ""
    assert edge["description"] == ""


def test_unknown_relationship_becomes_related_and_strength_is_clamped():
    result = normalize_graph({
        "nodes": [],
        "edges": [{"from": "a", "to": "b", "relationship": "inspired_by", "strength": 7}],
    })
    assert result["edges"][0]["relationship"] == "related"
    assert result["edges"][0]["strength"] == 1.0


def test_drops_edges_without_endpoints():
    result = normalize_graph({"nodes": [], "edges": [{"from": "a"}, {"to": "b"}, {"from": "a", "to": "b"}]})
    assert len(result["edges"]) == 1


def test_links_alias_and_extra_keys_survive():
    result = normalize_graph({"nodes": [], "links": [{"source": "x", "target": "y"}], "originalPapers": ["u1"]})
    assert result["edges"][0]["from"] == "x"
    assert result["originalPapers"] == ["u1"]


def test_node_without_id_uses_url():
    result = normalize_graph({"nodes": [{"url": "https://arxiv.org/abs/1"}], "edges": []})
    assert result["nodes"][0]["id"] == "https://arxiv.org/abs/1"


def test_idempotent_and_pure():
    graph = {
        "nodes": [{"id": "a"}, {"id": "b"}],
        "edges": [{"source": "a", "target": "b", "strength": "0.4"}],
    }
    once = normalize_graph(graph)
    twice = normalize_graph(once)

    assert once == twice
    assert "source" in graph["edges"][0]


@pytest.mark.parametrize("payload", [None, [], {"nodes": []}, {"nodes": "x", "edges": []}, {"nodes": [1], "edges": []}])
def test_malformed_payload_raises(payload):
    with pytest.raises(GraphPayloadError):
        normalize_graph(payload)


def test_endpoint_helpers():
    assert endpoint_id(3) == "3"
    assert endpoint_id(True) is None
    assert endpoint_id({"name": "x"}) is None
    assert endpoint_id("  ") is None
    assert edge_endpoints({"from": None, "source": "s", "to": "t"}) == ("s", "t")


def test_source_target_and_from_to_give_the_same_canonical_form():
    nodes = [{"id": "a"}, {"id": "b"}]
    legacy = normalize_graph({"nodes": nodes, "edges": [{"id": "e", "source": {"id": "a"}, "target": "b", "relationship": "applies"}]})
    canonical = normalize_graph({"nodes": nodes, "edges": [{"id": "e", "from": "a", "to": "b", "relationship": "applies"}]})
    assert legacy == canonical
