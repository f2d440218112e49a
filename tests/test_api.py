import pytest
from fastapi.testclient import TestClient

from api.dependencies.services import get_graph_pipeline, get_persistence_service, get_session_service
from api.main import app
from services.errors import GraphBuildError
from services.graph_persistence_service import GraphPersistenceService
from services.session_service import SessionService

HEADERS = {"X-User-Id": "user-1"}
P1 = {"id": "p1", "url": "https://arxiv.org/abs/2301.00001", "title": "Paper One"}
P2 = {"id": "p2", "url": "https://arxiv.org/abs/2301.00002", "title": "Paper Two"}


class FakePipeline:
    def __init__(self, error=None):
        self.error = error

    async def build_graph(self, urls):
        if self.error:
            raise self.error
        return {
            "graph": {"nodes": [dict(P1)], "edges": []},
            "papers": [dict(P1)],
            "originalPapers": urls,
            "statistics": {"totalNodes": 1},
        }


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_persistence_service] = lambda: GraphPersistenceService(session_factory)
    app.dependency_overrides[get_session_service] = lambda: SessionService(session_factory)
    app.dependency_overrides[get_graph_pipeline] = lambda: FakePipeline()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _save(client, edges=None, headers=HEADERS):
    return client.post(
        "/analysis/save-result",
        json={
            "papers": [P1, P2],
            "graphData": {"nodes": [P1, P2], "edges": edges or []},
            "originalPapers": [P1["url"]],
        },
        headers=headers,
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_user_header_is_required(client):
    assert client.get("/sessions").status_code == 401


def test_build_graph(client):
    response = client.post("/graphs/build", json={"urls": [P1["url"]]}, headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["graphData"]["nodes"][0]["id"] == "p1"
    assert body["originalPapers"] == [P1["url"]]


def test_build_graph_with_no_usable_papers(client):
    app.dependency_overrides[get_graph_pipeline] = lambda: FakePipeline(GraphBuildError("No papers could be extracted"))
    response = client.post("/graphs/build", json={"urls": [P1["url"]]}, headers=HEADERS)
    assert response.status_code == 422


def test_save_and_load_session_graph(client):
    response = _save(client, edges=[{"source": "p1", "target": "p2", "relationship": "builds_on", "strength": 0.8}])
    assert response.status_code == 200
    body = response.json()
    assert body["nodeCount"] == 2
    assert body["edgeCount"] == 1
    assert body["stats"]["inserted"] == 1

    graph = client.get(f"/sessions/{body['sessionId']}/graph", headers=HEADERS).json()["graphData"]
    assert len(graph["nodes"]) == 2
    assert graph["edges"][0]["relationship"] == "builds_on"


def test_save_rejects_paper_without_url(client):
    response = client.post(
        "/analysis/save-result",
        json={"papers": [{"id": "x", "title": "No url"}], "graphData": {"nodes": [], "edges": []}},
        headers=HEADERS,
    )
    assert response.status_code == 400


def test_session_crud_and_ownership(client):
    created = client.post("/sessions", json={"title": "Mine"}, headers=HEADERS).json()
    session_id = created["id"]

    listed = client.get("/sessions", headers=HEADERS).json()["sessions"]
    assert [s["id"] for s in listed] == [session_id]

    other = {"X-User-Id": "user-2"}
    assert client.get(f"/sessions/{session_id}", headers=other).status_code == 403
    assert client.get("/sessions/missing", headers=HEADERS).status_code == 404

    updated = client.put(f"/sessions/{session_id}", json={"title": "Renamed"}, headers=HEADERS).json()
    assert updated["title"] == "Renamed"

    assert client.get(f"/sessions/{session_id}/graph", headers=HEADERS).status_code == 404
    assert client.delete(f"/sessions/{session_id}", headers=HEADERS).json() == {"success": True}
    assert client.get(f"/sessions/{session_id}", headers=HEADERS).status_code == 404


def test_update_and_edit_session_graph(client):
    session_id = _save(client, edges=[{"from": "p1", "to": "p2", "relationship": "builds_on"}]).json()["sessionId"]
    graph = client.get(f"/sessions/{session_id}/graph", headers=HEADERS).json()["graphData"]
    ids = {n["url"]: n["id"] for n in graph["nodes"]}

    response = client.put(
        f"/sessions/{session_id}/update-graph",
        json={"graphData": {"nodes": graph["nodes"], "edges": [
            {"from": ids[P2["url"]], "to": ids[P1["url"]], "relationship": "critiques"},
        ]}},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["stats"]["relations_deleted"] == 1

    edited = client.post(
        f"/sessions/{session_id}/edit-graph",
        json={"action": "delete_edge", "payload": {"from": ids[P2["url"]], "to": ids[P1["url"]]}},
        headers=HEADERS,
    )
    assert edited.status_code == 200
    assert edited.json()["edgeCount"] == 0

    forbidden = client.put(
        f"/sessions/{session_id}/update-graph",
        json={"graphData": {"nodes": [], "edges": []}},
        headers={"X-User-Id": "user-2"},
    )
    assert forbidden.status_code == 403


def test_edit_graph_rejects_unknown_action(client):
    session_id = _save(client).json()["sessionId"]
    response = client.post(
        f"/sessions/{session_id}/edit-graph",
        json={"action": "explode", "payload": {}},
        headers=HEADERS,
    )
    assert response.status_code == 400


def test_update_graph_without_nodes_or_edges_is_rejected(client):
    session_id = _save(client, edges=[{"from": "p1", "to": "p2", "relationship": "builds_on"}]).json()["sessionId"]

    for body in ({"graphData": {}}, {"graphData": {"nodes": []}}):
        response = client.put(f"/sessions/{session_id}/update-graph", json=body, headers=HEADERS)
        assert response.status_code == 422

    graph = client.get(f"/sessions/{session_id}/graph", headers=HEADERS).json()["graphData"]
    assert len(graph["edges"]) == 1


def test_save_result_without_graph_content_is_rejected(client):
    response = client.post("/analysis/save-result", json={"papers": [P1], "graphData": {}}, headers=HEADERS)
    assert response.status_code == 422
    assert client.get("/sessions", headers=HEADERS).json()["sessions"] == []


def test_save_result_accepts_links_and_numeric_ids(client):
    response = client.post(
        "/analysis/save-result",
        json={
            "papers": [dict(P1, id=1), dict(P2, id=2)],
            "graphData": {
                "nodes": [dict(P1, id=1), dict(P2, id=2)],
                "links": [{"id": 7, "source": 1, "target": 2, "relationship": "extends"}],
            },
        },
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["nodeCount"] == 2
    assert response.json()["edgeCount"] == 1
    assert response.json()["stats"]["inserted"] == 1
