import pytest

from database.models.analysis_model import Analysis
from database.models.paper_model import Paper
from database.models.relation_model import PaperRelation
from services.errors import SessionAccessError, SessionNotFoundError
from services.graph_persistence_service import GraphPersistenceService
from services.session_service import SessionService

P1 = {"id": "p1", "url": "u1", "title": "One"}
P2 = {"id": "p2", "url": "u2", "title": "Two"}


@pytest.fixture
def sessions(session_factory):
    return SessionService(session_factory=session_factory)


@pytest.fixture
def persistence(session_factory):
    return GraphPersistenceService(session_factory=session_factory)


def test_create_and_list_sessions(sessions, persistence):
    created = sessions.create_session("user-1")
    assert created["title"] == "New Session"

    persistence.save_graph("user-1", "Saved", [P1, P2], {"nodes": [P1, P2], "edges": []})
    sessions.create_session("user-2", "Not mine")

    listed = sessions.list_user_sessions("user-1")
    assert {s["title"] for s in listed} == {"New Session", "Saved"}
    counts = {s["title"]: s["paperCount"] for s in listed}
    assert counts == {"New Session": 0, "Saved": 2}


def test_get_session_includes_snapshot_and_papers(sessions, persistence):
    saved = persistence.save_graph(
        "user-1", None, [P1, P2], {"nodes": [P1, P2], "edges": [{"from": "p1", "to": "p2", "relationship": "compares"}]}
    )

    data = sessions.get_session(saved.session["id"], "user-1")
    assert data["graphSnapshot"]["nodes"][0]["id"] == "p1"
    assert sorted(p["url"] for p in data["papers"]) == ["u1", "u2"]
    assert [r["relationship"] for r in data["relations"]] == ["compares"]


def test_update_session_checks_owner(sessions):
    created = sessions.create_session("user-1", "Before")

    updated = sessions.update_session(created["id"], "user-1", title="After")
    assert updated["title"] == "After"

    with pytest.raises(SessionAccessError):
        sessions.update_session(created["id"], "user-2", title="Hijacked")
    with pytest.raises(SessionNotFoundError):
        sessions.get_session("missing")


def test_delete_session_keeps_papers_and_relations(sessions, persistence, db):
    saved = persistence.save_graph(
        "user-1", None, [P1, P2], {"nodes": [P1, P2], "edges": [{"from": "p1", "to": "p2"}]}
    )

    assert sessions.delete_session(saved.session["id"], "user-1") is True

    assert db.query(Analysis).count() == 0
    assert db.query(Paper).count() == 2
    assert db.query(PaperRelation).count() == 1


def test_delete_all_sessions_for_user(sessions):
    sessions.create_session("user-1")
    sessions.create_session("user-1")
    sessions.create_session("user-2")

    assert sessions.delete_all_sessions("user-1") == 2
    assert sessions.list_user_sessions("user-1") == []
    assert len(sessions.list_user_sessions("user-2")) == 1
