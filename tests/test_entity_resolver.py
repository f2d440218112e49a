import pytest

from database.models.paper_model import Paper
from services.entity_resolver import EntityResolver, IdMapping
from services.errors import GraphPayloadError


def test_creates_then_overwrites_by_url(db):
    resolver = EntityResolver(db)
    first = resolver.upsert_paper({"url": "u1", "title": "Old title", "authors": ["A"], "tags": ["x"]})
    db.commit()

    second = resolver.upsert_paper({"url": "u1", "title": "New title"})
    db.commit()

    assert first.id == second.id
    assert db.query(Paper).count() == 1
    paper = db.query(Paper).one()
    assert paper.title == "New title"
    # last write wins, fields absent from the payload are cleared
    assert paper.authors == []
    assert paper.tags == []


def test_resolve_maps_every_original_id_for_one_url(db):
    mapping = EntityResolver(db).resolve([
        {"id": "tmp-1", "url": "u1", "title": "First"},
        {"id": "tmp-2", "url": "u2", "title": "Second"},
        {"id": "tmp-3", "url": "u1", "title": "First, revised"},
    ])
    db.commit()

    assert db.query(Paper).count() == 2
    assert mapping.by_original_id["tmp-1"] == mapping.by_original_id["tmp-3"]
    assert mapping.by_url["u1"] == mapping.by_original_id["tmp-1"]
    assert db.query(Paper).filter(Paper.url == "u1").one().title == "First, revised"
    assert list(mapping.papers) == [mapping.by_url["u1"], mapping.by_url["u2"]]


def test_missing_url_is_rejected_before_any_write(db):
    with pytest.raises(GraphPayloadError):
        EntityResolver(db).resolve([{"id": "a", "url": "u1", "title": "ok"}, {"id": "b", "title": "no url"}])
    assert db.query(Paper).count() == 0


def test_node_lookup_prefers_url():
    mapping = IdMapping()
    paper = Paper(id="durable-1", url="u1", title="T")
    mapping.record(paper, "tmp")

    assert mapping.paper_id_for_node({"id": "anything", "url": "u1"}) == "durable-1"
    assert mapping.paper_id_for_node({"id": "tmp"}) == "durable-1"
    assert mapping.paper_id_for_node({"id": "durable-1"}) == "durable-1"
    assert mapping.paper_id_for_node({"id": "unknown"}) is None
    assert mapping.node_mapping([{"id": "n1", "url": "u1"}]) == {"n1": "durable-1", "durable-1": "durable-1"}
