# services/graph_persistence_service.py
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.db import SessionLocal
from database.models.analysis_model import Analysis
from database.models.paper_model import Paper
from database.models.relation_model import PaperRelation
from database.models.session_model import AnalysisSession
from services.entity_resolver import EntityResolver, IdMapping, payload_url
from services.errors import SessionAccessError, SessionNotFoundError
from services.graph_merge_service import get_session_graph
from services.graph_normalizer import normalize_graph

logger = logging.getLogger(__name__)

SESSION_TITLE_MAX_LENGTH = 60


@dataclass
class PersistenceStats:
    edges_total: int = 0
    attempted: int = 0
    inserted: int = 0
    updated: int = 0
    skipped_duplicate: int = 0
    skipped_unmappable: int = 0
    skipped_self: int = 0
    failed: int = 0
    relations_deleted: int = 0
    references_linked: int = 0


@dataclass
class SaveResult:
    session: Dict[str, Any]
    analyses: List[Dict[str, Any]]
    node_count: int
    edge_count: int
    stats: PersistenceStats = field(default_factory=PersistenceStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": self.session,
            "analyses": self.analyses,
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "stats": asdict(self.stats),
        }


def generate_session_title(papers: List[Dict[str, Any]]) -> str:
    if papers and papers[0].get("title"):
        title = papers[0]["title"]
        if len(title) > SESSION_TITLE_MAX_LENGTH:
            return title[:SESSION_TITLE_MAX_LENGTH] + "..."
        return title
    return f"Analysis of {len(papers)} papers - {datetime.now().strftime('%Y-%m-%d')}"


def _node_paper_payloads(nodes: List[Dict[str, Any]], covered_urls: Set[str]) -> List[Dict[str, Any]]:
    """Paper-shaped nodes that carry a url but have no paper payload of their own."""
    payloads = []
    for node in nodes:
        url = payload_url(node)
        if not url or url in covered_urls:
            continue
        payload = dict(node)
        payload.setdefault("title", node.get("label"))
        payloads.append(payload)
        covered_urls.add(url)
    return payloads


def _remap_graph(graph: Dict[str, Any], node_map: Dict[str, str]) -> Dict[str, Any]:
    nodes = []
    seen = set()
    for node in graph["nodes"]:
        mapped = dict(node, id=node_map.get(node["id"], node["id"]))
        if mapped["id"] in seen:
            continue
        seen.add(mapped["id"])
        nodes.append(mapped)

    edges = [
        dict(
            edge,
            **{
                "from": node_map.get(edge["from"], edge["from"]),
                "to": node_map.get(edge["to"], edge["to"]),
            },
        )
        for edge in graph["edges"]
    ]
    return {"nodes": nodes, "edges": edges}


class GraphPersistenceService:
    """
    Sole writer of Paper, PaperRelation, Analysis and AnalysisSession rows.

    Stages run in a fixed order, each committed before the next starts:
    session -> papers -> analyses -> relations -> reference links.
    There is no transaction across stages; a storage error surfaces to the
    caller and leaves earlier stages written.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    # ------------------------------------------------------------
    # SAVE
    # ------------------------------------------------------------
    def save_graph(
        self,
        user_id: str,
        title: Optional[str],
        papers: List[Dict[str, Any]],
        graph_data: Dict[str, Any],
        original_papers: Optional[List[str]] = None,
        session_id: Optional[str] = None,
        full_graph_analyses: bool = False,
    ) -> SaveResult:
        graph = normalize_graph(graph_data)
        papers = list(papers or [])
        EntityResolver.validate(papers)

        covered = {payload_url(p) for p in papers}
        payloads = papers + _node_paper_payloads(graph["nodes"], covered)
        if original_papers is None:
            original_papers = graph.get("originalPapers") or []

        stats = PersistenceStats(edges_total=len(graph["edges"]))

        with self.session_factory() as db:
            try:
                # 1. Session
                if session_id:
                    session = self._load_owned_session(db, session_id, user_id)
                    if title:
                        session.title = title
                else:
                    session = AnalysisSession(
                        user_id=user_id,
                        title=title or generate_session_title(papers),
                        description=f"Analysis of {len(papers)} papers",
                    )
                    db.add(session)
                session.graph_snapshot = graph
                session.original_papers = list(original_papers)
                db.commit()

                # 2. Papers
                mapping = EntityResolver(db).resolve(payloads)
                db.commit()

                node_map = mapping.node_mapping(graph["nodes"])
                remapped = _remap_graph(graph, node_map)

                # 3. Analyses
                analyses = self._write_analyses(db, session.id, mapping, remapped, full_graph_analyses)
                db.commit()
            except (SessionNotFoundError, SessionAccessError):
                db.rollback()
                raise
            except Exception:
                db.rollback()
                logger.error("❌ Failed to save graph for user=%s", user_id, exc_info=True)
                raise

            # 4. Relations (per-edge failures are skipped)
            pairs = self._write_relations(db, graph["edges"], node_map, stats, replace=False)

            # 5. Knowledge-graph linkage
            self._link_references(db, pairs, stats)

            result = SaveResult(
                session=session.to_dict(),
                analyses=[a.to_dict() for a in analyses],
                node_count=len(graph["nodes"]),
                edge_count=len(graph["edges"]),
                stats=stats,
            )

        logger.info(
            "💾 Saved session %s: %d nodes, %d edges (%d inserted, %d duplicate, %d unmappable)",
            result.session["id"],
            result.node_count,
            result.edge_count,
            stats.inserted,
            stats.skipped_duplicate,
            stats.skipped_unmappable,
        )
        return result

    def save_analysis(
        self,
        user_id: str,
        title: Optional[str],
        papers: List[Dict[str, Any]],
        graph_data: Dict[str, Any],
        original_papers: Optional[List[str]] = None,
    ) -> SaveResult:
        return self.save_graph(user_id, title, papers, graph_data, original_papers=original_papers)

    # ------------------------------------------------------------
    # UPDATE (replace-on-save)
    # ------------------------------------------------------------
    def update_session_graph(
        self,
        session_id: str,
        user_id: str,
        graph_data: Dict[str, Any],
        full_graph_analyses: bool = False,
    ) -> SaveResult:
        """
        Replace a session's relationship set with ``graph_data``.

        Relations whose endpoints are both among the session's existing
        papers are deleted before the new edges are written.
        Papers missing from ``graph_data`` lose their analysis row and stop
        counting toward the session.
        """
        graph = normalize_graph(graph_data)
        stats = PersistenceStats(edges_total=len(graph["edges"]))

        with self.session_factory() as db:
            try:
                session = self._load_owned_session(db, session_id, user_id)

                mapping = IdMapping()
                for analysis in session.analyses:
                    mapping.record(analysis.paper)
                existing_ids = set(mapping.papers)

                new_nodes = [n for n in graph["nodes"] if mapping.paper_id_for_node(n) is None]
                payloads = _node_paper_payloads(new_nodes, set(mapping.by_url))
                if payloads:
                    EntityResolver(db).resolve(payloads, mapping)

                session.graph_snapshot = graph
                session.updated_at = datetime.now(timezone.utc)
                db.commit()

                node_map = mapping.node_mapping(graph["nodes"])
                remapped = _remap_graph(graph, node_map)

                # Papers dropped from the graph lose their analysis row
                in_graph = {mapping.paper_id_for_node(n) for n in graph["nodes"]}
                present = [pid for pid in mapping.papers if pid in in_graph]
                for analysis in list(session.analyses):
                    if analysis.paper_id not in in_graph:
                        session.analyses.remove(analysis)

                analyses = self._write_analyses(
                    db, session.id, mapping, remapped, full_graph_analyses, paper_ids=present
                )
                db.commit()

                if existing_ids:
                    stats.relations_deleted = (
                        db.query(PaperRelation)
                        .filter(
                            PaperRelation.from_paper_id.in_(existing_ids),
                            PaperRelation.to_paper_id.in_(existing_ids),
                        )
                        .delete(synchronize_session=False)
                    )
                    db.commit()
            except (SessionNotFoundError, SessionAccessError):
                db.rollback()
                raise
            except Exception:
                db.rollback()
                logger.error("❌ Failed to update graph for session=%s", session_id, exc_info=True)
                raise

            pairs = self._write_relations(db, graph["edges"], node_map, stats, replace=True)
            self._link_references(db, pairs, stats)

            result = SaveResult(
                session=session.to_dict(),
                analyses=[a.to_dict() for a in analyses],
                node_count=len(graph["nodes"]),
                edge_count=len(graph["edges"]),
                stats=stats,
            )

        logger.info(
            "💾 Updated session %s: %d nodes, %d edges (%d relations replaced)",
            session_id,
            result.node_count,
            result.edge_count,
            stats.relations_deleted,
        )
        return result

    # ------------------------------------------------------------
    # READ
    # ------------------------------------------------------------
    def get_session_graph_data(self, session_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return get_session_graph(session_id, user_id=user_id, session_factory=self.session_factory)

    # ------------------------------------------------------------
    # STAGES
    # ------------------------------------------------------------
    @staticmethod
    def _load_owned_session(db: Session, session_id: str, user_id: str) -> AnalysisSession:
        session = db.get(AnalysisSession, session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if session.user_id != user_id:
            logger.warning(f"User {user_id} attempted to modify session {session_id}")
            raise SessionAccessError("Not authorized to modify this session")
        return session

    @staticmethod
    def _write_analyses(
        db: Session,
        session_id: str,
        mapping: IdMapping,
        graph: Dict[str, Any],
        full_graph: bool,
        paper_ids: Optional[List[str]] = None,
    ) -> List[Analysis]:
        analyses = []
        for paper_id in (mapping.papers if paper_ids is None else paper_ids):
            if full_graph:
                edges = graph["edges"]
            else:
                edges = [e for e in graph["edges"] if e["from"] == paper_id or e["to"] == paper_id]

            relationship_graph = {"nodes": graph["nodes"], "edges": edges}

            analysis = (
                db.query(Analysis)
                .filter(Analysis.session_id == session_id, Analysis.paper_id == paper_id)
                .one_or_none()
            )
            if analysis:
                analysis.relationship_graph = relationship_graph
            else:
                analysis = Analysis(
                    session_id=session_id,
                    paper_id=paper_id,
                    relationship_graph=relationship_graph,
                )
                db.add(analysis)
            analyses.append(analysis)

        db.flush()
        return analyses

    @staticmethod
    def _relation_values(edge: Dict[str, Any]) -> Dict[str, Any]:
        weight = edge.get("weight")
        if not isinstance(weight, int) or isinstance(weight, bool) or weight < 1:
            weight = 1
        return {
            "relationship": edge.get("relationship") or edge.get("label") or "related",
            "description": edge.get("description") or "",
            "evidence": edge.get("evidence") or None,
            "confidence": float(edge.get("strength", 1.0)),
            "weight": weight,
        }

    def _write_relations(
        self,
        db: Session,
        edges: List[Dict[str, Any]],
        node_map: Dict[str, str],
        stats: PersistenceStats,
        replace: bool,
    ) -> List[Tuple[str, str]]:
        """
        Insert one PaperRelation per ordered pair not already stored.
        With ``replace``, an existing row for the pair is overwritten instead.
        Each edge commits on its own so a failure only loses that edge.
        """
        pairs: List[Tuple[str, str]] = []
        seen: Set[Tuple[str, str]] = set()

        for edge in edges:
            from_id = node_map.get(edge["from"])
            to_id = node_map.get(edge["to"])

            if not from_id or not to_id:
                logger.warning(
                    f"⚠️ Skipping unmappable edge {edge['id']}: {edge['from']} -> {edge['to']} "
                    f"(mapped: {from_id} -> {to_id})"
                )
                stats.skipped_unmappable += 1
                continue
            if from_id == to_id:
                stats.skipped_self += 1
                continue

            pair = (from_id, to_id)
            if pair in seen:
                stats.skipped_duplicate += 1
                continue
            seen.add(pair)
            stats.attempted += 1

            try:
                existing = (
                    db.query(PaperRelation)
                    .filter(PaperRelation.from_paper_id == from_id, PaperRelation.to_paper_id == to_id)
                    .one_or_none()
                )
                values = self._relation_values(edge)
                if existing and not replace:
                    stats.skipped_duplicate += 1
                elif existing:
                    for column, value in values.items():
                        setattr(existing, column, value)
                    db.commit()
                    stats.updated += 1
                else:
                    db.add(PaperRelation(from_paper_id=from_id, to_paper_id=to_id, **values))
                    db.commit()
                    stats.inserted += 1
                pairs.append(pair)
            except SQLAlchemyError as e:
                db.rollback()
                stats.failed += 1
                logger.warning(f"⚠️ Failed to write relation {from_id} -> {to_id}: {e}")

        return pairs

    @staticmethod
    def _link_references(db: Session, pairs: List[Tuple[str, str]], stats: PersistenceStats):
        try:
            for from_id, to_id in pairs:
                if from_id == to_id:
                    continue
                source = db.get(Paper, from_id)
                target = db.get(Paper, to_id)
                if source is None or target is None:
                    continue
                if target not in source.references:
                    source.references.append(target)
                    stats.references_linked += 1
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error("❌ Failed to link paper references", exc_info=True)
            raise


graph_persistence_service = GraphPersistenceService()
