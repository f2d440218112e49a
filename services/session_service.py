# services/session_service.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from database.db import SessionLocal
from database.models.analysis_model import Analysis
from database.models.relation_model import PaperRelation
from database.models.session_model import AnalysisSession
from services.errors import SessionAccessError, SessionNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New Session"


class SessionService:
    """
    CRUD for analysis sessions. Deleting a session removes its analyses;
    papers and relations are left in place.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def create_session(self, user_id: str, title: Optional[str] = None, description: Optional[str] = None) -> Dict[str, Any]:
        with self.session_factory() as db:
            session = AnalysisSession(
                user_id=user_id,
                title=title or DEFAULT_SESSION_TITLE,
                description=description,
            )
            db.add(session)
            db.commit()
            db.refresh(session)
            return session.to_dict()

    def list_user_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        with self.session_factory() as db:
            rows = (
                db.query(AnalysisSession, func.count(Analysis.id))
                .outerjoin(Analysis, Analysis.session_id == AnalysisSession.id)
                .filter(AnalysisSession.user_id == user_id)
                .group_by(AnalysisSession.id)
                .order_by(AnalysisSession.updated_at.desc(), AnalysisSession.created_at.desc())
                .all()
            )
            return [dict(session.to_dict(), paperCount=count) for session, count in rows]

    def get_session(self, session_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        with self.session_factory() as db:
            session = self._load(db, session_id, user_id)
            data = session.to_dict(include_snapshot=True)
            data["papers"] = [a.paper.to_dict() for a in session.analyses]

            paper_ids = [p["id"] for p in data["papers"]]
            relations = []
            if paper_ids:
                relations = (
                    db.query(PaperRelation)
                    .filter(PaperRelation.from_paper_id.in_(paper_ids), PaperRelation.to_paper_id.in_(paper_ids))
                    .all()
                )
            data["relations"] = [r.to_dict() for r in relations]
            return data

    def update_session(
        self,
        session_id: str,
        user_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        with self.session_factory() as db:
            session = self._load(db, session_id, user_id)
            if title is not None:
                session.title = title
            if description is not None:
                session.description = description
            db.commit()
            db.refresh(session)
            return session.to_dict()

    def delete_session(self, session_id: str, user_id: str) -> bool:
        with self.session_factory() as db:
            session = self._load(db, session_id, user_id)
            db.delete(session)
            db.commit()
            logger.info(f"🗑️ Deleted session {session_id}")
            return True

    def delete_all_sessions(self, user_id: str) -> int:
        with self.session_factory() as db:
            sessions = db.query(AnalysisSession).filter(AnalysisSession.user_id == user_id).all()
            for session in sessions:
                db.delete(session)
            db.commit()
            logger.info(f"🗑️ Deleted {len(sessions)} sessions for user {user_id}")
            return len(sessions)

    @staticmethod
    def _load(db, session_id: str, user_id: Optional[str]) -> AnalysisSession:
        session = db.get(AnalysisSession, session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if user_id is not None and session.user_id != user_id:
            raise SessionAccessError("Not authorized to access this session")
        return session


session_service = SessionService()
