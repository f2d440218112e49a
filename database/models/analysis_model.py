# database/models/analysis_model.py
import uuid
from sqlalchemy import Column, String, Text, JSON, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database.db import Base


class Analysis(Base):
    """
    One paper's view of a session's relationship subgraph.
    """
    __tablename__ = "analyses"
    __table_args__ = (
        UniqueConstraint("session_id", "paper_id", name="uq_analysis_session_paper"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    session_id = Column(String(36), ForeignKey("analysis_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)

    notes = Column(Text, nullable=True)
    relationship_graph = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    session = relationship("AnalysisSession", back_populates="analyses")
    paper = relationship("Paper")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "paperId": self.paper_id,
            "notes": self.notes,
            "relationshipGraph": self.relationship_graph,
        }
