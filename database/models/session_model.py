# database/models/session_model.py
import uuid
from sqlalchemy import Column, String, Text, JSON, DateTime, func
from sqlalchemy.orm import relationship
from database.db import Base


class AnalysisSession(Base):
    __tablename__ = "analysis_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)

    title = Column(String(255), nullable=False, default="New Session")
    description = Column(Text, nullable=True)

    # Denormalized cache for instant reload, overwritten on every save
    graph_snapshot = Column(JSON, nullable=True)
    original_papers = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    analyses = relationship(
        "Analysis",
        back_populates="session",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_snapshot: bool = False) -> dict:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "originalPapers": list(self.original_papers or []),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_snapshot:
            data["graphSnapshot"] = self.graph_snapshot
        return data
