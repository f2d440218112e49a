# database/models/relation_model.py
import uuid
from sqlalchemy import Column, String, Text, Float, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy import orm
from database.db import Base


class PaperRelation(Base):
    """
    Directed semantic link between two papers.
    At most one row per ordered (from, to) pair.
    """
    __tablename__ = "paper_relations"
    __table_args__ = (
        UniqueConstraint("from_paper_id", "to_paper_id", name="uq_relation_pair"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    from_paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)
    to_paper_id = Column(String(36), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)

    relationship = Column(String(64), nullable=False, default="related")
    description = Column(Text, nullable=False, default="")
    evidence = Column(Text, nullable=True)
    confidence = Column(Float, nullable=False, default=1.0)
    weight = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    from_paper = orm.relationship("Paper", foreign_keys=[from_paper_id])
    to_paper = orm.relationship("Paper", foreign_keys=[to_paper_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from": self.from_paper_id,
            "to": self.to_paper_id,
            "relationship": self.relationship,
            "description": self.description,
            "evidence": self.evidence,
            "confidence": self.confidence,
            "weight": self.weight,
        }
