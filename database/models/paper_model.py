# database/models/paper_model.py
import uuid
from sqlalchemy import Column, String, Text, JSON, DateTime, ForeignKey, Table, func
from sqlalchemy.orm import relationship
from database.db import Base


# Knowledge-graph layer: paper -> papers it references
paper_references = Table(
    "paper_references",
    Base.metadata,
    Column("paper_id", String(36), ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True),
    Column("reference_id", String(36), ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True),
)


class Paper(Base):
    __tablename__ = "papers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Natural key
    url = Column(String(1024), unique=True, index=True, nullable=False)

    # Core metadata
    title = Column(String(512), nullable=False)
    authors = Column(JSON, default=list)
    abstract = Column(Text, nullable=False, default="")
    introduction = Column(Text, nullable=True)
    full_text = Column(Text, nullable=True)

    doi = Column(String(255), nullable=True)
    arxiv_id = Column(String(255), nullable=True)
    published_date = Column(String(64), nullable=True)
    tags = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    references = relationship(
        "Paper",
        secondary=paper_references,
        primaryjoin=id == paper_references.c.paper_id,
        secondaryjoin=id == paper_references.c.reference_id,
        back_populates="cited_by",
    )
    cited_by = relationship(
        "Paper",
        secondary=paper_references,
        primaryjoin=id == paper_references.c.reference_id,
        secondaryjoin=id == paper_references.c.paper_id,
        back_populates="references",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "authors": list(self.authors or []),
            "abstract": self.abstract or "",
            "introduction": self.introduction,
            "fullText": self.full_text,
            "doi": self.doi,
            "arxivId": self.arxiv_id,
            "publishedDate": self.published_date,
            "tags": list(self.tags or []),
        }
