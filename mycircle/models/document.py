"""SQLAlchemy ORM model backing the SQL document store."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint

from mycircle.database import Base


class DocumentRecord(Base):
    __tablename__ = "documents"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(255), nullable=False, index=True)
    doc_id = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),)


__all__ = ["DocumentRecord"]
