"""Document store persisted through SQLAlchemy.

Documents live in a single ``documents`` table as JSON blobs. Change
notifications are fanned out in-process after each commit; delivery to other
processes is the job of the external change feed.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import AlreadyExistsError, TransientStoreError
from ..models import DocumentRecord
from .base import BaseDocumentStore, Snapshot

logger = logging.getLogger(__name__)

_DATE_KEY = "$date"


def encode_value(value: Any) -> Any:
    """Make ``value`` JSON-serialisable, tagging datetimes so they round-trip."""

    if isinstance(value, datetime):
        return {_DATE_KEY: _aware(value).isoformat()}
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and _DATE_KEY in value:
            return datetime.fromisoformat(value[_DATE_KEY])
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _to_snapshot(record: DocumentRecord) -> Snapshot:
    return Snapshot(
        collection=record.collection,
        id=record.doc_id,
        data=decode_value(record.data or {}),
        seq=record.seq,
        version=record.version,
        create_time=_aware(record.created_at),
        update_time=_aware(record.updated_at),
    )


class SqlDocumentStore(BaseDocumentStore):
    """Document store on top of a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        if session_factory is None:
            from ..database import create_session

            session_factory = create_session
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Document store transaction failed; rolled back")
            raise TransientStoreError("Document store unavailable") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _record(self, session: Session, collection: str, doc_id: str) -> DocumentRecord | None:
        stmt = select(DocumentRecord).where(
            DocumentRecord.collection == collection,
            DocumentRecord.doc_id == doc_id,
        )
        return session.scalars(stmt).first()

    def _read(self, tx: Session, collection: str, doc_id: str) -> Snapshot | None:
        record = self._record(tx, collection, doc_id)
        return _to_snapshot(record) if record is not None else None

    def _read_all(self, tx: Session, collection: str) -> list[Snapshot]:
        stmt = select(DocumentRecord).where(DocumentRecord.collection == collection).order_by(DocumentRecord.seq.asc())
        return [_to_snapshot(record) for record in tx.scalars(stmt)]

    def _insert(self, tx: Session, collection: str, doc_id: str, data: dict[str, Any], now: datetime) -> Snapshot:
        record = DocumentRecord(
            collection=collection,
            doc_id=doc_id,
            version=1,
            data=encode_value(data),
            created_at=now,
            updated_at=now,
        )
        tx.add(record)
        try:
            tx.flush()
        except IntegrityError as exc:
            raise AlreadyExistsError(f"{collection}/{doc_id} already exists") from exc
        return _to_snapshot(record)

    def _replace(self, tx: Session, current: Snapshot, data: dict[str, Any], now: datetime) -> Snapshot:
        record = self._record(tx, current.collection, current.id)
        if record is None:
            return self._insert(tx, current.collection, current.id, data, now)
        record.data = encode_value(data)
        record.version = current.version + 1
        record.updated_at = now
        tx.flush()
        return _to_snapshot(record)

    def _remove(self, tx: Session, collection: str, doc_id: str) -> bool:
        stmt = delete(DocumentRecord).where(DocumentRecord.collection == collection, DocumentRecord.doc_id == doc_id)
        return tx.execute(stmt).rowcount > 0


__all__ = ["SqlDocumentStore", "encode_value", "decode_value"]
