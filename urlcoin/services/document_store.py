"""Document store service.

Provides the realtime document database the game runs on: per-document
read, replace, merge-update (optionally conditional on a version) and
change subscriptions, plus equality queries and collection scans. Documents
live in the ``documents`` table as JSON.
"""
import copy
import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from urlcoin.core.database import SessionLocal, kst_now
from urlcoin.models.document import Document

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class DocumentNotFoundError(LookupError):
    """Raised when a write targets a document that does not exist."""


class WriteConflictError(RuntimeError):
    """Raised when a conditional write loses against a concurrent writer."""


@dataclass
class DocumentSnapshot:
    """Point-in-time copy of a document and the version it was read at."""
    doc_id: str
    data: Dict[str, Any]
    version: int


class DocumentStore:
    """Document store backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        """Initialize the store.

        Args:
            session_factory: Callable returning a new SQLAlchemy session
        """
        self._session_factory = session_factory
        self._listeners: Dict[Tuple[str, str], List[Listener]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _find(db: Session, collection: str, doc_id: str) -> Optional[Document]:
        return db.query(Document).filter(
            Document.collection == collection,
            Document.doc_id == doc_id
        ).first()

    @staticmethod
    def _snapshot(row: Document) -> DocumentSnapshot:
        return DocumentSnapshot(doc_id=row.doc_id, data=copy.deepcopy(row.data or {}), version=row.version)

    def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        """Read a document together with its version.

        Returns:
            DocumentSnapshot, or None if the document does not exist
        """
        db = self._session_factory()
        try:
            row = self._find(db, collection, doc_id)
            return self._snapshot(row) if row is not None else None
        finally:
            db.close()

    def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a document's full field set, or None if it does not exist."""
        snapshot = self.get(collection, doc_id)
        return snapshot.data if snapshot is not None else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> int:
        """Replace a document entirely, creating it if missing.

        Returns:
            The new document version
        """
        payload = copy.deepcopy(dict(data))
        db = self._session_factory()
        try:
            row = self._find(db, collection, doc_id)
            if row is None:
                row = Document(collection=collection, doc_id=doc_id, data=payload, version=1)
                db.add(row)
                try:
                    db.commit()
                    version = 1
                except IntegrityError:
                    # Created concurrently; fall through to a replace
                    db.rollback()
                    row = self._find(db, collection, doc_id)
                    row.data = payload
                    row.version = row.version + 1
                    db.commit()
                    version = row.version
            else:
                row.data = payload
                row.version = row.version + 1
                db.commit()
                version = row.version
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        self._notify(collection, doc_id, payload)
        return version

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> int:
        """Merge fields into an existing document.

        Without ``expected_version`` the write overwrites whatever is stored
        (last writer wins). With it, the write only applies if the document
        is still at that version.

        Args:
            collection: Collection name
            doc_id: Document key
            fields: Top-level fields to overwrite
            expected_version: Version the caller read, for a conditional write

        Returns:
            The new document version

        Raises:
            DocumentNotFoundError: If the document does not exist
            WriteConflictError: If the document moved past expected_version
        """
        db = self._session_factory()
        try:
            row = self._find(db, collection, doc_id)
            if row is None:
                raise DocumentNotFoundError(f"{collection}/{doc_id} does not exist")
            if expected_version is not None and row.version != expected_version:
                raise WriteConflictError(
                    f"{collection}/{doc_id} is at version {row.version}, expected {expected_version}"
                )

            merged = copy.deepcopy(row.data or {})
            merged.update(copy.deepcopy(fields))
            current_version = row.version

            conditions = [Document.id == row.id]
            if expected_version is not None:
                conditions.append(Document.version == expected_version)

            result = db.execute(
                sql_update(Document)
                .where(*conditions)
                .values(data=merged, version=Document.version + 1, updated_at=kst_now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise WriteConflictError(f"{collection}/{doc_id} was modified concurrently")
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        self._notify(collection, doc_id, merged)
        return current_version + 1

    def query_equals(self, collection: str, field: str, value: Any) -> List[DocumentSnapshot]:
        """Find documents whose top-level field equals a value."""
        element = Document.data[field]
        if isinstance(value, bool):
            clause = element.as_boolean() == value
        elif isinstance(value, int):
            clause = element.as_integer() == value
        elif isinstance(value, float):
            clause = element.as_float() == value
        else:
            clause = element.as_string() == str(value)

        db = self._session_factory()
        try:
            rows = db.query(Document).filter(
                Document.collection == collection,
                clause
            ).order_by(Document.id).all()
            return [self._snapshot(row) for row in rows]
        finally:
            db.close()

    def list_all(self, collection: str) -> List[DocumentSnapshot]:
        """Return every document in a collection."""
        db = self._session_factory()
        try:
            rows = db.query(Document).filter(
                Document.collection == collection
            ).order_by(Document.id).all()
            return [self._snapshot(row) for row in rows]
        finally:
            db.close()

    def subscribe(self, collection: str, doc_id: str, callback: Listener) -> Callable[[], None]:
        """Listen to a document.

        The callback receives the current field set right away (if the
        document exists) and the full field set after every write.

        Returns:
            Function that removes the subscription
        """
        key = (collection, doc_id)
        with self._lock:
            self._listeners.setdefault(key, []).append(callback)

        current = self.read(collection, doc_id)
        if current is not None:
            self._dispatch(callback, current)

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(key, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def _notify(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners.get((collection, doc_id), []))
        for callback in listeners:
            self._dispatch(callback, copy.deepcopy(data))

    @staticmethod
    def _dispatch(callback: Listener, data: Dict[str, Any]) -> None:
        try:
            callback(data)
        except Exception:
            logger.exception("Document listener failed")


@lru_cache()
def get_document_store() -> DocumentStore:
    """Get the process-wide document store."""
    return DocumentStore(SessionLocal)
