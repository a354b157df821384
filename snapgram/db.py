"""
Document storage abstraction for Appwrite, SQLAlchemy and an in-memory test
implementation.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol, Sequence

from appwrite.client import Client
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.databases import Databases
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from snapgram.query import (
    CursorAfter,
    Equal,
    Limit,
    OrderDesc,
    QueryModifier,
    Search,
    apply_queries,
)

METADATA_KEYS = ("$id", "$collectionId", "$createdAt", "$updatedAt")


class DocumentStore(Protocol):
    """Interface for document access within one database."""

    def create_document(
        self, collection_id: str, data: dict, document_id: str | None = None
    ) -> dict:
        ...

    def get_document(self, collection_id: str, document_id: str) -> dict:
        ...

    def update_document(
        self, collection_id: str, document_id: str, data: dict
    ) -> dict:
        ...

    def delete_document(self, collection_id: str, document_id: str) -> None:
        ...

    def list_documents(
        self, collection_id: str, queries: Sequence[QueryModifier] = ()
    ) -> dict:
        ...


class DocumentNotFoundError(LookupError):
    code = 404

    def __init__(self, collection_id: str, document_id: str):
        self.collection_id = collection_id
        self.document_id = document_id
        super().__init__(
            f"Document '{document_id}' not found in collection '{collection_id}'"
        )


class _Clock:
    """Issues strictly increasing ISO-8601 timestamps."""

    def __init__(self):
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def now(self) -> str:
        with self._lock:
            current = datetime.now(timezone.utc)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current.isoformat(timespec="microseconds")


def _strip_metadata(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in METADATA_KEYS}


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._clock = _Clock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()

    def _collection(self, collection_id: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection_id, {})

    def create_document(
        self, collection_id: str, data: dict, document_id: str | None = None
    ) -> dict:
        document_id = document_id or uuid.uuid4().hex
        now = self._clock.now()
        doc = {
            **copy.deepcopy(_strip_metadata(data)),
            "$id": document_id,
            "$collectionId": collection_id,
            "$createdAt": now,
            "$updatedAt": now,
        }
        self._collection(collection_id)[document_id] = doc
        return copy.deepcopy(doc)

    def get_document(self, collection_id: str, document_id: str) -> dict:
        doc = self._collection(collection_id).get(document_id)
        if doc is None:
            raise DocumentNotFoundError(collection_id, document_id)
        return copy.deepcopy(doc)

    def update_document(
        self, collection_id: str, document_id: str, data: dict
    ) -> dict:
        doc = self._collection(collection_id).get(document_id)
        if doc is None:
            raise DocumentNotFoundError(collection_id, document_id)
        doc.update(copy.deepcopy(_strip_metadata(data)))
        doc["$updatedAt"] = self._clock.now()
        return copy.deepcopy(doc)

    def delete_document(self, collection_id: str, document_id: str) -> None:
        if self._collection(collection_id).pop(document_id, None) is None:
            raise DocumentNotFoundError(collection_id, document_id)

    def list_documents(
        self, collection_id: str, queries: Sequence[QueryModifier] = ()
    ) -> dict:
        total, docs = apply_queries(
            self._collection(collection_id).values(), queries
        )
        return {"total": total, "documents": copy.deepcopy(docs)}


def to_appwrite_queries(queries: Sequence[QueryModifier]) -> list[str]:
    translated: list[str] = []
    for query in queries:
        if isinstance(query, Equal):
            translated.append(Query.equal(query.attribute, query.value))
        elif isinstance(query, Search):
            translated.append(Query.search(query.attribute, query.value))
        elif isinstance(query, OrderDesc):
            translated.append(Query.order_desc(query.attribute))
        elif isinstance(query, Limit):
            translated.append(Query.limit(query.value))
        elif isinstance(query, CursorAfter):
            translated.append(Query.cursor_after(query.document_id))
        else:
            raise TypeError(f"Unsupported query modifier: {query!r}")
    return translated


class AppwriteDocumentStore:
    """
    Document store backed by an Appwrite database.
    """

    def __init__(self, client: Client, database_id: str):
        self.database_id = database_id
        self._databases = Databases(client)

    def create_document(
        self, collection_id: str, data: dict, document_id: str | None = None
    ) -> dict:
        return self._databases.create_document(
            self.database_id, collection_id, document_id or ID.unique(), data
        )

    def get_document(self, collection_id: str, document_id: str) -> dict:
        return self._databases.get_document(
            self.database_id, collection_id, document_id
        )

    def update_document(
        self, collection_id: str, document_id: str, data: dict
    ) -> dict:
        return self._databases.update_document(
            self.database_id, collection_id, document_id, data
        )

    def delete_document(self, collection_id: str, document_id: str) -> None:
        self._databases.delete_document(self.database_id, collection_id, document_id)

    def list_documents(
        self, collection_id: str, queries: Sequence[QueryModifier] = ()
    ) -> dict:
        return self._databases.list_documents(
            self.database_id, collection_id, to_appwrite_queries(queries)
        )


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self._clock = _Clock()
        Base.metadata.create_all(self.engine)

    def _get_row(
        self, session: Session, collection_id: str, document_id: str
    ) -> "DocumentRow":
        stmt = select(DocumentRow).where(
            DocumentRow.collection_id == collection_id,
            DocumentRow.document_id == document_id,
        )
        row = session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise DocumentNotFoundError(collection_id, document_id)
        return row

    @staticmethod
    def _to_document(row: "DocumentRow") -> dict:
        return {
            **(row.data or {}),
            "$id": row.document_id,
            "$collectionId": row.collection_id,
            "$createdAt": row.created_at,
            "$updatedAt": row.updated_at,
        }

    def create_document(
        self, collection_id: str, data: dict, document_id: str | None = None
    ) -> dict:
        now = self._clock.now()
        with self.Session() as session:
            row = DocumentRow(
                document_id=document_id or uuid.uuid4().hex,
                collection_id=collection_id,
                data=_strip_metadata(data),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_document(row)

    def get_document(self, collection_id: str, document_id: str) -> dict:
        with self.Session() as session:
            return self._to_document(self._get_row(session, collection_id, document_id))

    def update_document(
        self, collection_id: str, document_id: str, data: dict
    ) -> dict:
        with self.Session() as session:
            row = self._get_row(session, collection_id, document_id)
            # Reassign so the JSON column is flagged as modified.
            row.data = {**(row.data or {}), **_strip_metadata(data)}
            row.updated_at = self._clock.now()
            session.commit()
            session.refresh(row)
            return self._to_document(row)

    def delete_document(self, collection_id: str, document_id: str) -> None:
        with self.Session() as session:
            row = self._get_row(session, collection_id, document_id)
            session.delete(row)
            session.commit()

    def list_documents(
        self, collection_id: str, queries: Sequence[QueryModifier] = ()
    ) -> dict:
        with self.Session() as session:
            rows = (
                session.query(DocumentRow)
                .filter(DocumentRow.collection_id == collection_id)
                .order_by(DocumentRow.seq.asc())
                .all()
            )
            documents = [self._to_document(row) for row in rows]
        total, page = apply_queries(documents, queries)
        return {"total": total, "documents": page}


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection_id", "document_id"),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(String, nullable=False, index=True)
    collection_id = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)

