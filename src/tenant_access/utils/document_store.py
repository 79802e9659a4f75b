"""
Document stores - the key/document collaborator behind roles, permissions and tenants.

Documents are plain dicts addressed by (collection, doc_id). Collections are
slash-separated paths; tenant-scoped data lives under ``tenants/{tenant_id}/...``.

Two implementations are provided:
- InMemoryDocumentStore: process-local, used by tests and single-node setups
- PostgresDocumentStore: one JSONB table keyed by (collection, doc_id)
"""

from __future__ import annotations

import copy
import re
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

import psycopg2
import psycopg2.extras
from psycopg2.extras import RealDictCursor

from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)


class Collections:
    """Namespace for collection paths used by the subsystem."""

    STANDARD_PERMISSIONS = "standard_permissions"
    STANDARD_ROLES = "standard_roles"
    INTERNAL_ROLES = "internal_roles"
    TENANTS = "tenants"

    @staticmethod
    def tenant_permissions(tenant_id: str) -> str:
        return f"tenants/{tenant_id}/permissions"

    @staticmethod
    def tenant_roles(tenant_id: str) -> str:
        return f"tenants/{tenant_id}/roles"


class DocumentStoreError(Exception):
    """Raised when the backing store cannot complete a read or write."""
    pass


class DocumentStore:
    """
    Interface for document storage.

    Returned documents always include their identifier under the ``id`` key and
    are copies; mutating them never changes stored state.
    """

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list(self, collection: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> Dict[str, Any]:
        raise NotImplementedError

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        """Return the first document whose ``field`` equals ``value``."""
        for doc in self.list(collection):
            if doc.get(field) == value:
                return doc
        return None


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dict-of-dicts store."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for collection, docs in (initial or {}).items():
            for doc_id, data in docs.items():
                self.set(collection, doc_id, data)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            if data is None:
                return None
            return {**copy.deepcopy(data), 'id': doc_id}

    def list(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            docs = self._collections.get(collection, {})
            return [{**copy.deepcopy(data), 'id': doc_id} for doc_id, data in sorted(docs.items())]

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> Dict[str, Any]:
        if not doc_id:
            raise DocumentStoreError(f"Document id is required for writes to '{collection}'")
        payload = {k: v for k, v in copy.deepcopy(data).items() if k != 'id'}
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if merge and doc_id in docs:
                docs[doc_id].update(payload)
            else:
                docs[doc_id] = payload
            return {**copy.deepcopy(docs[doc_id]), 'id': doc_id}

    def collections(self) -> List[str]:
        with self._lock:
            return sorted(self._collections)


_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PostgresDocumentStore(DocumentStore):
    """
    PostgreSQL-backed document store.

    All collections share one table:
        (collection TEXT, doc_id TEXT, data JSONB, created_at, updated_at)
    with (collection, doc_id) as primary key.

    Example:
        >>> store = PostgresDocumentStore(pg_config={'host': 'localhost', ...})
        >>> store.set('standard_roles', 'ROLE1', {'role_code': 'TENANT_ADMIN'})
        >>> store.list('standard_roles')
    """

    def __init__(self, pg_config: Dict[str, Any], table: str = "access_documents", ensure_table: bool = True):
        if not _TABLE_NAME_RE.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.pg_config = pg_config
        self.table = table
        if ensure_table:
            # Best-effort; a read-only role may not be allowed to create tables
            try:
                self._ensure_table()
            except (psycopg2.Error, DocumentStoreError) as exc:
                logger.debug("Could not ensure documents table: %s", exc)

    def _connect_with_retry(self) -> psycopg2.extensions.connection:
        """Open a raw connection with retry logic for transient failures."""
        last_exc: Exception | None = None
        for attempt in range(1, 4):
            try:
                return psycopg2.connect(**self.pg_config)
            except psycopg2.OperationalError as exc:
                last_exc = exc
                if attempt < 3:
                    wait = attempt * 2
                    logger.warning(
                        "Postgres connection attempt %d/3 failed (%s); retrying in %ds",
                        attempt, exc, wait,
                    )
                    time.sleep(wait)
        raise DocumentStoreError(f"Could not connect to Postgres: {last_exc}") from last_exc

    @contextmanager
    def _connect(self) -> Generator[psycopg2.extensions.connection, None, None]:
        conn = self._connect_with_retry()
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_table(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cursor:
                cursor.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        collection TEXT NOT NULL,
                        doc_id TEXT NOT NULL,
                        data JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
                        updated_at TIMESTAMP NOT NULL DEFAULT NOW(),
                        PRIMARY KEY (collection, doc_id)
                    )
                    """
                )
            conn.commit()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(
                        f"SELECT doc_id, data FROM {self.table} WHERE collection = %s AND doc_id = %s",
                        (collection, doc_id),
                    )
                    row = cursor.fetchone()
        except psycopg2.Error as exc:
            raise DocumentStoreError(f"Failed to read {collection}/{doc_id}: {exc}") from exc

        if not row:
            return None
        return {**(row["data"] or {}), 'id': row["doc_id"]}

    def list(self, collection: str) -> List[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(
                        f"SELECT doc_id, data FROM {self.table} WHERE collection = %s ORDER BY doc_id",
                        (collection,),
                    )
                    rows = cursor.fetchall()
        except psycopg2.Error as exc:
            raise DocumentStoreError(f"Failed to list {collection}: {exc}") from exc

        return [{**(row["data"] or {}), 'id': row["doc_id"]} for row in rows]

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        # JSONB equality, so 1 and "1" stay distinct as in the in-memory store
        try:
            with self._connect() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(
                        f"SELECT doc_id, data FROM {self.table} "
                        f"WHERE collection = %s AND data -> %s = %s::jsonb ORDER BY doc_id LIMIT 1",
                        (collection, field, psycopg2.extras.Json(value)),
                    )
                    row = cursor.fetchone()
        except psycopg2.Error as exc:
            raise DocumentStoreError(f"Failed to query {collection} by {field}: {exc}") from exc

        if not row:
            return None
        return {**(row["data"] or {}), 'id': row["doc_id"]}

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> Dict[str, Any]:
        if not doc_id:
            raise DocumentStoreError(f"Document id is required for writes to '{collection}'")
        payload = {k: v for k, v in data.items() if k != 'id'}
        update_expr = f"{self.table}.data || EXCLUDED.data" if merge else "EXCLUDED.data"
        try:
            with self._connect() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(
                        f"""
                        INSERT INTO {self.table} (collection, doc_id, data)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (collection, doc_id)
                        DO UPDATE SET data = {update_expr}, updated_at = NOW()
                        RETURNING doc_id, data
                        """,
                        (collection, doc_id, psycopg2.extras.Json(payload)),
                    )
                    row = cursor.fetchone()
                conn.commit()
        except psycopg2.Error as exc:
            raise DocumentStoreError(f"Failed to write {collection}/{doc_id}: {exc}") from exc

        stored = row["data"] if row and row.get("data") is not None else payload
        return {**stored, 'id': doc_id}
