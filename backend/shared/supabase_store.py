"""
Supabase-backed document store.

Documents live in a single table (see migrations/001_documents.sql):

    documents(collection text, doc_id text, data jsonb, version bigint)

Reads go through PostgREST. Commits call the ``commit_documents`` RPC,
which locks the rows that were read, checks their versions and applies all
staged writes in one database transaction. A version mismatch (or a
concurrent insert of a key that was read as absent) is reported with
SQLSTATE 40001 and surfaces as ``TransactionConflictError``.
"""

import asyncio
import logging
import uuid
from typing import Any, Iterable, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from .documents import (
    CommitResult,
    Document,
    StagedWrite,
    Transaction,
    WriteFn,
    T,
    doc_path,
    split_path,
)
from .exceptions import (
    DocumentNotFoundError,
    StaleCredentialError,
    StoreError,
    StorePermissionDeniedError,
    StoreUnavailableError,
    TransactionConflictError,
)

logger = logging.getLogger(__name__)

# PostgreSQL / PostgREST error codes we translate into store error kinds
SERIALIZATION_FAILURE = "40001"
INSUFFICIENT_PRIVILEGE = "42501"
JWT_ERRORS = {"PGRST301", "PGRST302", "PGRST303"}
NO_ROWS = "PGRST116"


def translate_store_error(exc: Exception) -> StoreError:
    """Map a PostgREST or transport exception onto a store error kind."""
    if isinstance(exc, APIError):
        code = exc.code or ""
        if code == SERIALIZATION_FAILURE:
            return TransactionConflictError()
        if code == INSUFFICIENT_PRIVILEGE:
            return StorePermissionDeniedError(exc.message or "Permission denied")
        if code in JWT_ERRORS:
            return StaleCredentialError(exc.message or "JWT rejected by the database")
        if code == NO_ROWS:
            return DocumentNotFoundError(exc.details or exc.message or "")
        return StoreError(exc.message or str(exc), code=code or None)
    if isinstance(exc, httpx.HTTPError):
        return StoreUnavailableError(f"Document store request failed: {exc}")
    return StoreError(str(exc))


class SupabaseDocumentStore:
    """
    Document store with Supabase persistence.

    Implements IDocumentStore on top of one table and one RPC. The client
    may be a service-role client or a user client; with a user client the
    database's row level security applies and expired tokens surface as
    ``StaleCredentialError``.

    The supabase client is synchronous; every request runs in a worker
    thread so the event loop keeps serving and a cancelled caller stops
    waiting at once.
    """

    def __init__(
        self,
        supabase_client: Client,
        table: str = "documents",
        commit_function: str = "commit_documents",
    ):
        self._db = supabase_client
        self._table = table
        self._commit_function = commit_function

    def _read(self, key: str) -> tuple[int, Optional[Document]]:
        collection, doc_id = split_path(key)
        try:
            result = (
                self._db.table(self._table)
                .select("data, version")
                .eq("collection", collection)
                .eq("doc_id", doc_id)
                .execute()
            )
        except (APIError, httpx.HTTPError) as e:
            raise translate_store_error(e) from e

        if not result.data:
            return 0, None
        row = result.data[0]
        return int(row["version"]), row["data"]

    def _commit(self, reads: dict[str, int], writes: list[StagedWrite]) -> Any:
        payload_reads = []
        for key, version in reads.items():
            collection, doc_id = split_path(key)
            payload_reads.append({"collection": collection, "doc_id": doc_id, "version": version})

        payload_writes = []
        for write in writes:
            collection, doc_id = split_path(write.key)
            payload_writes.append({
                "collection": collection,
                "doc_id": doc_id,
                "data": write.data,
                "merge": write.merge,
                "expected_version": reads.get(write.key),
            })

        try:
            return self._db.rpc(self._commit_function, {
                "p_reads": payload_reads,
                "p_writes": payload_writes,
            }).execute()
        except (APIError, httpx.HTTPError) as e:
            raise translate_store_error(e) from e

    async def get(self, key: str) -> Optional[Document]:
        _, data = await asyncio.to_thread(self._read, key)
        return data

    async def append(
        self,
        collection: str,
        data: Document,
        doc_id: Optional[str] = None,
    ) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        key = doc_path(*collection.split("/"), doc_id)
        await asyncio.to_thread(self._commit, {}, [StagedWrite(key=key, data=data)])
        return doc_id

    async def transact(
        self,
        read_keys: Iterable[str],
        write_fn: WriteFn[T],
    ) -> CommitResult[T]:
        observed: dict[str, int] = {}

        async def read(key: str) -> Optional[Document]:
            version, data = await asyncio.to_thread(self._read, key)
            observed[key] = version
            return data

        snapshot: dict[str, Optional[Document]] = {}
        for key in read_keys:
            snapshot[key] = await read(key)

        tx = Transaction(snapshot, read)
        value = await write_fn(tx)

        writes = tx.writes
        if writes:
            await asyncio.to_thread(self._commit, observed, writes)
        else:
            logger.debug("Read-only transaction over %d document(s), nothing to commit", len(observed))

        return CommitResult(value=value, writes=writes)
