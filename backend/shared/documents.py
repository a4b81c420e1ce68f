"""
Document store abstraction.

All persistent state lives in documents addressed by slash paths such as
``accounts/{id}`` or ``managers/{id}/roster/{dependentId}``. The store
offers three operations:

- ``get(key)``: point read
- ``append(collection, data, doc_id=None)``: history-style write
- ``transact(read_keys, write_fn)``: one optimistic read-modify-write attempt

A transaction reads the requested keys (plus anything ``write_fn`` reads
through ``tx.get``), lets ``write_fn`` stage writes, and commits them only
if none of the documents it read changed in the meantime. Otherwise it
raises ``TransactionConflictError`` and nothing is written. Retrying is the
caller's job (see ``shared.retry``).
"""

import asyncio
import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, Protocol, TypeVar, runtime_checkable

from .exceptions import TransactionConflictError


T = TypeVar("T")

Document = dict[str, Any]


def doc_path(*segments: str) -> str:
    """Build a document key from path segments."""
    if not segments or any(not s or "/" in s for s in segments):
        raise ValueError(f"Invalid document path segments: {segments!r}")
    return "/".join(segments)


def split_path(key: str) -> tuple[str, str]:
    """Split a document key into (collection path, document id)."""
    collection, _, doc_id = key.rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"Invalid document key: {key!r}")
    return collection, doc_id


@dataclass
class StagedWrite:
    """A write staged inside a transaction."""

    key: str
    data: Document
    merge: bool = False


@dataclass
class CommitResult(Generic[T]):
    """Outcome of a committed transaction."""

    value: T
    writes: list[StagedWrite] = field(default_factory=list)
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Transaction:
    """
    Handle passed to a transaction's write function.

    ``snapshot`` contains the prefetched read keys. Further reads go through
    ``get`` so the store can validate them at commit time.
    """

    def __init__(
        self,
        snapshot: dict[str, Optional[Document]],
        reader: Callable[[str], Awaitable[Optional[Document]]],
    ):
        self._snapshot = snapshot
        self._reader = reader
        self._writes: list[StagedWrite] = []

    @property
    def snapshot(self) -> dict[str, Optional[Document]]:
        return self._snapshot

    @property
    def writes(self) -> list[StagedWrite]:
        return list(self._writes)

    async def get(self, key: str) -> Optional[Document]:
        """Read a document consistently with the rest of the transaction."""
        if key not in self._snapshot:
            self._snapshot[key] = await self._reader(key)
        return copy.deepcopy(self._snapshot[key])

    def set(self, key: str, data: Document, merge: bool = False) -> None:
        """Stage a write. With ``merge`` the fields are merged into the existing document."""
        self._writes.append(StagedWrite(key=key, data=copy.deepcopy(data), merge=merge))


WriteFn = Callable[[Transaction], Awaitable[T]]


@runtime_checkable
class IDocumentStore(Protocol):
    """
    Interface for the document store.

    Implementations raise the store error kinds from ``shared.exceptions``
    so callers can distinguish conflicts, permission problems, stale
    credentials and transient outages.
    """

    async def get(self, key: str) -> Optional[Document]:
        """Return the document at ``key`` or None if it does not exist."""
        ...

    async def append(
        self,
        collection: str,
        data: Document,
        doc_id: Optional[str] = None,
    ) -> str:
        """
        Write a new document into ``collection`` and return its id.

        Supplying ``doc_id`` makes the append idempotent, which is what
        callers that retry an append with an unknown outcome need.
        """
        ...

    async def transact(
        self,
        read_keys: Iterable[str],
        write_fn: WriteFn[T],
    ) -> CommitResult[T]:
        """
        Run one optimistic transaction attempt.

        Raises:
            TransactionConflictError: If a document read by the transaction
                changed before commit. Nothing is written.
        """
        ...


class InMemoryDocumentStore:
    """
    Document store kept in process memory.

    For tests and local development. Every document carries a version
    number; commits compare the versions observed during the transaction
    against the current ones under a lock (compare-and-swap). Reads yield to
    the event loop so concurrent transactions interleave the way they would
    against a remote store.
    """

    def __init__(self) -> None:
        self._docs: dict[str, tuple[int, Document]] = {}
        self._lock = asyncio.Lock()

    def _version(self, key: str) -> int:
        entry = self._docs.get(key)
        return entry[0] if entry else 0

    def _apply(self, write: StagedWrite) -> None:
        current = self._docs.get(write.key)
        if write.merge and current is not None:
            data = {**current[1], **write.data}
        else:
            data = write.data
        self._docs[write.key] = (self._version(write.key) + 1, copy.deepcopy(data))

    async def get(self, key: str) -> Optional[Document]:
        await asyncio.sleep(0)
        entry = self._docs.get(key)
        return copy.deepcopy(entry[1]) if entry else None

    async def append(
        self,
        collection: str,
        data: Document,
        doc_id: Optional[str] = None,
    ) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        key = doc_path(*collection.split("/"), doc_id)
        await asyncio.sleep(0)
        async with self._lock:
            self._apply(StagedWrite(key=key, data=data))
        return doc_id

    async def transact(
        self,
        read_keys: Iterable[str],
        write_fn: WriteFn[T],
    ) -> CommitResult[T]:
        observed: dict[str, int] = {}

        async def read(key: str) -> Optional[Document]:
            await asyncio.sleep(0)
            observed[key] = self._version(key)
            entry = self._docs.get(key)
            return copy.deepcopy(entry[1]) if entry else None

        snapshot: dict[str, Optional[Document]] = {}
        for key in read_keys:
            snapshot[key] = await read(key)

        tx = Transaction(snapshot, read)
        value = await write_fn(tx)
        # One more suspension point before commit, like a network round trip.
        await asyncio.sleep(0)

        async with self._lock:
            changed = [key for key, version in observed.items() if self._version(key) != version]
            if changed:
                raise TransactionConflictError(changed)
            writes = tx.writes
            for write in writes:
                self._apply(write)

        return CommitResult(value=value, writes=writes)

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys under a path prefix (diagnostics and tests)."""
        return sorted(key for key in self._docs if key.startswith(prefix))
