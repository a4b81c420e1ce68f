"""Tests for shared/supabase_store.py."""

import asyncio
import threading

import httpx
import pytest
from unittest.mock import MagicMock
from postgrest.exceptions import APIError

from shared.documents import Transaction
from shared.exceptions import (
    DocumentNotFoundError,
    StaleCredentialError,
    StoreError,
    StorePermissionDeniedError,
    StoreUnavailableError,
    TransactionConflictError,
)
from shared.supabase_store import SupabaseDocumentStore, translate_store_error


def api_error(code: str, message: str = "boom") -> APIError:
    return APIError({"message": message, "code": code, "details": None, "hint": None})


def mock_client(rows_by_key: dict | None = None) -> MagicMock:
    """Supabase client whose table reads return the given rows for every key."""
    client = MagicMock()
    rows = rows_by_key or {}

    def select_chain(*_args, **_kwargs):
        chain = MagicMock()
        filters = {}

        def eq(column, value):
            filters[column] = value
            return chain

        def execute():
            key = f"{filters['collection']}/{filters['doc_id']}"
            result = MagicMock()
            result.data = [rows[key]] if key in rows else []
            return result

        chain.eq.side_effect = eq
        chain.execute.side_effect = execute
        return chain

    client.table.return_value.select.side_effect = select_chain
    return client


class TestTranslateStoreError:
    @pytest.mark.parametrize("code, kind", [
        ("40001", TransactionConflictError),
        ("42501", StorePermissionDeniedError),
        ("PGRST301", StaleCredentialError),
        ("PGRST303", StaleCredentialError),
        ("PGRST116", DocumentNotFoundError),
    ])
    def test_maps_codes(self, code, kind):
        """PostgREST codes should map onto store error kinds."""
        assert isinstance(translate_store_error(api_error(code)), kind)

    def test_unknown_code_is_generic_store_error(self):
        """Unknown codes should become a plain StoreError."""
        error = translate_store_error(api_error("23502", "null value"))
        assert type(error) is StoreError
        assert error.code == "23502"

    def test_transport_error_is_unavailable(self):
        """httpx errors should be transient outages."""
        error = translate_store_error(httpx.ConnectError("refused"))
        assert isinstance(error, StoreUnavailableError)


class TestSupabaseDocumentStore:
    @pytest.mark.asyncio
    async def test_get_returns_data(self):
        """get should return the row's data."""
        client = mock_client({"accounts/a1": {"data": {"id": "a1"}, "version": 3}})
        store = SupabaseDocumentStore(client)

        assert await store.get("accounts/a1") == {"id": "a1"}
        client.table.assert_called_with("documents")

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        """get should return None when no row exists."""
        store = SupabaseDocumentStore(mock_client())
        assert await store.get("accounts/none") is None

    @pytest.mark.asyncio
    async def test_transact_sends_read_versions_and_writes(self):
        """Commit should send observed versions and expected versions per write."""
        client = mock_client({"assignments/x": {"data": {"progress": 20}, "version": 4}})
        store = SupabaseDocumentStore(client, commit_function="commit_documents")

        async def write(tx: Transaction) -> int:
            progress = tx.snapshot["assignments/x"]["progress"] + 20
            tx.set("assignments/x", {"progress": progress}, merge=True)
            tx.set("sessions/s1", {"assignment_id": "x"})
            return progress

        result = await store.transact(["assignments/x", "sessions/s1"], write)

        assert result.value == 40
        client.rpc.assert_called_once_with("commit_documents", {
            "p_reads": [
                {"collection": "assignments", "doc_id": "x", "version": 4},
                {"collection": "sessions", "doc_id": "s1", "version": 0},
            ],
            "p_writes": [
                {
                    "collection": "assignments",
                    "doc_id": "x",
                    "data": {"progress": 40},
                    "merge": True,
                    "expected_version": 4,
                },
                {
                    "collection": "sessions",
                    "doc_id": "s1",
                    "data": {"assignment_id": "x"},
                    "merge": False,
                    "expected_version": 0,
                },
            ],
        })

    @pytest.mark.asyncio
    async def test_read_only_transaction_skips_commit(self):
        """A transaction with no writes should not call the RPC."""
        client = mock_client()
        store = SupabaseDocumentStore(client)

        async def write(tx: Transaction) -> None:
            return None

        await store.transact(["assignments/x"], write)
        client.rpc.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_conflict_raises(self):
        """SQLSTATE 40001 from the RPC should raise TransactionConflictError."""
        client = mock_client()
        client.rpc.return_value.execute.side_effect = api_error("40001")
        store = SupabaseDocumentStore(client)

        async def write(tx: Transaction) -> None:
            tx.set("emailClaims/a@example.com", {"owner_account_id": "a"})

        with pytest.raises(TransactionConflictError):
            await store.transact(["emailClaims/a@example.com"], write)

    @pytest.mark.asyncio
    async def test_read_permission_error_raises(self):
        """Permission errors on read should raise StorePermissionDeniedError."""
        client = MagicMock()
        client.table.return_value.select.return_value.eq.return_value.eq.return_value.execute.side_effect = (
            api_error("42501")
        )
        store = SupabaseDocumentStore(client)

        with pytest.raises(StorePermissionDeniedError):
            await store.get("accounts/a1")

    @pytest.mark.asyncio
    async def test_append_upserts_without_version_check(self):
        """append should commit a single write with no read set."""
        client = mock_client()
        store = SupabaseDocumentStore(client)

        doc_id = await store.append("sessions", {"n": 1}, doc_id="s1")

        assert doc_id == "s1"
        client.rpc.assert_called_once_with("commit_documents", {
            "p_reads": [],
            "p_writes": [{
                "collection": "sessions",
                "doc_id": "s1",
                "data": {"n": 1},
                "merge": False,
                "expected_version": None,
            }],
        })

    @pytest.mark.asyncio
    async def test_requests_do_not_block_the_event_loop(self):
        """A slow database call should leave the event loop free for other work."""
        release = threading.Event()
        client = mock_client()

        def slow_rpc(*_args, **_kwargs):
            assert release.wait(timeout=5), "event loop was blocked"
            return MagicMock()

        client.rpc.return_value.execute.side_effect = slow_rpc
        store = SupabaseDocumentStore(client)

        async def release_soon():
            release.set()

        doc_id, _ = await asyncio.gather(store.append("sessions", {"n": 1}, doc_id="s1"), release_soon())

        assert doc_id == "s1"

    @pytest.mark.asyncio
    async def test_cancelled_caller_stops_waiting(self):
        """Cancelling a caller should not wait for the database call to return."""
        release = threading.Event()
        client = mock_client()
        client.rpc.return_value.execute.side_effect = lambda: release.wait(timeout=5)
        store = SupabaseDocumentStore(client)

        try:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(store.append("sessions", {"n": 1}), timeout=0.05)
        finally:
            release.set()
