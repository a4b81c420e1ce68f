"""
Base repository class for document access.

Provides a common abstraction layer for all repositories, encapsulating
document store access and the dict-to-model mapping.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from .documents import IDocumentStore, doc_path


T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    Provides common functionality for document operations:
    - Document store access via self._store
    - Key construction for the repository's collection
    - Mapping between stored dicts and Pydantic models

    Subclasses set ``collection`` and ``model``.

    Example:
        class AccountRepository(BaseRepository[Account]):
            collection = "accounts"
            model = Account
    """

    collection: str = ""
    model: type[T]

    def __init__(self, store: IDocumentStore) -> None:
        """
        Initialize the repository with a document store.

        Args:
            store: Document store instance for reads and writes.
        """
        self._store = store

    def key(self, doc_id: str) -> str:
        """Document key for ``doc_id`` in this repository's collection."""
        return doc_path(self.collection, doc_id)

    def to_model(self, data: dict[str, Any]) -> T:
        return self.model.model_validate(data)

    def to_document(self, item: T) -> dict[str, Any]:
        return item.model_dump(mode="json")

    async def get(self, doc_id: str) -> Optional[T]:
        """Load a document by id, or None if it does not exist."""
        data = await self._store.get(self.key(doc_id))
        if data is None:
            return None
        return self.to_model(data)
