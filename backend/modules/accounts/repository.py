"""
Account repository.

Maps ``accounts/{id}`` documents to Account models.
"""

from shared.repository import BaseRepository

from .models import Account

ACCOUNTS_COLLECTION = "accounts"


class AccountRepository(BaseRepository[Account]):
    """Repository for account documents."""

    collection = ACCOUNTS_COLLECTION
    model = Account
