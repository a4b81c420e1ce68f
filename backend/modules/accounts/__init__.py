"""
Accounts module.

Email uniqueness ledger and the account reconciler that creates Accounts
for direct (password) and federated signups.

Public API:
- IEmailClaimLedger / EmailClaimLedger: normalized email -> owning account
- IAccountReconciler / AccountReconciler: signup, sign-in and account reads
- Account, AccountProfile, AccountRole, AccountStatus: Account data
- ClaimOutcome, ClaimResult: Ledger decisions
"""

from .interfaces import IEmailClaimLedger, IAccountReconciler
from .models import (
    Account,
    AccountProfile,
    AccountRole,
    AccountStatus,
    EmailClaim,
    ClaimOutcome,
    ClaimResult,
    SignupResult,
    SignInResult,
    FederatedSignInStatus,
    FederatedSignInResult,
    normalize_email,
)
from .exceptions import (
    EmailAlreadyRegisteredError,
    IdentityMismatchError,
    AccountNotFoundError,
    AccountRoleMismatchError,
    AccountDisabledError,
    InvalidSignupError,
)
from .repository import ACCOUNTS_COLLECTION, AccountRepository
from .ledger import CLAIMS_COLLECTION, EmailClaimLedger
from .reconciler import AccountReconciler

__all__ = [
    # Interfaces
    "IEmailClaimLedger",
    "IAccountReconciler",
    # Models
    "Account",
    "AccountProfile",
    "AccountRole",
    "AccountStatus",
    "EmailClaim",
    "ClaimOutcome",
    "ClaimResult",
    "SignupResult",
    "SignInResult",
    "FederatedSignInStatus",
    "FederatedSignInResult",
    "normalize_email",
    # Exceptions
    "EmailAlreadyRegisteredError",
    "IdentityMismatchError",
    "AccountNotFoundError",
    "AccountRoleMismatchError",
    "AccountDisabledError",
    "InvalidSignupError",
    # Implementation
    "ACCOUNTS_COLLECTION",
    "CLAIMS_COLLECTION",
    "AccountRepository",
    "EmailClaimLedger",
    "AccountReconciler",
]
