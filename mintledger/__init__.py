"""
mintledger/__init__.py

mintledger: fungible-token ledger with a one-way minting phase,
guarded allowances, and a signed transaction journal.

    from mintledger import Ledger
    ledger = Ledger(owner)
    ledger.mint([alice], [100], caller=owner)
    ledger.finish_minting(caller=owner)
    ledger.transfer(bob, 40, caller=alice)
"""

__version__         = "0.1.0"
__journal_version__ = "1.0"

from mintledger.core.exceptions import (
    AmountOverflow,
    AuthorizationError,
    ConfigError,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidArgument,
    JournalError,
    MintLedgerError,
    StateError,
)
from mintledger.core.models import (
    LedgerSnapshot,
    MintPhase,
    UINT256_MAX,
    ZERO_ADDRESS,
    normalize_address,
)
from mintledger.core.crypto import Ed25519KeyManager
from mintledger.core.journal import JournaledLedger
from mintledger.core.replay import ReplayEngine, ReplaySummary
from mintledger.core.transaction import Op, Transaction
from mintledger.ledger.ledger import Ledger

__all__ = [
    # Core types
    "Ledger",
    "LedgerSnapshot",
    "MintPhase",
    "JournaledLedger",
    "ReplayEngine",
    "ReplaySummary",
    "Transaction",
    "Op",
    "Ed25519KeyManager",
    # Errors
    "MintLedgerError",
    "AuthorizationError",
    "StateError",
    "InvalidArgument",
    "AmountOverflow",
    "InsufficientBalance",
    "InsufficientAllowance",
    "JournalError",
    "ConfigError",
    # Helpers
    "normalize_address",
    # Constants
    "ZERO_ADDRESS",
    "UINT256_MAX",
]
