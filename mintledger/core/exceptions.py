"""
mintledger Exception Hierarchy

All exceptions inherit from MintLedgerError for easy catching.
A raised error always means the call had no effect on ledger state.
"""


class MintLedgerError(Exception):
    """Base exception for all mintledger errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class AuthorizationError(MintLedgerError):
    """Raised when the caller lacks the required role (owner or emitter)"""
    pass


class StateError(MintLedgerError):
    """Raised when an operation is invalid for the current mint phase,
    or when an existing nonzero allowance would be overwritten"""
    pass


class InvalidArgument(MintLedgerError):
    """Raised for a zero recipient, a malformed address or amount,
    or mismatched batch lengths"""
    pass


class AmountOverflow(InvalidArgument):
    """Raised when a balance or the total supply would exceed 2**256 - 1"""
    pass


class InsufficientBalance(MintLedgerError):
    """Raised when an account holds less than the amount moved or burned"""
    pass


class InsufficientAllowance(MintLedgerError):
    """Raised when a spender's allowance is below the amount moved"""
    pass


class JournalError(MintLedgerError):
    """Raised when the transaction journal cannot be written or restored"""
    pass


class ConfigError(MintLedgerError):
    """Raised when a configuration file is unreadable or malformed"""
    pass
