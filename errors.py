"""Ledger error taxonomy.

Every transition failure surfaces as one of these exceptions. All of them
except ``TransactionFailedError`` are ordinary business outcomes: the batch
driver logs them and moves on to the next record.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""

    error_code = "LEDGER_ERROR"
    default_detail = "Ledger error"
    fatal = False

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# Validation-time

class InvalidAmountError(LedgerError):
    error_code = "INVALID_AMOUNT"
    default_detail = "Amount is not a finite number within range"


# Arithmetic

class AmountOverflowError(LedgerError):
    error_code = "OVERFLOW"
    default_detail = "Amount arithmetic overflowed"


class UnderflowError(LedgerError):
    error_code = "UNDERFLOW"
    default_detail = "Amount arithmetic underflowed"


# Business rules

class InsufficientFundsError(LedgerError):
    error_code = "INSUFFICIENT_FUNDS"
    default_detail = "Insufficient funds"


class TransactionExistsError(LedgerError):
    error_code = "TRANSACTION_EXISTS"
    default_detail = "Transaction id already used"


class TransactionNotFoundError(LedgerError):
    error_code = "TRANSACTION_NOT_FOUND"
    default_detail = "Referenced transaction not found"


class ClientMismatchError(LedgerError):
    error_code = "CLIENT_MISMATCH"
    default_detail = "Transaction belongs to a different client"


class AlreadyDisputedError(LedgerError):
    error_code = "ALREADY_DISPUTED"
    default_detail = "Transaction is not in a disputable state"


class DisputeNotOpenError(LedgerError):
    error_code = "DISPUTE_NOT_OPEN"
    default_detail = "Transaction has no open dispute"


# Account state

class AccountFrozenError(LedgerError):
    error_code = "ACCOUNT_FROZEN"
    default_detail = "Account is frozen"


# Fatal

class TransactionFailedError(LedgerError):
    """The ledger's internal state can no longer be trusted."""

    error_code = "TRANSACTION_FAILED"
    default_detail = "Ledger synchronization failure"
    fatal = True
