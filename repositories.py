from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Tuple
import asyncio
from collections import defaultdict

import structlog

from amount import Amount
from errors import (
    AccountFrozenError,
    AmountOverflowError,
    InsufficientFundsError,
    LedgerError,
    TransactionFailedError,
    UnderflowError,
)
from models import Account, AccountCommand, Transaction

logger = structlog.get_logger()


class AccountRepository(ABC):
    @abstractmethod
    async def apply(self, client_id: int, command: AccountCommand, amount: Amount) -> Account:
        """Apply one command to the client's account, creating it if absent.

        Raises AccountFrozenError without side effects if the account is
        frozen, and TransactionFailedError if the ledger is unusable.
        """
        pass

    @abstractmethod
    async def get_account(self, client_id: int) -> Optional[Account]:
        """Get account state. Returns None if the client was never referenced."""
        pass

    @abstractmethod
    async def snapshot(self) -> List[Tuple[int, Account]]:
        """Get every account, ordered by client id."""
        pass

    @abstractmethod
    async def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class TransactionRepository(ABC):
    @abstractmethod
    async def get(self, tx_id: int) -> Optional[Transaction]:
        """Get lifecycle record. Returns None if the id was never accepted."""
        pass

    @abstractmethod
    async def save(self, tx_id: int, transaction: Transaction) -> None:
        """Store a new or advanced lifecycle record."""
        pass

    @abstractmethod
    async def get_transactions_count(self) -> int:
        """Get total number of stored transactions."""
        pass

    @abstractmethod
    def get_lock(self, tx_id: int) -> asyncio.Lock:
        """Get lock serializing records that reference tx_id."""
        pass


def _execute(command: AccountCommand, account: Account, amount: Amount) -> Account:
    """Compute the account after command; raises before anything is committed."""
    if command == AccountCommand.credit:
        return replace(account, available=account.available.checked_add(amount))

    if command == AccountCommand.debit:
        if amount > account.available:
            raise InsufficientFundsError(
                f"Requested {amount}, available {account.available}"
            )
        try:
            return replace(account, available=account.available.checked_sub(amount))
        except AmountOverflowError as exc:
            raise UnderflowError(exc.detail) from exc

    if command == AccountCommand.hold:
        try:
            available = account.available.checked_sub(amount)
        except AmountOverflowError as exc:
            raise UnderflowError(exc.detail) from exc
        return replace(account, available=available, held=account.held.checked_add(amount))

    if command == AccountCommand.release:
        try:
            held = account.held.checked_sub(amount)
        except AmountOverflowError as exc:
            raise UnderflowError(exc.detail) from exc
        return replace(account, available=account.available.checked_add(amount), held=held)

    if command == AccountCommand.chargeback:
        try:
            held = account.held.checked_sub(amount)
        except AmountOverflowError as exc:
            raise UnderflowError(exc.detail) from exc
        return replace(account, held=held, frozen=True)

    raise ValueError(f"Unknown account command: {command!r}")


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}
        # One lock for the whole map so snapshots never see a half-applied command
        self.lock = asyncio.Lock()
        self.poisoned = False

    async def apply(self, client_id: int, command: AccountCommand, amount: Amount) -> Account:
        async with self.lock:
            if self.poisoned:
                raise TransactionFailedError()

            account = self.accounts.setdefault(client_id, Account())
            if account.frozen:
                raise AccountFrozenError(f"Account {client_id} is frozen")

            try:
                updated = _execute(command, account, amount)
            except LedgerError:
                raise
            except Exception as e:
                self.poisoned = True
                logger.error(
                    "Account mutation failed unexpectedly, ledger poisoned",
                    client_id=client_id,
                    command=command.value,
                    error=str(e),
                    exc_info=True
                )
                raise TransactionFailedError(str(e)) from e

            self.accounts[client_id] = updated

            logger.debug(
                "Account mutated",
                client_id=client_id,
                command=command.value,
                amount=str(amount),
                available=str(updated.available),
                held=str(updated.held),
                frozen=updated.frozen
            )

            return updated

    async def get_account(self, client_id: int) -> Optional[Account]:
        async with self.lock:
            return self.accounts.get(client_id)

    async def snapshot(self) -> List[Tuple[int, Account]]:
        async with self.lock:
            return sorted(self.accounts.items())

    async def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self.store: Dict[int, Transaction] = {}
        self.locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, tx_id: int) -> Optional[Transaction]:
        return self.store.get(tx_id)

    async def save(self, tx_id: int, transaction: Transaction) -> None:
        self.store[tx_id] = transaction

    async def get_transactions_count(self) -> int:
        return len(self.store)

    def get_lock(self, tx_id: int) -> asyncio.Lock:
        return self.locks[tx_id]


# Singleton instances shared by the batch driver
_account_repo = InMemoryAccountRepository()
_transaction_repo = InMemoryTransactionRepository()


def get_account_repository() -> AccountRepository:
    return _account_repo


def get_transaction_repository() -> TransactionRepository:
    return _transaction_repo


# For tests
def reset_repositories():
    """Reset all repositories to initial state (for testing only)."""
    global _account_repo, _transaction_repo
    _account_repo = InMemoryAccountRepository()
    _transaction_repo = InMemoryTransactionRepository()
