from typing import Optional

import structlog

from errors import (
    AlreadyDisputedError,
    ClientMismatchError,
    DisputeNotOpenError,
    LedgerError,
    TransactionExistsError,
    TransactionNotFoundError,
)
from models import AccountCommand, Transaction, TransactionRecord, TransactionState, TransactionType
from repositories import AccountRepository, TransactionRepository

logger = structlog.get_logger()

# Transaction state reached by each money-moving record, and the ledger command it runs
_OPENING = {
    TransactionType.deposit: (TransactionState.deposit, AccountCommand.credit),
    TransactionType.withdrawal: (TransactionState.withdrawal, AccountCommand.debit),
}

_DISPUTABLE = (TransactionState.deposit, TransactionState.withdrawal)


class TransactionService:
    """Drives the dispute lifecycle of every transaction.

    This is the only caller of ``AccountRepository.apply``. A lifecycle record
    is created or advanced only after its ledger command succeeded, so a failed
    transition leaves both the account and the record as they were.
    """

    def __init__(self, account_repo: AccountRepository, transaction_repo: TransactionRepository):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    async def process(self, record: TransactionRecord) -> Transaction:
        """Apply one record and return the resulting lifecycle record.

        Raises a LedgerError subclass when the transition is not allowed or
        the ledger rejects it.
        """
        logger.info(
            "Processing transaction",
            client_id=record.client,
            tx_id=record.tx,
            type=record.type.value,
            amount=str(record.amount) if record.amount is not None else None
        )

        # Records touching the same tx id are applied in arrival order
        async with self.transaction_repo.get_lock(record.tx):
            try:
                existing = await self.transaction_repo.get(record.tx)
                if record.type.moves_money:
                    transaction = await self._open(record, existing)
                else:
                    transaction = await self._advance(record, existing)
            except LedgerError as e:
                log = logger.error if e.fatal else logger.warning
                log(
                    "Transaction rejected",
                    client_id=record.client,
                    tx_id=record.tx,
                    type=record.type.value,
                    error_code=e.error_code,
                    detail=e.detail
                )
                raise

            await self.transaction_repo.save(record.tx, transaction)

        logger.info(
            "Transaction processed successfully",
            client_id=record.client,
            tx_id=record.tx,
            state=transaction.state.value
        )

        return transaction

    async def _open(self, record: TransactionRecord, existing: Optional[Transaction]) -> Transaction:
        """Deposit or withdrawal: a tx id may move money only once."""
        if existing is not None:
            raise TransactionExistsError(f"Transaction {record.tx} already exists")

        state, command = _OPENING[record.type]
        await self.account_repo.apply(record.client, command, record.amount)

        return Transaction(client=record.client, state=state, amount=record.amount)

    async def _advance(self, record: TransactionRecord, existing: Optional[Transaction]) -> Transaction:
        """Dispute, resolve or chargeback against an accepted transaction."""
        if existing is None:
            raise TransactionNotFoundError(f"Transaction {record.tx} not found")

        # Checked before any state rule
        if existing.client != record.client:
            raise ClientMismatchError(
                f"Transaction {record.tx} belongs to client {existing.client}, not {record.client}"
            )

        if record.type == TransactionType.dispute:
            if existing.state not in _DISPUTABLE:
                raise AlreadyDisputedError(
                    f"Transaction {record.tx} is {existing.state.value}"
                )
            command, state = AccountCommand.hold, TransactionState.disputed
        else:
            if existing.state != TransactionState.disputed:
                raise DisputeNotOpenError(
                    f"Transaction {record.tx} is {existing.state.value}"
                )
            if record.type == TransactionType.resolve:
                command, state = AccountCommand.release, TransactionState.resolved
            else:
                command, state = AccountCommand.chargeback, TransactionState.chargeback

        # The amount always comes from the original transaction
        await self.account_repo.apply(existing.client, command, existing.amount)

        return existing.advance(state)


# Factory function for dependency injection
def get_transaction_service(
    account_repo: AccountRepository,
    transaction_repo: TransactionRepository
) -> TransactionService:
    return TransactionService(account_repo, transaction_repo)
