from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from amount import Amount
from errors import AmountOverflowError, InvalidAmountError

CLIENT_ID_MAX = 2 ** 16 - 1
TRANSACTION_ID_MAX = 2 ** 32 - 1


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def moves_money(self) -> bool:
        """Deposits and withdrawals create a transaction; the rest reference one."""
        return self in (TransactionType.deposit, TransactionType.withdrawal)


class TransactionState(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    disputed = "disputed"
    resolved = "resolved"
    chargeback = "chargeback"


class AccountCommand(str, Enum):
    """The only mutations the account ledger accepts."""
    credit = "credit"          # available += amount
    debit = "debit"            # available -= amount, requires amount <= available
    hold = "hold"              # available -> held
    release = "release"        # held -> available
    chargeback = "chargeback"  # held -= amount, account frozen


class TransactionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: int = Field(..., ge=0, le=CLIENT_ID_MAX, description="Client identifier (16-bit)")
    tx: int = Field(..., ge=0, le=TRANSACTION_ID_MAX, description="Transaction identifier (32-bit)")
    type: TransactionType = Field(..., description="Record kind")
    amount: Optional[Amount] = Field(
        None,
        description="Amount moved; ignored for dispute, resolve and chargeback"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v):
        if v is None or isinstance(v, Amount):
            return v
        try:
            return Amount.from_decimal(v)
        except InvalidAmountError as exc:
            raise ValueError(exc.detail)

    @model_validator(mode='after')
    def validate_amount_for_type(self):
        if self.type.moves_money:
            if self.amount is None:
                raise ValueError(f'{self.type.value} records require an amount')
            if self.amount < Amount.zero():
                raise ValueError('Amount cannot be negative')
        return self


@dataclass(frozen=True)
class Account:
    available: Amount = Amount()
    held: Amount = Amount()
    frozen: bool = False

    def total(self) -> Optional[Amount]:
        """available + held, or None if the sum does not fit."""
        try:
            return self.available.checked_add(self.held)
        except AmountOverflowError:
            return None


@dataclass(frozen=True)
class Transaction:
    """Lifecycle record of an accepted deposit or withdrawal."""
    client: int
    state: TransactionState
    amount: Amount

    def advance(self, state: TransactionState) -> "Transaction":
        return replace(self, state=state)


class AccountReport(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: str = Field(..., description="Funds available, 4 fractional digits")
    held: str = Field(..., description="Funds held by open disputes")
    total: Optional[str] = Field(..., description="available + held; None on overflow")
    locked: bool = Field(..., description="Whether the account is frozen")

    @classmethod
    def from_account(cls, client: int, account: Account) -> "AccountReport":
        total = account.total()
        return cls(
            client=client,
            available=str(account.available),
            held=str(account.held),
            total=str(total) if total is not None else None,
            locked=account.frozen
        )
