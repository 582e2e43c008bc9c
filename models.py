from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from contextlib import contextmanager
from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Mapping, Union
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    ROUND_HALF_EVEN,
    localcontext,
)

from exceptions import BalancePrecisionError

MAX_CLIENT_ID = 65_535
MAX_TRANSACTION_ID = 4_294_967_295
MAX_AMOUNT_DIGITS = 28

# Any result that would need rounding raises instead
EXACT_CONTEXT = Context(
    prec=MAX_AMOUNT_DIGITS,
    rounding=ROUND_HALF_EVEN,
    traps=[Inexact, InvalidOperation, DivisionByZero, Overflow],
)


@contextmanager
def exact_arithmetic() -> Iterator[None]:
    """Run balance arithmetic that must never round."""
    with localcontext(EXACT_CONTEXT):
        try:
            yield
        except Inexact as e:
            raise BalancePrecisionError(
                f"balance exceeds {MAX_AMOUNT_DIGITS} significant digits"
            ) from e


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class DisputeState(str, Enum):
    undisputed = "undisputed"
    disputed = "disputed"
    chargedback = "chargedback"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TRANSACTION_ID, description="Transaction identifier")

    @property
    def kind(self) -> TransactionType:
        return TransactionType(self.type)


class _AmountRecord(_Record):
    amount: Decimal = Field(
        ...,
        max_digits=MAX_AMOUNT_DIGITS,
        allow_inf_nan=False,
        description="Amount moved by the transaction",
    )


class Deposit(_AmountRecord):
    type: Literal["deposit"] = "deposit"


class Withdrawal(_AmountRecord):
    type: Literal["withdrawal"] = "withdrawal"


class Dispute(_Record):
    type: Literal["dispute"] = "dispute"


class Resolve(_Record):
    type: Literal["resolve"] = "resolve"


class Chargeback(_Record):
    type: Literal["chargeback"] = "chargeback"


TransactionRecord = Annotated[
    Union[Deposit, Withdrawal, Dispute, Resolve, Chargeback],
    Field(discriminator="type"),
]

transaction_adapter = TypeAdapter(TransactionRecord)


def parse_record(fields: Mapping[str, Any]) -> TransactionRecord:
    """Validate a raw field mapping into the record variant named by its type.

    Raises pydantic.ValidationError when the mapping does not describe a
    well-formed record, including a deposit or withdrawal without an amount.
    """
    return transaction_adapter.validate_python(dict(fields))


class AccountState(BaseModel):
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    # New balances are computed in full before any field is assigned, so a
    # BalancePrecisionError leaves the account untouched.

    @property
    def total(self) -> Decimal:
        with exact_arithmetic():
            return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        with exact_arithmetic():
            available = self.available + amount
        self.available = available

    def debit(self, amount: Decimal) -> None:
        with exact_arithmetic():
            available = self.available - amount
        self.available = available

    def hold(self, amount: Decimal) -> None:
        with exact_arithmetic():
            available = self.available - amount
            held = self.held + amount
        self.available, self.held = available, held

    def release_hold(self, amount: Decimal) -> None:
        with exact_arithmetic():
            held = self.held - amount
            available = self.available + amount
        self.available, self.held = available, held

    def charge_back(self, amount: Decimal) -> None:
        """Remove held funds for good and freeze the account."""
        with exact_arithmetic():
            held = self.held - amount
        self.held = held
        self.locked = True


class DisputableRecord(BaseModel):
    client: int = Field(..., description="Client owning the original deposit")
    amount: Decimal = Field(..., description="Amount of the original deposit")
    state: DisputeState = DisputeState.undisputed


class ProcessingStats(BaseModel):
    seen: int = 0
    applied: int = 0
    rejected: int = 0

    def record(self, applied: bool) -> None:
        self.seen += 1
        if applied:
            self.applied += 1
        else:
            self.rejected += 1


class AccountSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool

    @classmethod
    def from_state(cls, client: int, state: AccountState) -> "AccountSnapshot":
        return cls(
            client=client,
            available=state.available,
            held=state.held,
            total=state.total,
            locked=state.locked,
        )
