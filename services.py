from typing import Iterable, List, Optional, Union

import structlog

from models import (
    AccountSnapshot,
    Chargeback,
    Deposit,
    DisputableRecord,
    Dispute,
    ProcessingStats,
    Resolve,
    TransactionRecord,
    TransactionType,
    Withdrawal,
)
from repositories import (
    AccountRepository,
    DisputeRepository,
    InMemoryAccountRepository,
    InMemoryDisputeRepository,
)
from state_machine import is_terminal, next_state

logger = structlog.get_logger()


class TransactionService:
    """Applies transaction records, one at a time and in arrival order, to the
    account ledger and the dispute index.

    Records that break a business rule (locked account, insufficient funds,
    unknown or mismatched transaction reference, wrong dispute state) are
    dropped without touching any state. A rejection raises nothing and is never
    logged as a warning or error; it only shows up as a DEBUG event, which the
    default INFO level hides.

    Fatal errors come from the iterable fed to process_stream (malformed
    records) or from a balance that cannot stay exact (BalancePrecisionError).
    """

    def __init__(self, account_repo: AccountRepository, dispute_repo: DisputeRepository):
        self.account_repo = account_repo
        self.dispute_repo = dispute_repo
        self.stats = ProcessingStats()

    def process_transaction(self, record: TransactionRecord) -> bool:
        """Apply a single record. Returns False when it was rejected as a no-op."""

        match record:
            case Deposit():
                applied = self._process_deposit(record)
            case Withdrawal():
                applied = self._process_withdrawal(record)
            case Dispute() | Resolve() | Chargeback():
                applied = self._process_dispute_action(record)
            case _:
                raise TypeError(f"Unsupported transaction record: {record!r}")

        self.stats.record(applied)
        return applied

    def process_stream(self, records: Iterable[TransactionRecord]) -> ProcessingStats:
        """Consume the whole record stream and return the run statistics."""

        logger.info("Processing started")

        for record in records:
            self.process_transaction(record)

        logger.info(
            "Processing completed",
            seen=self.stats.seen,
            applied=self.stats.applied,
            rejected=self.stats.rejected,
            accounts_count=self.account_repo.get_accounts_count(),
            disputable_count=self.dispute_repo.get_records_count(),
        )
        return self.stats

    def list_accounts(self, ordered: bool = True) -> List[AccountSnapshot]:
        return self.account_repo.list_accounts(ordered=ordered)

    def _reject(self, record: TransactionRecord, reason: str) -> bool:
        logger.debug(
            "Transaction rejected",
            type=record.type,
            client=record.client,
            tx=record.tx,
            reason=reason,
        )
        return False

    def _process_deposit(self, record: Deposit) -> bool:
        account = self.account_repo.get_or_create(record.client)

        if account.locked:
            return self._reject(record, "account locked")

        account.credit(record.amount)

        # Duplicate ids are not rejected, the newest deposit wins
        if self.dispute_repo.get(record.tx) is not None:
            logger.debug("Replacing disputable record", client=record.client, tx=record.tx)

        self.dispute_repo.insert(
            record.tx,
            DisputableRecord(client=record.client, amount=record.amount),
        )
        return True

    def _process_withdrawal(self, record: Withdrawal) -> bool:
        account = self.account_repo.get(record.client)

        if account is None:
            return self._reject(record, "unknown client")

        if account.locked:
            return self._reject(record, "account locked")

        if account.available < record.amount:
            return self._reject(record, "insufficient funds")

        account.debit(record.amount)

        logger.debug(
            "Withdrawal processed",
            client=record.client,
            tx=record.tx,
            amount=str(record.amount),
            available=str(account.available),
        )
        return True

    def _process_dispute_action(self, record: Union[Dispute, Resolve, Chargeback]) -> bool:
        """Move a disputable deposit through its lifecycle.

        The account lock is not consulted: held funds of a frozen account can
        still be resolved or charged back.
        """
        account = self.account_repo.get(record.client)
        if account is None:
            return self._reject(record, "unknown client")

        disputable = self.dispute_repo.get(record.tx)
        if disputable is None:
            return self._reject(record, "unknown transaction")

        new_state = next_state(disputable.state, record.kind)
        if new_state is None:
            if is_terminal(disputable.state):
                return self._reject(record, "transaction charged back")
            return self._reject(record, f"transaction is {disputable.state.value}")

        if disputable.client != record.client:
            return self._reject(record, "client mismatch")

        if record.kind == TransactionType.dispute:
            account.hold(disputable.amount)
        elif record.kind == TransactionType.resolve:
            account.release_hold(disputable.amount)
        else:
            account.charge_back(disputable.amount)

        disputable.state = new_state

        logger.debug(
            "Dispute state changed",
            client=record.client,
            tx=record.tx,
            state=new_state.value,
            available=str(account.available),
            held=str(account.held),
        )
        return True


# Factory function; each service owns a fresh ledger and dispute index
def get_transaction_service(
    account_repo: Optional[AccountRepository] = None,
    dispute_repo: Optional[DisputeRepository] = None,
) -> TransactionService:
    return TransactionService(
        account_repo if account_repo is not None else InMemoryAccountRepository(),
        dispute_repo if dispute_repo is not None else InMemoryDisputeRepository(),
    )
