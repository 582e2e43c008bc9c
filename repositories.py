from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from models import AccountSnapshot, AccountState, DisputableRecord


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client_id: int) -> Optional[AccountState]:
        """Get account state. Returns None if the account doesn't exist."""
        pass

    @abstractmethod
    def get_or_create(self, client_id: int) -> AccountState:
        """Get account state, opening a zeroed account on first reference."""
        pass

    @abstractmethod
    def list_accounts(self, ordered: bool = True) -> List[AccountSnapshot]:
        """Snapshot every account, by ascending client id when ordered."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class DisputeRepository(ABC):
    @abstractmethod
    def insert(self, tx_id: int, record: DisputableRecord) -> None:
        """Store a disputable deposit, replacing any record under the same id."""
        pass

    @abstractmethod
    def get(self, tx_id: int) -> Optional[DisputableRecord]:
        """Get stored disputable record by transaction id."""
        pass

    @abstractmethod
    def get_records_count(self) -> int:
        """Get total number of stored disputable records."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, AccountState] = {}

    def get(self, client_id: int) -> Optional[AccountState]:
        return self.accounts.get(client_id)

    def get_or_create(self, client_id: int) -> AccountState:
        account = self.accounts.get(client_id)
        if account is None:
            account = self.accounts[client_id] = AccountState()
        return account

    def list_accounts(self, ordered: bool = True) -> List[AccountSnapshot]:
        client_ids = sorted(self.accounts) if ordered else list(self.accounts)
        return [AccountSnapshot.from_state(client_id, self.accounts[client_id]) for client_id in client_ids]

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryDisputeRepository(DisputeRepository):
    def __init__(self):
        self.records: Dict[int, DisputableRecord] = {}

    def insert(self, tx_id: int, record: DisputableRecord) -> None:
        self.records[tx_id] = record

    def get(self, tx_id: int) -> Optional[DisputableRecord]:
        return self.records.get(tx_id)

    def get_records_count(self) -> int:
        return len(self.records)
