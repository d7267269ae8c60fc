from abc import ABC, abstractmethod
from typing import Optional, List, Iterable
from core.entities.transaction import Transaction, TransactionStatus
from core.entities.withdrawal import WithdrawalRequest


class TransactionRepository(ABC):
    @abstractmethod
    def add(self, tx: Transaction) -> Transaction:...

    @abstractmethod
    def get_by_id(self, transaction_id: int) -> Optional[Transaction]:...

    @abstractmethod
    def get_by_code(self, code: str) -> Optional[Transaction]:...

    @abstractmethod
    def list_by_owner(self, user_id: int, limit: int = 100, offset: int = 0) -> List[Transaction]:...

    @abstractmethod
    def list_all(self, limit: int = 100, offset: int = 0) -> List[Transaction]:...

    @abstractmethod
    def list_by_statuses(self, statuses: Iterable[TransactionStatus]) -> List[Transaction]:...

    @abstractmethod
    def update_status_if(
        self,
        transaction_id: int,
        expected: TransactionStatus,
        new: TransactionStatus,
        admin_notes: Optional[str],
        updated_at: str,
    ) -> bool:
        """Conditional write; True only if the row still had ``expected``."""

    @abstractmethod
    def attach_proof_if_active(self, transaction_id: int, proof_ref: str, updated_at: str) -> bool:...


class WithdrawalRepository(ABC):
    @abstractmethod
    def add(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:...

    @abstractmethod
    def get_by_id(self, withdrawal_id: int) -> Optional[WithdrawalRequest]:...

    @abstractmethod
    def get_by_transaction(self, transaction_id: int) -> Optional[WithdrawalRequest]:...

    @abstractmethod
    def sync_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        admin_notes: Optional[str],
        updated_at: str,
    ) -> int:...

    @abstractmethod
    def list_by_owner(self, user_id: int) -> List[WithdrawalRequest]:...

    @abstractmethod
    def list_by_statuses(self, statuses: Iterable[TransactionStatus]) -> List[WithdrawalRequest]:...
