"""
Transactions Module

User-submitted deposit and withdrawal transactions. Completing a transaction
applies it to the balance once: deposits credit, withdrawals debit and need
sufficient funds. Marking it completed again is a no-op on the balance.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .errors import NotFoundError, ValidationError
from .ledger import AccountLedger, EntryType, transition_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .users import User, ensure_owner_or_admin


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Transaction(StorageRecord):
    """Money movement requested by a user"""
    user_id: str
    amount: Decimal
    transaction_type: TransactionType
    reference: str
    description: str = ""
    status: TransactionStatus = TransactionStatus.PENDING

    _decimal_fields = ("amount",)
    _enum_fields = {"transaction_type": TransactionType, "status": TransactionStatus}


class TransactionManager:
    """Creates transactions and applies them on completion"""

    def __init__(self, storage: StorageInterface, ledger: AccountLedger):
        self.storage = storage
        self.ledger = ledger
        self.table_name = "transactions"
        self.logger = get_logger("platform.transactions")

    def create_transaction(self, user_id: str, amount: Decimal,
                           transaction_type: TransactionType,
                           description: str = "") -> Transaction:
        """Record a pending transaction for an existing user"""
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        if not self.storage.exists("users", user_id):
            raise NotFoundError("User", user_id)

        now = datetime.now(timezone.utc)
        transaction_id = str(uuid.uuid4())
        transaction = Transaction(
            id=transaction_id,
            created_at=now,
            updated_at=now,
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            reference=f"TXN-{transaction_id[:8].upper()}",
            description=description
        )
        self._save_transaction(transaction)

        log_action(
            self.logger, "info", f"Transaction created: {transaction_type.value}",
            user_id=user_id, action="create_transaction",
            resource=f"transaction:{transaction.id}",
            extra={"amount": str(amount), "reference": transaction.reference}
        )
        return transaction

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        data = self.storage.load(self.table_name, transaction_id)
        return Transaction.from_dict(data) if data else None

    def require_transaction(self, transaction_id: str) -> Transaction:
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def get_transaction_for(self, transaction_id: str, requester: User) -> Transaction:
        transaction = self.require_transaction(transaction_id)
        ensure_owner_or_admin(transaction.user_id, requester)
        return transaction

    def list_user_transactions(self, user_id: str) -> List[Transaction]:
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_transactions(self) -> List[Transaction]:
        return self._sorted(self.storage.load_all(self.table_name))

    def update_status(self, transaction_id: str, status: TransactionStatus) -> Transaction:
        """
        Change a transaction's status; entering COMPLETED applies it.

        Raises:
            InsufficientFundsError: completing a withdrawal the balance cannot cover
        """
        transaction = self.require_transaction(transaction_id)

        with self.ledger.user_scope(transaction.user_id):
            transaction = self.require_transaction(transaction_id)
            previous = transaction.status

            if status == TransactionStatus.COMPLETED and previous != TransactionStatus.COMPLETED:
                self._apply(transaction)

            transaction.status = status
            transaction.touch()
            self._save_transaction(transaction)

        log_action(
            self.logger, "info", "Transaction status changed",
            user_id=transaction.user_id, action="update_transaction_status",
            resource=f"transaction:{transaction.id}",
            extra={"from": previous.value, "to": status.value}
        )
        return transaction

    def _apply(self, transaction: Transaction) -> None:
        key = transition_id("transaction", transaction.id, TransactionStatus.COMPLETED.value)
        if transaction.transaction_type == TransactionType.DEPOSIT:
            self.ledger.credit(
                transaction.user_id, transaction.amount, key, EntryType.DEPOSIT,
                source_type="transaction", source_id=transaction.id,
                description=transaction.description or transaction.reference
            )
        else:
            self.ledger.debit(
                transaction.user_id, transaction.amount, key, EntryType.WITHDRAWAL,
                source_type="transaction", source_id=transaction.id,
                description=transaction.description or transaction.reference
            )

    def _save_transaction(self, transaction: Transaction) -> None:
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[Transaction]:
        transactions = [Transaction.from_dict(data) for data in records]
        transactions.sort(key=lambda t: t.created_at)
        return transactions
