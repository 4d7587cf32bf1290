"""
Account Ledger Module

Every change to a user's balance is an append-only ledger entry keyed by a
transition id ("<entity_type>:<entity_id>:<status>"). A transition id can be
posted at most once, so repeating a status update never moves money twice.

The user's ``balance`` field is a cached sum of their entries. It is only
written here, under a per-user lock and inside one storage transaction
together with the entry, and can be rebuilt with ``reconcile``.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
from enum import Enum
from contextlib import contextmanager
import threading
import uuid

from .storage import StorageInterface, StorageRecord
from .errors import InsufficientFundsError, NotFoundError, ValidationError
from .logging_config import get_logger, log_action


# Entry ids are derived from transition ids so storage enforces uniqueness too
LEDGER_NAMESPACE = uuid.UUID("6f1c2a8e-3b7d-4f0a-9c55-0d2e8b41a7c3")

USERS_TABLE = "users"


class EntryType(Enum):
    """Reason a ledger entry was posted"""
    LOAN_DISBURSEMENT = "loan_disbursement"
    BONUS_CREDIT = "bonus_credit"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_HOLD = "withdrawal_hold"
    WITHDRAWAL_REFUND = "withdrawal_refund"
    ASSET_PURCHASE = "asset_purchase"
    ADJUSTMENT = "adjustment"


@dataclass
class LedgerEntry(StorageRecord):
    """Signed balance delta for one user"""
    user_id: str
    amount: Decimal
    entry_type: EntryType
    transition_id: str
    balance_after: Decimal
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    description: str = ""

    _decimal_fields = ("amount", "balance_after")
    _enum_fields = {"entry_type": EntryType}

    @property
    def is_credit(self) -> bool:
        return self.amount > 0


def transition_id(entity_type: str, entity_id: str, status: str) -> str:
    """Idempotency key for a status transition"""
    return f"{entity_type}:{entity_id}:{status}"


class AccountLedger:
    """
    Applies balance deltas for status transitions, exactly once per transition.
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "ledger_entries"
        self.logger = get_logger("platform.ledger")
        self._user_locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _user_lock(self, user_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._user_locks[user_id] = lock
            return lock

    @contextmanager
    def user_scope(self, user_id: str) -> Iterator[None]:
        """
        Serialize balance work for one user and make it atomic.

        Callers that change an entity status together with the balance should
        do both inside one scope so a failure leaves neither written.
        """
        with self._user_lock(user_id):
            with self.storage.atomic():
                yield

    def has_entry(self, transition: str) -> bool:
        """Check whether a transition has already been posted"""
        return self.storage.exists(self.table_name, self._entry_id(transition))

    def credit(
        self,
        user_id: str,
        amount: Decimal,
        transition: str,
        entry_type: EntryType,
        source_type: Optional[str] = None,
        source_id: Optional[str] = None,
        description: str = ""
    ) -> Optional[LedgerEntry]:
        """Add a positive amount to the user's balance once per transition"""
        self._validate_amount(amount)
        return self._post(user_id, amount, transition, entry_type,
                          source_type, source_id, description, require_funds=False)

    def debit(
        self,
        user_id: str,
        amount: Decimal,
        transition: str,
        entry_type: EntryType,
        source_type: Optional[str] = None,
        source_id: Optional[str] = None,
        description: str = "",
        require_funds: bool = True
    ) -> Optional[LedgerEntry]:
        """
        Remove a positive amount from the user's balance once per transition

        Raises:
            InsufficientFundsError: if require_funds and the balance is too low
        """
        self._validate_amount(amount)
        return self._post(user_id, -amount, transition, entry_type,
                          source_type, source_id, description, require_funds=require_funds)

    def adjust_to(
        self,
        user_id: str,
        target_balance: Decimal,
        transition: str,
        description: str = "Manual balance adjustment"
    ) -> Optional[LedgerEntry]:
        """Post whatever delta brings the balance to target_balance"""
        if target_balance < 0:
            raise ValidationError("Balance cannot be negative")

        with self.user_scope(user_id):
            delta = target_balance - self.get_balance(user_id)
            if delta == 0:
                return None
            return self._post(user_id, delta, transition, EntryType.ADJUSTMENT,
                              "user", user_id, description, require_funds=False)

    def get_balance(self, user_id: str) -> Decimal:
        """Cached balance stored on the user record"""
        user_data = self.storage.load(USERS_TABLE, user_id)
        if not user_data:
            raise NotFoundError("User", user_id)
        return Decimal(str(user_data.get("balance", "0")))

    def compute_balance(self, user_id: str) -> Decimal:
        """Balance derived from the user's ledger entries"""
        total = Decimal("0")
        for entry in self.list_entries(user_id):
            total += entry.amount
        return total

    def reconcile(self, user_id: str) -> Decimal:
        """Rewrite the cached balance from the entry sum and return it"""
        with self.user_scope(user_id):
            user_data = self.storage.load(USERS_TABLE, user_id)
            if not user_data:
                raise NotFoundError("User", user_id)

            cached = Decimal(str(user_data.get("balance", "0")))
            derived = self.compute_balance(user_id)
            if cached != derived:
                log_action(
                    self.logger, "warning", "Cached balance drifted from ledger",
                    user_id=user_id, action="reconcile_balance", resource=f"user:{user_id}",
                    extra={"cached": str(cached), "derived": str(derived)}
                )
                user_data["balance"] = str(derived)
                user_data["updated_at"] = datetime.now(timezone.utc).isoformat()
                self.storage.save(USERS_TABLE, user_id, user_data)

            return derived

    def list_entries(self, user_id: Optional[str] = None) -> List[LedgerEntry]:
        """Ledger entries oldest first, optionally for one user"""
        if user_id:
            data = self.storage.find(self.table_name, {"user_id": user_id})
        else:
            data = self.storage.load_all(self.table_name)
        entries = [LedgerEntry.from_dict(item) for item in data]
        entries.sort(key=lambda e: e.created_at)
        return entries

    def get_entry(self, transition: str) -> Optional[LedgerEntry]:
        data = self.storage.load(self.table_name, self._entry_id(transition))
        if data:
            return LedgerEntry.from_dict(data)
        return None

    def _post(
        self,
        user_id: str,
        amount: Decimal,
        transition: str,
        entry_type: EntryType,
        source_type: Optional[str],
        source_id: Optional[str],
        description: str,
        require_funds: bool
    ) -> Optional[LedgerEntry]:
        with self.user_scope(user_id):
            if self.has_entry(transition):
                log_action(
                    self.logger, "info", "Transition already posted, skipping",
                    user_id=user_id, action="post_entry", resource=f"ledger:{transition}"
                )
                return None

            user_data = self.storage.load(USERS_TABLE, user_id)
            if not user_data:
                raise NotFoundError("User", user_id)

            balance = Decimal(str(user_data.get("balance", "0")))
            new_balance = balance + amount
            if require_funds and amount < 0 and new_balance < 0:
                raise InsufficientFundsError(user_id, balance, -amount)

            now = datetime.now(timezone.utc)
            entry = LedgerEntry(
                id=self._entry_id(transition),
                created_at=now,
                updated_at=now,
                user_id=user_id,
                amount=amount,
                entry_type=entry_type,
                transition_id=transition,
                balance_after=new_balance,
                source_type=source_type,
                source_id=source_id,
                description=description
            )
            self.storage.save(self.table_name, entry.id, entry.to_dict())

            user_data["balance"] = str(new_balance)
            user_data["updated_at"] = now.isoformat()
            self.storage.save(USERS_TABLE, user_id, user_data)

        log_action(
            self.logger, "info", f"Ledger entry posted: {entry_type.value}",
            user_id=user_id, action="post_entry", resource=f"ledger:{transition}",
            extra={
                "amount": str(amount),
                "balance_before": str(balance),
                "balance_after": str(new_balance),
                "source": f"{source_type}:{source_id}" if source_type else None
            }
        )
        return entry

    @staticmethod
    def _entry_id(transition: str) -> str:
        return str(uuid.uuid5(LEDGER_NAMESPACE, transition))

    @staticmethod
    def _validate_amount(amount: Decimal) -> None:
        if amount <= 0:
            raise ValidationError("Amount must be positive")
