"""
Bonuses Module

Admin-granted bonuses. A bonus is credited to the user's balance once, on the
first transition into CREDITED.
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
from .users import UserManager


class BonusStatus(Enum):
    PENDING = "pending"
    CREDITED = "credited"


@dataclass
class Bonus(StorageRecord):
    user_id: str
    username: str
    amount: Decimal
    bonus_type: str = ""
    reason: str = ""
    expires_at: Optional[datetime] = None
    status: BonusStatus = BonusStatus.PENDING

    _decimal_fields = ("amount",)
    _datetime_fields = ("expires_at",)
    _enum_fields = {"status": BonusStatus}


class BonusManager:
    """Grants bonuses and credits them"""

    def __init__(self, storage: StorageInterface, ledger: AccountLedger,
                 user_manager: UserManager):
        self.storage = storage
        self.ledger = ledger
        self.user_manager = user_manager
        self.table_name = "bonuses"
        self.logger = get_logger("platform.bonuses")

    def create_bonus(
        self,
        user_id: str,
        amount: Decimal,
        bonus_type: str = "",
        reason: str = "",
        expires_at: Optional[datetime] = None
    ) -> Bonus:
        """Grant a pending bonus to an existing user"""
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        user = self.user_manager.require_user(user_id)

        now = datetime.now(timezone.utc)
        bonus = Bonus(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            username=user.username,
            amount=amount,
            bonus_type=bonus_type,
            reason=reason,
            expires_at=expires_at
        )
        self._save_bonus(bonus)

        log_action(
            self.logger, "info", "Bonus granted",
            user_id=user.id, action="create_bonus", resource=f"bonus:{bonus.id}",
            extra={"amount": str(amount), "type": bonus_type}
        )
        return bonus

    def get_bonus(self, bonus_id: str) -> Optional[Bonus]:
        data = self.storage.load(self.table_name, bonus_id)
        return Bonus.from_dict(data) if data else None

    def require_bonus(self, bonus_id: str) -> Bonus:
        bonus = self.get_bonus(bonus_id)
        if bonus is None:
            raise NotFoundError("Bonus", bonus_id)
        return bonus

    def list_user_bonuses(self, user_id: str) -> List[Bonus]:
        """Newest first"""
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_bonuses(self) -> List[Bonus]:
        """Newest first"""
        return self._sorted(self.storage.load_all(self.table_name))

    def update_status(self, bonus_id: str, status: BonusStatus) -> Bonus:
        """Entering CREDITED credits once; the ledger key enforces it, not the status check"""
        bonus = self.require_bonus(bonus_id)

        with self.ledger.user_scope(bonus.user_id):
            bonus = self.require_bonus(bonus_id)
            previous = bonus.status

            if status == BonusStatus.CREDITED and previous != BonusStatus.CREDITED:
                self.ledger.credit(
                    bonus.user_id, bonus.amount,
                    transition_id("bonus", bonus.id, BonusStatus.CREDITED.value),
                    EntryType.BONUS_CREDIT,
                    source_type="bonus", source_id=bonus.id,
                    description=bonus.reason or "Bonus credited"
                )

            bonus.status = status
            bonus.touch()
            self._save_bonus(bonus)

        log_action(
            self.logger, "info", "Bonus status changed",
            user_id=bonus.user_id, action="update_bonus_status", resource=f"bonus:{bonus.id}",
            extra={"from": previous.value, "to": status.value}
        )
        return bonus

    def _save_bonus(self, bonus: Bonus) -> None:
        self.storage.save(self.table_name, bonus.id, bonus.to_dict())

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[Bonus]:
        bonuses = [Bonus.from_dict(data) for data in records]
        bonuses.sort(key=lambda b: b.created_at, reverse=True)
        return bonuses
