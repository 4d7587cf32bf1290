"""
Deposit Requests Module

Users announce crypto deposits; admins confirm or reject them. Confirming a
deposit request does not credit the balance. Funds are credited through a
deposit transaction instead.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .errors import NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .users import User, UserManager, ensure_owner_or_admin


class RequestStatus(Enum):
    """Lifecycle shared by deposit and withdrawal requests"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass
class DepositRequest(StorageRecord):
    """Announcement of an incoming crypto payment"""
    user_id: str
    username: str
    amount: Decimal
    crypto: str
    blockchain: str
    wallet_address: str
    payment_method: str
    transaction_ref: str = "N/A"
    status: RequestStatus = RequestStatus.PENDING

    _decimal_fields = ("amount",)
    _enum_fields = {"status": RequestStatus}


class DepositRequestManager:
    """Records deposit announcements and their review"""

    def __init__(self, storage: StorageInterface, user_manager: UserManager):
        self.storage = storage
        self.user_manager = user_manager
        self.table_name = "deposit_requests"
        self.logger = get_logger("platform.deposits")

    def create_request(
        self,
        user_id: str,
        amount: Decimal,
        crypto: str,
        blockchain: str,
        wallet_address: str,
        payment_method: str,
        transaction_ref: Optional[str] = None
    ) -> DepositRequest:
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        user = self.user_manager.require_user(user_id)

        now = datetime.now(timezone.utc)
        request = DepositRequest(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            username=user.username,
            amount=amount,
            crypto=crypto,
            blockchain=blockchain,
            wallet_address=wallet_address,
            payment_method=payment_method,
            transaction_ref=transaction_ref or "N/A"
        )
        self._save_request(request)

        log_action(
            self.logger, "info", "Deposit requested",
            user_id=user.id, action="create_deposit_request",
            resource=f"deposit_request:{request.id}",
            extra={"amount": str(amount), "crypto": crypto}
        )
        return request

    def get_request(self, request_id: str) -> Optional[DepositRequest]:
        data = self.storage.load(self.table_name, request_id)
        return DepositRequest.from_dict(data) if data else None

    def require_request(self, request_id: str) -> DepositRequest:
        request = self.get_request(request_id)
        if request is None:
            raise NotFoundError("Deposit request", request_id)
        return request

    def get_request_for(self, request_id: str, requester: User) -> DepositRequest:
        request = self.require_request(request_id)
        ensure_owner_or_admin(request.user_id, requester)
        return request

    def list_user_requests(self, user_id: str) -> List[DepositRequest]:
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_requests(self) -> List[DepositRequest]:
        return self._sorted(self.storage.load_all(self.table_name))

    def update_status(self, request_id: str, status: RequestStatus,
                      transaction_ref: Optional[str] = None) -> DepositRequest:
        """Admin review; never touches the balance"""
        request = self.require_request(request_id)
        previous = request.status

        request.status = status
        if transaction_ref:
            request.transaction_ref = transaction_ref
        request.touch()
        self._save_request(request)

        log_action(
            self.logger, "info", "Deposit request status changed",
            user_id=request.user_id, action="update_deposit_request_status",
            resource=f"deposit_request:{request.id}",
            extra={"from": previous.value, "to": status.value}
        )
        return request

    def _save_request(self, request: DepositRequest) -> None:
        self.storage.save(self.table_name, request.id, request.to_dict())

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[DepositRequest]:
        requests = [DepositRequest.from_dict(data) for data in records]
        requests.sort(key=lambda r: r.created_at)
        return requests
