"""
Withdrawal Requests Module

The requested amount is held (debited) as soon as the request is created.
Rejecting a pending request returns the held amount exactly once; confirming
it leaves the balance as is.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import uuid

from .deposits import RequestStatus
from .errors import NotFoundError, ValidationError
from .ledger import AccountLedger, EntryType, transition_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .users import User, UserManager, ensure_owner_or_admin


@dataclass
class WithdrawalRequest(StorageRecord):
    """Request to pay out part of the balance"""
    user_id: str
    username: str
    amount: Decimal
    wallet_address: str = ""
    method: str = ""
    account_details: str = ""
    status: RequestStatus = RequestStatus.PENDING

    _decimal_fields = ("amount",)
    _enum_fields = {"status": RequestStatus}


class WithdrawalRequestManager:
    """Holds funds for withdrawals and refunds rejected ones"""

    def __init__(self, storage: StorageInterface, ledger: AccountLedger,
                 user_manager: UserManager):
        self.storage = storage
        self.ledger = ledger
        self.user_manager = user_manager
        self.table_name = "withdrawal_requests"
        self.logger = get_logger("platform.withdrawals")

    def create_request(
        self,
        user_id: str,
        amount: Decimal,
        wallet_address: str = "",
        method: str = "",
        account_details: str = ""
    ) -> WithdrawalRequest:
        """
        Create a pending request and debit the amount.

        Raises:
            InsufficientFundsError: amount exceeds the current balance
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        user = self.user_manager.require_user(user_id)

        now = datetime.now(timezone.utc)
        request = WithdrawalRequest(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            username=user.username,
            amount=amount,
            wallet_address=wallet_address,
            method=method,
            account_details=account_details
        )

        with self.ledger.user_scope(user.id):
            self.ledger.debit(
                user.id, amount,
                transition_id("withdrawal_request", request.id, "created"),
                EntryType.WITHDRAWAL_HOLD,
                source_type="withdrawal_request", source_id=request.id,
                description="Withdrawal requested"
            )
            self._save_request(request)

        log_action(
            self.logger, "info", "Withdrawal requested",
            user_id=user.id, action="create_withdrawal_request",
            resource=f"withdrawal_request:{request.id}",
            extra={"amount": str(amount)}
        )
        return request

    def get_request(self, request_id: str) -> Optional[WithdrawalRequest]:
        data = self.storage.load(self.table_name, request_id)
        return WithdrawalRequest.from_dict(data) if data else None

    def require_request(self, request_id: str) -> WithdrawalRequest:
        request = self.get_request(request_id)
        if request is None:
            raise NotFoundError("Withdrawal request", request_id)
        return request

    def get_request_for(self, request_id: str, requester: User) -> WithdrawalRequest:
        request = self.require_request(request_id)
        ensure_owner_or_admin(request.user_id, requester)
        return request

    def list_user_requests(self, user_id: str) -> List[WithdrawalRequest]:
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_requests(self) -> List[WithdrawalRequest]:
        return self._sorted(self.storage.load_all(self.table_name))

    def update_status(self, request_id: str, status: RequestStatus) -> WithdrawalRequest:
        """
        Admin decision; rejecting a pending request refunds the hold.

        A rejected request is final: the refund has been paid back, so it
        cannot be reopened or confirmed.
        """
        request = self.require_request(request_id)

        with self.ledger.user_scope(request.user_id):
            request = self.require_request(request_id)
            previous = request.status

            if previous == RequestStatus.REJECTED and status != RequestStatus.REJECTED:
                raise ValidationError("Rejected withdrawal requests cannot be reopened")

            if status == RequestStatus.REJECTED and previous == RequestStatus.PENDING:
                self.ledger.credit(
                    request.user_id, request.amount,
                    transition_id("withdrawal_request", request.id, RequestStatus.REJECTED.value),
                    EntryType.WITHDRAWAL_REFUND,
                    source_type="withdrawal_request", source_id=request.id,
                    description="Withdrawal rejected, funds returned"
                )

            request.status = status
            request.touch()
            self._save_request(request)

        log_action(
            self.logger, "info", "Withdrawal request status changed",
            user_id=request.user_id, action="update_withdrawal_request_status",
            resource=f"withdrawal_request:{request.id}",
            extra={"from": previous.value, "to": status.value}
        )
        return request

    def _save_request(self, request: WithdrawalRequest) -> None:
        self.storage.save(self.table_name, request.id, request.to_dict())

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[WithdrawalRequest]:
        requests = [WithdrawalRequest.from_dict(data) for data in records]
        requests.sort(key=lambda r: r.created_at)
        return requests
