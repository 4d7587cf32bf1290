"""
Loans Module

Loan type catalog and user loan orders. The loan amount is credited to the
borrower exactly once, on the first transition of the order into APPROVED.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum
import uuid

from .errors import DuplicateError, NotFoundError, ValidationError
from .ledger import AccountLedger, EntryType, transition_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .users import User, ensure_owner_or_admin


CENT = Decimal("0.01")


class LoanOrderStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class LoanType(StorageRecord):
    """Catalog entry describing a loan product"""
    name: str
    interest_rate: str       # annual percent as entered, e.g. "5" or "5%"
    term: str
    amount_range: str
    quota: str
    application_fee: Decimal
    max_amount: Optional[Decimal] = None
    description_points: List[Dict[str, Any]] = field(default_factory=list)  # {text, included}
    button_text: str = ""
    button_link: str = ""

    _decimal_fields = ("application_fee", "max_amount")

    @property
    def annual_rate(self) -> Decimal:
        return parse_interest_rate(self.interest_rate)

    def summary(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "interest_rate": self.interest_rate}


@dataclass
class LoanOrder(StorageRecord):
    """A user's application for a loan of a given type"""
    user_id: str
    loan_type_id: str
    amount: Decimal
    duration: int            # months
    interest_rate: Decimal   # annual percent at the time of ordering
    monthly_payment: Decimal
    total_repayment: Decimal
    status: LoanOrderStatus = LoanOrderStatus.PENDING

    _decimal_fields = ("amount", "interest_rate", "monthly_payment", "total_repayment")
    _enum_fields = {"status": LoanOrderStatus}


def parse_interest_rate(value: Any) -> Decimal:
    """Read an annual percentage such as "7.5%", "7.5" or 7.5"""
    text = str(value).strip().rstrip("%").strip()
    try:
        rate = Decimal(text)
    except ArithmeticError:
        raise ValidationError(f"Invalid interest rate: {value}")
    if not rate.is_finite():
        raise ValidationError(f"Invalid interest rate: {value}")
    if rate < 0:
        raise ValidationError("Interest rate cannot be negative")
    return rate


def calculate_repayment(amount: Decimal, annual_rate_percent: Decimal,
                        months: int) -> Tuple[Decimal, Decimal]:
    """
    Equal-installment (annuity) repayment.

    Returns:
        (monthly_payment, total_repayment), both rounded to cents
    """
    if months <= 0:
        raise ValidationError("Duration must be at least one month")

    monthly_rate = annual_rate_percent / Decimal("100") / Decimal("12")
    if monthly_rate == 0:
        monthly = amount / Decimal(months)
    else:
        monthly = (amount * monthly_rate) / (1 - (1 + monthly_rate) ** -months)

    monthly = monthly.quantize(CENT, rounding=ROUND_HALF_UP)
    total = (monthly * months).quantize(CENT, rounding=ROUND_HALF_UP)
    return monthly, total


LOAN_TYPE_UPDATABLE_FIELDS = (
    "name", "interest_rate", "term", "amount_range", "quota", "application_fee",
    "max_amount", "description_points", "button_text", "button_link",
)


class LoanTypeManager:
    """Maintains the loan type catalog"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "loan_types"
        self.logger = get_logger("platform.loan_types")

    def create_loan_type(
        self,
        name: str,
        interest_rate: str,
        term: str,
        amount_range: str,
        quota: str,
        application_fee: Decimal,
        max_amount: Optional[Decimal] = None,
        description_points: Optional[List[Dict[str, Any]]] = None,
        button_text: str = "",
        button_link: str = ""
    ) -> LoanType:
        if self.storage.find_one(self.table_name, {"name": name}):
            raise DuplicateError(f"Loan type {name} already exists")
        parse_interest_rate(interest_rate)

        now = datetime.now(timezone.utc)
        loan_type = LoanType(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            interest_rate=str(interest_rate),
            term=term,
            amount_range=amount_range,
            quota=quota,
            application_fee=application_fee,
            max_amount=max_amount,
            description_points=description_points or [],
            button_text=button_text,
            button_link=button_link
        )
        self.storage.save(self.table_name, loan_type.id, loan_type.to_dict())

        log_action(
            self.logger, "info", f"Loan type created: {name}",
            action="create_loan_type", resource=f"loan_type:{loan_type.id}"
        )
        return loan_type

    def get_loan_type(self, loan_type_id: str) -> Optional[LoanType]:
        data = self.storage.load(self.table_name, loan_type_id)
        return LoanType.from_dict(data) if data else None

    def require_loan_type(self, loan_type_id: str) -> LoanType:
        loan_type = self.get_loan_type(loan_type_id)
        if loan_type is None:
            raise NotFoundError("Loan type", loan_type_id)
        return loan_type

    def list_loan_types(self) -> List[LoanType]:
        loan_types = [LoanType.from_dict(d) for d in self.storage.load_all(self.table_name)]
        loan_types.sort(key=lambda t: t.created_at)
        return loan_types

    def update_loan_type(self, loan_type_id: str, changes: Dict[str, Any]) -> LoanType:
        loan_type = self.require_loan_type(loan_type_id)

        new_name = changes.get("name")
        if new_name and new_name != loan_type.name:
            if self.storage.find_one(self.table_name, {"name": new_name}):
                raise DuplicateError(f"Loan type {new_name} already exists")

        for key in LOAN_TYPE_UPDATABLE_FIELDS:
            if key in changes and changes[key] is not None:
                value = changes[key]
                if key == "interest_rate":
                    parse_interest_rate(value)
                    value = str(value)
                elif key in LoanType._decimal_fields:
                    value = Decimal(str(value))
                setattr(loan_type, key, value)

        loan_type.touch()
        self.storage.save(self.table_name, loan_type.id, loan_type.to_dict())
        return loan_type

    def delete_loan_type(self, loan_type_id: str) -> None:
        if not self.storage.delete(self.table_name, loan_type_id):
            raise NotFoundError("Loan type", loan_type_id)
        log_action(
            self.logger, "info", "Loan type removed",
            action="delete_loan_type", resource=f"loan_type:{loan_type_id}"
        )


class LoanOrderManager:
    """Loan applications and their approval"""

    def __init__(self, storage: StorageInterface, ledger: AccountLedger,
                 loan_type_manager: LoanTypeManager):
        self.storage = storage
        self.ledger = ledger
        self.loan_type_manager = loan_type_manager
        self.table_name = "loan_orders"
        self.logger = get_logger("platform.loan_orders")

    def create_loan_order(self, user_id: str, loan_type_id: str,
                          amount: Decimal, duration: int) -> LoanOrder:
        """Quote and record a pending loan order"""
        loan_type = self.loan_type_manager.require_loan_type(loan_type_id)

        if amount <= 0:
            raise ValidationError("Amount must be positive")
        if loan_type.max_amount is not None and amount > loan_type.max_amount:
            raise ValidationError("Amount exceeds maximum for this loan type")

        rate = loan_type.annual_rate
        monthly_payment, total_repayment = calculate_repayment(amount, rate, duration)

        now = datetime.now(timezone.utc)
        order = LoanOrder(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            loan_type_id=loan_type.id,
            amount=amount,
            duration=duration,
            interest_rate=rate,
            monthly_payment=monthly_payment,
            total_repayment=total_repayment
        )
        self._save_order(order)

        log_action(
            self.logger, "info", "Loan order created",
            user_id=user_id, action="create_loan_order", resource=f"loan_order:{order.id}",
            extra={"amount": str(amount), "duration": duration, "rate": str(rate)}
        )
        return order

    def get_loan_order(self, order_id: str) -> Optional[LoanOrder]:
        data = self.storage.load(self.table_name, order_id)
        return LoanOrder.from_dict(data) if data else None

    def require_loan_order(self, order_id: str) -> LoanOrder:
        order = self.get_loan_order(order_id)
        if order is None:
            raise NotFoundError("Loan order", order_id)
        return order

    def get_loan_order_for(self, order_id: str, requester: User) -> LoanOrder:
        order = self.require_loan_order(order_id)
        ensure_owner_or_admin(order.user_id, requester)
        return order

    def list_user_loan_orders(self, user_id: str) -> List[LoanOrder]:
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_loan_orders(self) -> List[LoanOrder]:
        return self._sorted(self.storage.load_all(self.table_name))

    def update_status(self, order_id: str, status: LoanOrderStatus) -> LoanOrder:
        """
        Change an order's status; entering APPROVED credits the loan amount.

        The ledger key of the approval transition is what makes the credit
        happen once: approving an already approved order, approving it twice
        concurrently, or re-approving after a rejection all credit once. The
        status check below only skips a redundant ledger lookup.
        """
        order = self.require_loan_order(order_id)

        with self.ledger.user_scope(order.user_id):
            order = self.require_loan_order(order_id)
            previous = order.status

            if status == LoanOrderStatus.APPROVED and previous != LoanOrderStatus.APPROVED:
                self.ledger.credit(
                    order.user_id, order.amount,
                    transition_id("loan_order", order.id, LoanOrderStatus.APPROVED.value),
                    EntryType.LOAN_DISBURSEMENT,
                    source_type="loan_order", source_id=order.id,
                    description="Loan approved"
                )

            order.status = status
            order.touch()
            self._save_order(order)

        log_action(
            self.logger, "info", "Loan order status changed",
            user_id=order.user_id, action="update_loan_order_status",
            resource=f"loan_order:{order.id}",
            extra={"from": previous.value, "to": status.value}
        )
        return order

    def _save_order(self, order: LoanOrder) -> None:
        self.storage.save(self.table_name, order.id, order.to_dict())

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[LoanOrder]:
        orders = [LoanOrder.from_dict(data) for data in records]
        orders.sort(key=lambda o: o.created_at)
        return orders
