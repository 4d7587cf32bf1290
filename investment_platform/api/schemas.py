"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from pydantic import BaseModel, Field, field_validator

from ..storage import StorageRecord
from ..users import UserRole
from ..assets import OrderType, OrderStatus
from ..loans import LoanOrderStatus
from ..transactions import TransactionType, TransactionStatus
from ..deposits import RequestStatus
from ..bonuses import BonusStatus


# Never sent back to clients
PRIVATE_FIELDS = ("password_hash", "password_salt")


def record_response(record: StorageRecord, exclude: Iterable[str] = (),
                    **extra: Any) -> Dict[str, Any]:
    """JSON projection of a stored record, with optional populated references"""
    data = record.to_dict()
    for key in tuple(exclude) + PRIVATE_FIELDS:
        data.pop(key, None)
    data.update(extra)
    return data


class FeatureModel(BaseModel):
    text: str
    included: bool = True


# User schemas
class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UpdateProfileRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    withdrawal_account: Optional[str] = None
    profile_image_url: Optional[str] = None
    password: Optional[str] = None


class AdminUpdateUserRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    phone: Optional[str] = None
    full_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    account_status: Optional[str] = None
    total_income: Optional[Decimal] = None
    balance: Optional[Decimal] = Field(None, ge=0, description="Target balance, posted as a ledger adjustment")


# Asset schemas
class CreateAssetRequest(BaseModel):
    name: str
    symbol: str
    price_range: str
    profit_potential: Decimal
    price: Decimal = Field(Decimal("0"), ge=0, description="Unit price used for buy orders")
    features: List[FeatureModel] = []
    trade_duration_days: Optional[int] = None
    button_text: str = ""
    is_popular: bool = False
    period: str = ""
    trade_time: str = ""


class UpdateAssetRequest(BaseModel):
    name: Optional[str] = None
    symbol: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    price_range: Optional[str] = None
    features: Optional[List[FeatureModel]] = None
    profit_potential: Optional[Decimal] = None
    trade_duration_days: Optional[int] = None
    button_text: Optional[str] = None
    is_popular: Optional[bool] = None
    period: Optional[str] = None
    trade_time: Optional[str] = None


class CreateAssetOrderRequest(BaseModel):
    asset_id: str
    order_type: OrderType = OrderType.BUY
    amount: Decimal = Field(..., gt=0, description="Units of the asset")
    invited_by_user_id: Optional[str] = None
    editor_discount_applied: bool = False


class AssetOrderStatusRequest(BaseModel):
    status: OrderStatus


# Loan schemas
class CreateLoanTypeRequest(BaseModel):
    name: str
    interest_rate: str = Field(..., description='Annual percent, e.g. "5" or "5%"')
    term: str
    amount_range: str
    quota: str
    application_fee: Decimal = Decimal("0")
    max_amount: Optional[Decimal] = None
    description_points: List[FeatureModel] = []
    button_text: str = ""
    button_link: str = ""

    @field_validator("interest_rate", mode="before")
    @classmethod
    def _rate_as_text(cls, value):
        return str(value)


class UpdateLoanTypeRequest(BaseModel):
    name: Optional[str] = None
    interest_rate: Optional[str] = None
    term: Optional[str] = None
    amount_range: Optional[str] = None
    quota: Optional[str] = None
    application_fee: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    description_points: Optional[List[FeatureModel]] = None
    button_text: Optional[str] = None
    button_link: Optional[str] = None

    @field_validator("interest_rate", mode="before")
    @classmethod
    def _rate_as_text(cls, value):
        return None if value is None else str(value)


class CreateLoanOrderRequest(BaseModel):
    loan_type_id: str
    amount: Decimal = Field(..., gt=0)
    duration: int = Field(..., gt=0, description="Months")


class LoanOrderStatusRequest(BaseModel):
    status: LoanOrderStatus


# Transaction schemas
class CreateTransactionRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    transaction_type: TransactionType
    description: str = ""


class TransactionStatusRequest(BaseModel):
    status: TransactionStatus


# Deposit and withdrawal request schemas
class CreateDepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    crypto: str
    blockchain: str
    wallet_address: str
    payment_method: str
    transaction_ref: Optional[str] = None


class DepositStatusRequest(BaseModel):
    status: RequestStatus
    transaction_ref: Optional[str] = None


class CreateWithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    wallet_address: str = ""
    method: str = ""
    account_details: str = ""


class WithdrawalStatusRequest(BaseModel):
    status: RequestStatus


# Bonus schemas
class CreateBonusRequest(BaseModel):
    user_id: str
    amount: Decimal = Field(..., gt=0)
    bonus_type: str = ""
    reason: str = ""
    expires_at: Optional[datetime] = None


class BonusStatusRequest(BaseModel):
    status: BonusStatus


# Activity schemas
class ActivityDetailsModel(BaseModel):
    ip_address: str = ""
    city: str = ""
    country: str = ""
    region_name: str = ""
    status: str = ""


class CreateActivityRequest(BaseModel):
    activity_type: str = Field(..., min_length=1)
    details: ActivityDetailsModel = ActivityDetailsModel()


# Admin settings schemas
class WalletModel(BaseModel):
    blockchain: Optional[str] = None
    wallet_address: Optional[str] = None


class UpdateAdminSettingsRequest(BaseModel):
    bitcoin: Optional[WalletModel] = None
    ethereum: Optional[WalletModel] = None
    usdt: Optional[WalletModel] = None
