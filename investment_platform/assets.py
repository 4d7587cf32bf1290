"""
Assets Module

Tradable asset catalog and user asset orders. A buy order debits
``amount * price`` from the buyer when it is placed; later status changes on
the order never move the balance.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .errors import DuplicateError, NotFoundError, ValidationError
from .ledger import AccountLedger, EntryType, transition_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .users import User, ensure_owner_or_admin


class OrderType(Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class Asset(StorageRecord):
    """Catalog entry for something users can invest in"""
    name: str
    symbol: str
    price_range: str
    profit_potential: Decimal
    price: Decimal = Decimal("0")
    features: List[Dict[str, Any]] = field(default_factory=list)  # {text, included}
    trade_duration_days: Optional[int] = None
    button_text: str = ""
    is_popular: bool = False
    period: str = ""
    trade_time: str = ""

    _decimal_fields = ("profit_potential", "price")

    def summary(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "symbol": self.symbol}


@dataclass
class AssetOrder(StorageRecord):
    """A user's order against a catalog asset"""
    user_id: str
    asset_id: str
    order_id: str
    order_type: OrderType
    amount: Decimal
    price_at_order: Decimal
    total_cost: Decimal
    status: OrderStatus = OrderStatus.PENDING
    invited_by_user_id: Optional[str] = None
    editor_discount_applied: bool = False

    _decimal_fields = ("amount", "price_at_order", "total_cost")
    _enum_fields = {"order_type": OrderType, "status": OrderStatus}


# Catalog fields an admin may change after creation
ASSET_UPDATABLE_FIELDS = (
    "name", "symbol", "price", "price_range", "features", "profit_potential",
    "trade_duration_days", "button_text", "is_popular", "period", "trade_time",
)


class AssetManager:
    """Maintains the asset catalog"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "assets"
        self.logger = get_logger("platform.assets")

    def create_asset(
        self,
        name: str,
        symbol: str,
        price_range: str,
        profit_potential: Decimal,
        price: Decimal = Decimal("0"),
        features: Optional[List[Dict[str, Any]]] = None,
        trade_duration_days: Optional[int] = None,
        button_text: str = "",
        is_popular: bool = False,
        period: str = "",
        trade_time: str = ""
    ) -> Asset:
        """Add an asset; symbols are unique"""
        if self.storage.find_one(self.table_name, {"symbol": symbol}):
            raise DuplicateError(f"Asset with symbol {symbol} already exists")
        if price < 0:
            raise ValidationError("Price cannot be negative")

        now = datetime.now(timezone.utc)
        asset = Asset(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            symbol=symbol,
            price_range=price_range,
            profit_potential=profit_potential,
            price=price,
            features=features or [],
            trade_duration_days=trade_duration_days,
            button_text=button_text,
            is_popular=is_popular,
            period=period,
            trade_time=trade_time
        )
        self.storage.save(self.table_name, asset.id, asset.to_dict())

        log_action(
            self.logger, "info", f"Asset created: {symbol}",
            action="create_asset", resource=f"asset:{asset.id}"
        )
        return asset

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        data = self.storage.load(self.table_name, asset_id)
        return Asset.from_dict(data) if data else None

    def require_asset(self, asset_id: str) -> Asset:
        asset = self.get_asset(asset_id)
        if asset is None:
            raise NotFoundError("Asset", asset_id)
        return asset

    def list_assets(self) -> List[Asset]:
        assets = [Asset.from_dict(data) for data in self.storage.load_all(self.table_name)]
        assets.sort(key=lambda a: a.created_at)
        return assets

    def update_asset(self, asset_id: str, changes: Dict[str, Any]) -> Asset:
        """Apply the provided catalog fields"""
        asset = self.require_asset(asset_id)

        new_symbol = changes.get("symbol")
        if new_symbol and new_symbol != asset.symbol:
            if self.storage.find_one(self.table_name, {"symbol": new_symbol}):
                raise DuplicateError(f"Asset with symbol {new_symbol} already exists")

        for key in ASSET_UPDATABLE_FIELDS:
            if key in changes and changes[key] is not None:
                value = changes[key]
                if key in Asset._decimal_fields:
                    value = Decimal(str(value))
                setattr(asset, key, value)

        if asset.price < 0:
            raise ValidationError("Price cannot be negative")

        asset.touch()
        self.storage.save(self.table_name, asset.id, asset.to_dict())
        return asset

    def delete_asset(self, asset_id: str) -> None:
        if not self.storage.delete(self.table_name, asset_id):
            raise NotFoundError("Asset", asset_id)
        log_action(
            self.logger, "info", "Asset removed",
            action="delete_asset", resource=f"asset:{asset_id}"
        )


class AssetOrderManager:
    """Places and tracks asset orders"""

    def __init__(self, storage: StorageInterface, ledger: AccountLedger,
                 asset_manager: AssetManager):
        self.storage = storage
        self.ledger = ledger
        self.asset_manager = asset_manager
        self.table_name = "asset_orders"
        self.logger = get_logger("platform.asset_orders")

    def create_order(
        self,
        user_id: str,
        asset_id: str,
        order_type: OrderType,
        amount: Decimal,
        invited_by_user_id: Optional[str] = None,
        editor_discount_applied: bool = False
    ) -> AssetOrder:
        """
        Place an order at the asset's current price.

        Buy orders debit the total cost immediately and fail with
        InsufficientFundsError when the balance does not cover it.
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        asset = self.asset_manager.require_asset(asset_id)

        now = datetime.now(timezone.utc)
        order_id = str(uuid.uuid4())
        order = AssetOrder(
            id=order_id,
            created_at=now,
            updated_at=now,
            user_id=user_id,
            asset_id=asset.id,
            order_id=f"ORD-{order_id[:8].upper()}",
            order_type=order_type,
            amount=amount,
            price_at_order=asset.price,
            total_cost=amount * asset.price,
            invited_by_user_id=invited_by_user_id,
            editor_discount_applied=editor_discount_applied
        )

        with self.ledger.user_scope(user_id):
            if order_type == OrderType.BUY and order.total_cost > 0:
                self.ledger.debit(
                    user_id, order.total_cost,
                    transition_id("asset_order", order.id, "created"),
                    EntryType.ASSET_PURCHASE,
                    source_type="asset_order", source_id=order.id,
                    description=f"Buy {amount} {asset.symbol}"
                )
            self._save_order(order)

        log_action(
            self.logger, "info", f"Asset order placed: {order_type.value} {asset.symbol}",
            user_id=user_id, action="create_asset_order", resource=f"asset_order:{order.id}",
            extra={"amount": str(amount), "total_cost": str(order.total_cost)}
        )
        return order

    def get_order(self, order_id: str) -> Optional[AssetOrder]:
        data = self.storage.load(self.table_name, order_id)
        return AssetOrder.from_dict(data) if data else None

    def require_order(self, order_id: str) -> AssetOrder:
        order = self.get_order(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def get_order_for(self, order_id: str, requester: User) -> AssetOrder:
        order = self.require_order(order_id)
        ensure_owner_or_admin(order.user_id, requester)
        return order

    def list_user_orders(self, user_id: str) -> List[AssetOrder]:
        return self._sorted(self.storage.find(self.table_name, {"user_id": user_id}))

    def list_orders(self) -> List[AssetOrder]:
        return self._sorted(self.storage.load_all(self.table_name))

    def update_status(self, order_id: str, status: OrderStatus) -> AssetOrder:
        """Admin status change; rejected buy orders are not refunded"""
        order = self.require_order(order_id)
        previous = order.status
        order.status = status
        order.touch()
        self._save_order(order)

        log_action(
            self.logger, "info", "Asset order status changed",
            user_id=order.user_id, action="update_asset_order_status",
            resource=f"asset_order:{order.id}",
            extra={"from": previous.value, "to": status.value}
        )
        return order

    def _save_order(self, order: AssetOrder) -> None:
        self.storage.save(self.table_name, order.id, order.to_dict())

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[AssetOrder]:
        orders = [AssetOrder.from_dict(data) for data in records]
        orders.sort(key=lambda o: o.created_at)
        return orders
