"""
Asset catalog and asset order endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import PlatformSystem, get_platform, get_current_user, require_admin
from .schemas import (
    CreateAssetRequest, UpdateAssetRequest, CreateAssetOrderRequest,
    AssetOrderStatusRequest, record_response
)
from ..assets import AssetOrder
from ..users import User


router = APIRouter()
orders_router = APIRouter()


# Catalog

@router.get("/all")
def list_assets_admin(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Admin view of the catalog"""
    return [record_response(asset) for asset in system.asset_manager.list_assets()]


@router.get("")
def list_assets(system: PlatformSystem = Depends(get_platform)):
    return [record_response(asset) for asset in system.asset_manager.list_assets()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_asset(
    request: CreateAssetRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    data = request.model_dump()
    asset = system.asset_manager.create_asset(**data)
    return record_response(asset)


@router.get("/{asset_id}")
def get_asset(asset_id: str, system: PlatformSystem = Depends(get_platform)):
    return record_response(system.asset_manager.require_asset(asset_id))


@router.put("/{asset_id}")
def update_asset(
    asset_id: str,
    request: UpdateAssetRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    asset = system.asset_manager.update_asset(asset_id, request.model_dump(exclude_unset=True))
    return record_response(asset)


@router.delete("/{asset_id}")
def delete_asset(
    asset_id: str,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    system.asset_manager.delete_asset(asset_id)
    return {"message": "Asset removed"}


# Orders

def _order_response(order: AssetOrder, system: PlatformSystem) -> dict:
    """Order with populated user and asset references"""
    asset = system.asset_manager.get_asset(order.asset_id)
    return record_response(
        order,
        user=system.user_manager.summary(order.user_id),
        asset=asset.summary() if asset else None,
        invited_by=system.user_manager.summary(order.invited_by_user_id)
    )


@orders_router.post("", status_code=status.HTTP_201_CREATED)
def create_asset_order(
    request: CreateAssetOrderRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    """Place an order; buy orders are paid from the balance immediately"""
    order = system.asset_order_manager.create_order(
        user_id=current_user.id,
        asset_id=request.asset_id,
        order_type=request.order_type,
        amount=request.amount,
        invited_by_user_id=request.invited_by_user_id,
        editor_discount_applied=request.editor_discount_applied
    )
    return _order_response(order, system)


@orders_router.get("")
def list_my_asset_orders(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    orders = system.asset_order_manager.list_user_orders(current_user.id)
    return [_order_response(order, system) for order in orders]


@orders_router.get("/all")
def list_asset_orders(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    orders = system.asset_order_manager.list_orders()
    return [_order_response(order, system) for order in orders]


@orders_router.get("/{order_id}")
def get_asset_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    order = system.asset_order_manager.get_order_for(order_id, current_user)
    return _order_response(order, system)


@orders_router.put("/{order_id}/status")
def update_asset_order_status(
    order_id: str,
    request: AssetOrderStatusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    order = system.asset_order_manager.update_status(order_id, request.status)
    return _order_response(order, system)
