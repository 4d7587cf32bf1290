"""
Deposit request and withdrawal request endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import PlatformSystem, get_platform, get_current_user, require_admin
from .schemas import (
    CreateDepositRequest, DepositStatusRequest, CreateWithdrawalRequest,
    WithdrawalStatusRequest, record_response
)
from ..storage import StorageRecord
from ..users import User


deposits_router = APIRouter()
withdrawals_router = APIRouter()


def _populated(request: StorageRecord, system: PlatformSystem) -> dict:
    return record_response(request, user=system.user_manager.summary(request.user_id))


# Deposit requests

@deposits_router.post("", status_code=status.HTTP_201_CREATED)
def create_deposit_request(
    request: CreateDepositRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    """Announce a deposit; the balance is not credited by this request"""
    deposit = system.deposit_request_manager.create_request(
        user_id=current_user.id, **request.model_dump()
    )
    return record_response(deposit)


@deposits_router.get("")
def list_my_deposit_requests(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    requests = system.deposit_request_manager.list_user_requests(current_user.id)
    return [record_response(r) for r in requests]


@deposits_router.get("/all")
def list_deposit_requests(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return [_populated(r, system) for r in system.deposit_request_manager.list_requests()]


@deposits_router.get("/{request_id}")
def get_deposit_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    deposit = system.deposit_request_manager.get_request_for(request_id, current_user)
    return record_response(deposit)


@deposits_router.put("/{request_id}/status")
def update_deposit_request_status(
    request_id: str,
    request: DepositStatusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    deposit = system.deposit_request_manager.update_status(
        request_id, request.status, transaction_ref=request.transaction_ref
    )
    return _populated(deposit, system)


# Withdrawal requests

@withdrawals_router.post("", status_code=status.HTTP_201_CREATED)
def create_withdrawal_request(
    request: CreateWithdrawalRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    """Request a payout; the amount is held from the balance right away"""
    withdrawal = system.withdrawal_request_manager.create_request(
        user_id=current_user.id, **request.model_dump()
    )
    return record_response(withdrawal)


@withdrawals_router.get("")
def list_my_withdrawal_requests(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    requests = system.withdrawal_request_manager.list_user_requests(current_user.id)
    return [record_response(r) for r in requests]


@withdrawals_router.get("/all")
def list_withdrawal_requests(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return [_populated(r, system) for r in system.withdrawal_request_manager.list_requests()]


@withdrawals_router.get("/{request_id}")
def get_withdrawal_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    withdrawal = system.withdrawal_request_manager.get_request_for(request_id, current_user)
    return record_response(withdrawal)


@withdrawals_router.put("/{request_id}/status")
def update_withdrawal_request_status(
    request_id: str,
    request: WithdrawalStatusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Rejecting a pending request returns the held amount"""
    withdrawal = system.withdrawal_request_manager.update_status(request_id, request.status)
    return _populated(withdrawal, system)
