"""
Transaction endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import PlatformSystem, get_platform, get_current_user, require_admin
from .schemas import CreateTransactionRequest, TransactionStatusRequest, record_response
from ..users import User


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_transaction(
    request: CreateTransactionRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    transaction = system.transaction_manager.create_transaction(
        user_id=current_user.id,
        amount=request.amount,
        transaction_type=request.transaction_type,
        description=request.description
    )
    return record_response(transaction)


@router.get("")
def list_my_transactions(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    transactions = system.transaction_manager.list_user_transactions(current_user.id)
    return [record_response(t) for t in transactions]


@router.get("/all")
def list_transactions(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return [
        record_response(t, user=system.user_manager.summary(t.user_id))
        for t in system.transaction_manager.list_transactions()
    ]


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    transaction = system.transaction_manager.get_transaction_for(transaction_id, current_user)
    return record_response(transaction)


@router.put("/{transaction_id}/status")
def update_transaction_status(
    transaction_id: str,
    request: TransactionStatusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Completing a transaction applies it to the balance once"""
    transaction = system.transaction_manager.update_status(transaction_id, request.status)
    return record_response(transaction, user=system.user_manager.summary(transaction.user_id))
