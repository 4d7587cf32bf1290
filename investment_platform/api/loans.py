"""
Loan type and loan order endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import PlatformSystem, get_platform, get_current_user, require_admin
from .schemas import (
    CreateLoanTypeRequest, UpdateLoanTypeRequest, CreateLoanOrderRequest,
    LoanOrderStatusRequest, record_response
)
from ..loans import LoanOrder
from ..users import User


router = APIRouter()
orders_router = APIRouter()


# Loan types

@router.get("")
def list_loan_types(system: PlatformSystem = Depends(get_platform)):
    return [record_response(t) for t in system.loan_type_manager.list_loan_types()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_loan_type(
    request: CreateLoanTypeRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    loan_type = system.loan_type_manager.create_loan_type(**request.model_dump())
    return record_response(loan_type)


@router.get("/{loan_type_id}")
def get_loan_type(loan_type_id: str, system: PlatformSystem = Depends(get_platform)):
    return record_response(system.loan_type_manager.require_loan_type(loan_type_id))


@router.put("/{loan_type_id}")
def update_loan_type(
    loan_type_id: str,
    request: UpdateLoanTypeRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    loan_type = system.loan_type_manager.update_loan_type(
        loan_type_id, request.model_dump(exclude_unset=True)
    )
    return record_response(loan_type)


@router.delete("/{loan_type_id}")
def delete_loan_type(
    loan_type_id: str,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    system.loan_type_manager.delete_loan_type(loan_type_id)
    return {"message": "Loan type removed"}


# Loan orders

def _order_response(order: LoanOrder, system: PlatformSystem) -> dict:
    loan_type = system.loan_type_manager.get_loan_type(order.loan_type_id)
    return record_response(
        order,
        user=system.user_manager.summary(order.user_id),
        loan_type=loan_type.summary() if loan_type else None
    )


@orders_router.post("", status_code=status.HTTP_201_CREATED)
def create_loan_order(
    request: CreateLoanOrderRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    """Apply for a loan; the repayment quote is computed here"""
    order = system.loan_order_manager.create_loan_order(
        user_id=current_user.id,
        loan_type_id=request.loan_type_id,
        amount=request.amount,
        duration=request.duration
    )
    return _order_response(order, system)


@orders_router.get("")
def list_my_loan_orders(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    orders = system.loan_order_manager.list_user_loan_orders(current_user.id)
    return [_order_response(order, system) for order in orders]


@orders_router.get("/all")
def list_loan_orders(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    orders = system.loan_order_manager.list_loan_orders()
    return [_order_response(order, system) for order in orders]


@orders_router.get("/{order_id}")
def get_loan_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    order = system.loan_order_manager.get_loan_order_for(order_id, current_user)
    return _order_response(order, system)


@orders_router.put("/{order_id}/status")
def update_loan_order_status(
    order_id: str,
    request: LoanOrderStatusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Approving credits the loan amount once"""
    order = system.loan_order_manager.update_status(order_id, request.status)
    return _order_response(order, system)
