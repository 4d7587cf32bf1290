"""
User endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import PlatformSystem, get_platform, get_current_user, require_admin
from .schemas import (
    RegisterRequest, LoginRequest, UpdateProfileRequest, AdminUpdateUserRequest,
    record_response
)
from ..security import create_access_token
from ..users import User


router = APIRouter()


def _with_token(user: User, system: PlatformSystem) -> dict:
    token = create_access_token(user.id, user.role.value, system.config)
    return record_response(user, token=token)


@router.post("", status_code=status.HTTP_201_CREATED)
def register_user(
    request: RegisterRequest,
    system: PlatformSystem = Depends(get_platform)
):
    """Register a new user and issue a token"""
    user = system.user_manager.register(
        username=request.username,
        email=request.email,
        password=request.password
    )
    return _with_token(user, system)


@router.post("/login")
def login(
    request: LoginRequest,
    system: PlatformSystem = Depends(get_platform)
):
    """Authenticate with email and password"""
    user = system.user_manager.authenticate(request.email, request.password)
    return _with_token(user, system)


@router.get("/profile")
def get_profile(current_user: User = Depends(get_current_user)):
    return record_response(current_user)


@router.put("/profile")
def update_profile(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    """Update the caller's own profile"""
    user = system.user_manager.update_profile(current_user.id, **request.model_dump())
    return _with_token(user, system)


@router.get("/all")
def list_users(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """List all users (admin only)"""
    return [record_response(user) for user in system.user_manager.list_users()]


@router.get("/{user_id}")
def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    user = system.user_manager.get_user_for(user_id, current_user)
    return record_response(user)


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    request: AdminUpdateUserRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Admin edit; a balance value is posted as a ledger adjustment"""
    user = system.user_manager.update_user(
        user_id, request.model_dump(exclude_unset=True), actor_id=admin.id
    )
    return record_response(user)


@router.get("/{user_id}/ledger")
def get_user_ledger(
    user_id: str,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    """Ledger entries and reconciled balance for a user"""
    user = system.user_manager.get_user_for(user_id, current_user)
    balance = system.ledger.reconcile(user.id)
    entries = system.ledger.list_entries(user.id)
    return {
        "user_id": user.id,
        "balance": str(balance),
        "entries": [record_response(entry) for entry in entries],
    }
