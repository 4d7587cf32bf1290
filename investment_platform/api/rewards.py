"""
Bonus, activity and admin settings endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import PlatformSystem, get_platform, get_current_user, require_admin
from .schemas import (
    CreateBonusRequest, BonusStatusRequest, CreateActivityRequest,
    UpdateAdminSettingsRequest, record_response
)
from ..users import User


bonuses_router = APIRouter()
activities_router = APIRouter()
settings_router = APIRouter()


# Bonuses

@bonuses_router.post("", status_code=status.HTTP_201_CREATED)
def create_bonus(
    request: CreateBonusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Grant a bonus to a user (admin only)"""
    bonus = system.bonus_manager.create_bonus(**request.model_dump())
    return record_response(bonus)


@bonuses_router.get("")
def list_my_bonuses(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    return [record_response(b) for b in system.bonus_manager.list_user_bonuses(current_user.id)]


@bonuses_router.get("/all")
def list_bonuses(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return [
        record_response(b, user=system.user_manager.summary(b.user_id))
        for b in system.bonus_manager.list_bonuses()
    ]


@bonuses_router.put("/{bonus_id}/status")
def update_bonus_status(
    bonus_id: str,
    request: BonusStatusRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    """Crediting a bonus adds it to the balance once"""
    bonus = system.bonus_manager.update_status(bonus_id, request.status)
    return record_response(bonus, user=system.user_manager.summary(bonus.user_id))


# Activities

@activities_router.post("", status_code=status.HTTP_201_CREATED)
def create_activity(
    request: CreateActivityRequest,
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    activity = system.activity_manager.create_activity(
        current_user.id, request.activity_type, request.details.model_dump()
    )
    return record_response(activity)


@activities_router.get("/myactivities")
def list_my_activities(
    current_user: User = Depends(get_current_user),
    system: PlatformSystem = Depends(get_platform)
):
    return [record_response(a) for a in system.activity_manager.list_user_activities(current_user.id)]


def _all_activities(system: PlatformSystem) -> list:
    return [
        record_response(a, user=system.user_manager.summary(a.user_id))
        for a in system.activity_manager.list_activities()
    ]


@activities_router.get("")
def list_activities(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return _all_activities(system)


@activities_router.get("/all")
def list_all_activities(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return _all_activities(system)


# Admin settings

@settings_router.get("/view")
def view_admin_settings(system: PlatformSystem = Depends(get_platform)):
    """Deposit wallets, readable without a token"""
    return record_response(system.admin_settings_manager.get_or_create())


@settings_router.get("/edit")
def get_admin_settings(
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    return record_response(system.admin_settings_manager.get_or_create())


@settings_router.put("/edit")
def update_admin_settings(
    request: UpdateAdminSettingsRequest,
    admin: User = Depends(require_admin),
    system: PlatformSystem = Depends(get_platform)
):
    settings = system.admin_settings_manager.update(request.model_dump(exclude_none=True))
    return record_response(settings)
