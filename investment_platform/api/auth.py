"""
Authentication and authorization dependencies
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..storage import StorageInterface, create_storage
from ..ledger import AccountLedger
from ..users import User, UserManager
from ..assets import AssetManager, AssetOrderManager
from ..loans import LoanTypeManager, LoanOrderManager
from ..transactions import TransactionManager
from ..deposits import DepositRequestManager
from ..withdrawals import WithdrawalRequestManager
from ..bonuses import BonusManager
from ..activities import ActivityManager
from ..admin_settings import AdminSettingsManager
from ..config import PlatformConfig, get_config
from ..errors import NotAuthorizedError
from ..logging_config import get_logger
from ..security import decode_access_token


logger = get_logger("platform.api")


class PlatformSystem:
    """Investment platform with all components initialized"""

    def __init__(self, config: Optional[PlatformConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()

        # Initialize storage
        if storage is None:
            storage = create_storage(self.config.storage_backend, self.config.database_path)
        self.storage = storage

        # Balance changes all go through the ledger
        self.ledger = AccountLedger(self.storage)
        self.user_manager = UserManager(
            self.storage, self.ledger, password_min_length=self.config.password_min_length
        )

        self.asset_manager = AssetManager(self.storage)
        self.asset_order_manager = AssetOrderManager(self.storage, self.ledger, self.asset_manager)
        self.loan_type_manager = LoanTypeManager(self.storage)
        self.loan_order_manager = LoanOrderManager(self.storage, self.ledger, self.loan_type_manager)
        self.transaction_manager = TransactionManager(self.storage, self.ledger)
        self.deposit_request_manager = DepositRequestManager(self.storage, self.user_manager)
        self.withdrawal_request_manager = WithdrawalRequestManager(
            self.storage, self.ledger, self.user_manager
        )
        self.bonus_manager = BonusManager(self.storage, self.ledger, self.user_manager)
        self.activity_manager = ActivityManager(self.storage)
        self.admin_settings_manager = AdminSettingsManager(self.storage)

    def seed_default_admin(self) -> Optional[User]:
        """Create the configured admin account, if one is configured"""
        if not (self.config.default_admin_email and self.config.default_admin_password):
            return None
        return self.user_manager.ensure_default_admin(
            email=self.config.default_admin_email,
            username=self.config.default_admin_username,
            password=self.config.default_admin_password
        )

    def close(self) -> None:
        self.storage.close()


# Global platform instance, built on first use
_platform: Optional[PlatformSystem] = None


def get_platform() -> PlatformSystem:
    """Dependency to get the platform system"""
    global _platform
    if _platform is None:
        _platform = PlatformSystem()
    return _platform


def set_platform(system: Optional[PlatformSystem]) -> None:
    global _platform
    _platform = system


# JWT Security
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: PlatformSystem = Depends(get_platform)
) -> User:
    """Dependency that validates the bearer token and loads the user"""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Not authorized, no token")
    try:
        payload = decode_access_token(credentials.credentials, system.config)
    except NotAuthorizedError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)

    # Role comes from the stored user, not from the token
    user = system.user_manager.get_user(payload["sub"])
    if user is None:
        logger.warning(f"Token presented for unknown user {payload['sub']}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Not authorized, user not found")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependency that only lets admins through"""
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Not authorized as an admin")
    return current_user
