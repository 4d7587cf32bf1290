"""
User Accounts Module

Registration, credential checks, profile management and admin edits for
platform users. Balances are never written here directly: admin balance edits
go through the ledger as adjustment entries.
"""

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import DuplicateError, NotAuthorizedError, NotFoundError, ValidationError
from .ledger import AccountLedger, USERS_TABLE, transition_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


class UserRole(Enum):
    """Platform roles"""
    USER = "user"
    ADMIN = "admin"


@dataclass
class User(StorageRecord):
    """Platform user with credentials and cached balance"""
    username: str
    email: str
    password_hash: str
    password_salt: str
    role: UserRole = UserRole.USER
    balance: Decimal = Decimal("0")
    full_name: str = ""
    phone: str = ""
    withdrawal_account: str = ""
    profile_image_url: str = ""
    account_status: str = "pending_verification"
    total_income: Decimal = Decimal("0")
    last_login: Optional[datetime] = None

    _decimal_fields = ("balance", "total_income")
    _datetime_fields = ("last_login",)
    _enum_fields = {"role": UserRole}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def summary(self) -> Dict[str, str]:
        """Reference projection used when other documents embed a user"""
        return {"id": self.id, "username": self.username, "email": self.email}


# Fields an admin may set through update_user, besides balance
ADMIN_EDITABLE_FIELDS = (
    "username", "email", "role", "phone", "full_name",
    "profile_image_url", "account_status", "total_income",
)


def ensure_owner_or_admin(owner_id: str, requester: User) -> None:
    """Allow access to the resource owner or any admin"""
    if owner_id != requester.id and not requester.is_admin:
        raise NotAuthorizedError()


class UserManager:
    """Creates, authenticates and updates platform users"""

    def __init__(self, storage: StorageInterface, ledger: AccountLedger,
                 password_min_length: int = 6):
        self.storage = storage
        self.ledger = ledger
        self.table_name = USERS_TABLE
        self.password_min_length = password_min_length
        self.logger = get_logger("platform.users")

    # Registration and authentication

    def register(self, username: str, email: str, password: str,
                 role: UserRole = UserRole.USER) -> User:
        """Create a new user; email and username must be unique"""
        email = self._normalize_email(email)
        username = username.strip()
        if not username:
            raise ValidationError("Username is required")
        self._validate_password(password)

        if self.find_by_email(email) or self.find_by_username(username):
            raise DuplicateError("User already exists")

        now = datetime.now(timezone.utc)
        salt = self._generate_salt()
        user = User(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            username=username,
            email=email,
            password_hash=self._hash_password(password, salt),
            password_salt=salt,
            role=role
        )
        self._save_user(user)

        log_action(
            self.logger, "info", "User registered",
            user_id=user.id, action="register_user", resource=f"user:{user.id}",
            extra={"username": username, "role": role.value}
        )
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Verify credentials and stamp last_login"""
        user = self.find_by_email(self._normalize_email(email))
        if not user or not self._verify_password(user, password):
            log_action(
                self.logger, "warning", "Login failed",
                action="login_failed", extra={"email": email}
            )
            raise NotAuthorizedError("Invalid email or password")

        with self.ledger.user_scope(user.id):
            user = self.require_user(user.id)
            user.last_login = datetime.now(timezone.utc)
            user.touch()
            self._save_user(user)

        log_action(
            self.logger, "info", "Login succeeded",
            user_id=user.id, action="login", resource=f"user:{user.id}"
        )
        return user

    def ensure_default_admin(self, email: str, username: str, password: str) -> User:
        """Create the configured admin, or promote the existing account"""
        existing = self.find_by_email(self._normalize_email(email))
        if existing is None:
            return self.register(username, email, password, role=UserRole.ADMIN)

        if not existing.is_admin:
            with self.ledger.user_scope(existing.id):
                existing = self.require_user(existing.id)
                existing.role = UserRole.ADMIN
                existing.touch()
                self._save_user(existing)
            log_action(
                self.logger, "info", "Existing user promoted to admin",
                user_id=existing.id, action="promote_admin", resource=f"user:{existing.id}"
            )
        return existing

    # Lookup

    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        data = self.storage.load(self.table_name, user_id)
        if not data:
            return None
        return User.from_dict(data)

    def require_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user_for(self, user_id: str, requester: User) -> User:
        """Get a user the requester is allowed to see"""
        user = self.require_user(user_id)
        ensure_owner_or_admin(user.id, requester)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        data = self.storage.find_one(self.table_name, {"email": email})
        return User.from_dict(data) if data else None

    def find_by_username(self, username: str) -> Optional[User]:
        data = self.storage.find_one(self.table_name, {"username": username})
        return User.from_dict(data) if data else None

    def list_users(self) -> List[User]:
        """All users, oldest first"""
        users = [User.from_dict(data) for data in self.storage.load_all(self.table_name)]
        users.sort(key=lambda u: u.created_at)
        return users

    def summary(self, user_id: Optional[str]) -> Optional[Dict[str, str]]:
        """Populate helper: {id, username, email} or None for dangling refs"""
        if not user_id:
            return None
        user = self.get_user(user_id)
        return user.summary() if user else None

    # Updates

    def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
        withdrawal_account: Optional[str] = None,
        profile_image_url: Optional[str] = None,
        password: Optional[str] = None
    ) -> User:
        """Self-service profile update; empty values leave fields unchanged"""
        with self.ledger.user_scope(user_id):
            user = self.require_user(user_id)

            if username and username != user.username:
                self._ensure_unique("username", username, user.id)
                user.username = username
            if email:
                email = self._normalize_email(email)
                if email != user.email:
                    self._ensure_unique("email", email, user.id)
                    user.email = email
            if full_name:
                user.full_name = full_name
            if phone:
                user.phone = phone
            if withdrawal_account:
                user.withdrawal_account = withdrawal_account
            if profile_image_url:
                user.profile_image_url = profile_image_url
            if password:
                self._validate_password(password)
                user.password_salt = self._generate_salt()
                user.password_hash = self._hash_password(password, user.password_salt)

            user.touch()
            self._save_user(user)

        log_action(
            self.logger, "info", "Profile updated",
            user_id=user_id, action="update_profile", resource=f"user:{user_id}"
        )
        return user

    def update_user(self, user_id: str, changes: Dict[str, Any], actor_id: str) -> User:
        """
        Admin edit of a user.

        A ``balance`` key is applied as a ledger adjustment so the cached
        balance keeps matching the entry log.
        """
        with self.ledger.user_scope(user_id):
            user = self.require_user(user_id)

            for key in ADMIN_EDITABLE_FIELDS:
                if key not in changes or changes[key] is None:
                    continue
                value = changes[key]
                if key == "username" and value != user.username:
                    self._ensure_unique("username", value, user.id)
                elif key == "email":
                    value = self._normalize_email(value)
                    if value != user.email:
                        self._ensure_unique("email", value, user.id)
                elif key == "role":
                    value = UserRole(value)
                elif key == "total_income":
                    value = Decimal(str(value))
                setattr(user, key, value)

            user.touch()
            self._save_user(user)

            if changes.get("balance") is not None:
                target = Decimal(str(changes["balance"]))
                adjustment_key = transition_id("user", user_id, f"adjust-{uuid.uuid4()}")
                self.ledger.adjust_to(user_id, target, adjustment_key,
                                      description=f"Balance set by admin {actor_id}")

            user = self.require_user(user_id)

        log_action(
            self.logger, "info", "User updated by admin",
            user_id=actor_id, action="update_user", resource=f"user:{user_id}",
            extra={"fields": sorted(k for k, v in changes.items() if v is not None)}
        )
        return user

    # Helpers

    def _save_user(self, user: User) -> None:
        """Persist user fields without clobbering the ledger-owned balance"""
        data = user.to_dict()
        stored = self.storage.load(self.table_name, user.id)
        if stored is not None:
            data["balance"] = stored.get("balance", "0")
        self.storage.save(self.table_name, user.id, data)

    def _ensure_unique(self, field_name: str, value: str, user_id: str) -> None:
        existing = self.storage.find_one(self.table_name, {field_name: value})
        if existing and existing["id"] != user_id:
            raise DuplicateError(f"A user with that {field_name} already exists")

    def _validate_password(self, password: str) -> None:
        if not password or len(password) < self.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.password_min_length} characters"
            )

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def _generate_salt(self) -> str:
        """Generate random salt for password hashing"""
        return secrets.token_hex(16)

    def _hash_password(self, password: str, salt: str) -> str:
        """Hash password with salt using scrypt"""
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, user: User, password: str) -> bool:
        expected = self._hash_password(password, user.password_salt)
        return secrets.compare_digest(expected, user.password_hash)
