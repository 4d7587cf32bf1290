"""
Tests for user accounts: registration, authentication, profile and admin edits
"""

import pytest
from decimal import Decimal

from investment_platform.storage import InMemoryStorage
from investment_platform.ledger import AccountLedger, EntryType
from investment_platform.users import (
    UserManager, UserRole, ensure_owner_or_admin
)
from investment_platform.errors import (
    DuplicateError, NotAuthorizedError, NotFoundError, ValidationError
)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def ledger(storage):
    return AccountLedger(storage)


@pytest.fixture
def user_manager(storage, ledger):
    return UserManager(storage, ledger, password_min_length=6)


@pytest.fixture
def alice(user_manager):
    return user_manager.register("alice", "Alice@Example.com", "secret1")


class TestRegistration:

    def test_register_defaults(self, alice):
        assert alice.username == "alice"
        assert alice.email == "alice@example.com"
        assert alice.role == UserRole.USER
        assert alice.balance == Decimal("0")
        assert alice.account_status == "pending_verification"
        assert alice.password_hash != "secret1"
        assert alice.password_salt

    def test_duplicate_email_rejected(self, user_manager, alice):
        with pytest.raises(DuplicateError, match="User already exists"):
            user_manager.register("someone", "ALICE@example.com", "secret1")

    def test_duplicate_username_rejected(self, user_manager, alice):
        with pytest.raises(DuplicateError):
            user_manager.register("alice", "other@example.com", "secret1")

    def test_short_password_rejected(self, user_manager):
        with pytest.raises(ValidationError):
            user_manager.register("bob", "bob@example.com", "123")

    def test_blank_username_rejected(self, user_manager):
        with pytest.raises(ValidationError):
            user_manager.register("  ", "bob@example.com", "secret1")


class TestAuthentication:

    def test_valid_credentials(self, user_manager, alice):
        user = user_manager.authenticate("alice@example.com", "secret1")
        assert user.id == alice.id
        assert user.last_login is not None
        assert user_manager.get_user(alice.id).last_login is not None

    def test_email_is_case_insensitive(self, user_manager, alice):
        assert user_manager.authenticate("ALICE@EXAMPLE.COM", "secret1").id == alice.id

    def test_wrong_password(self, user_manager, alice):
        with pytest.raises(NotAuthorizedError, match="Invalid email or password"):
            user_manager.authenticate("alice@example.com", "wrong-password")

    def test_unknown_email(self, user_manager):
        with pytest.raises(NotAuthorizedError):
            user_manager.authenticate("nobody@example.com", "secret1")


class TestProfile:

    def test_update_profile_fields(self, user_manager, alice):
        user = user_manager.update_profile(
            alice.id, full_name="Alice Liddell", phone="555-0100",
            withdrawal_account="IBAN-1"
        )
        assert user.full_name == "Alice Liddell"
        assert user.phone == "555-0100"
        assert user.withdrawal_account == "IBAN-1"
        assert user.username == "alice"

    def test_update_password(self, user_manager, alice):
        user_manager.update_profile(alice.id, password="newsecret")
        assert user_manager.authenticate("alice@example.com", "newsecret").id == alice.id
        with pytest.raises(NotAuthorizedError):
            user_manager.authenticate("alice@example.com", "secret1")

    def test_update_to_taken_username(self, user_manager, alice):
        user_manager.register("bob", "bob@example.com", "secret1")
        with pytest.raises(DuplicateError):
            user_manager.update_profile(alice.id, username="bob")

    def test_profile_update_keeps_balance(self, user_manager, ledger, alice):
        ledger.credit(alice.id, Decimal("42"), "bonus:b1:credited", EntryType.BONUS_CREDIT)
        user = user_manager.update_profile(alice.id, full_name="Alice")
        assert user.balance == Decimal("42")


class TestAdminUpdates:

    def test_update_fields_and_role(self, user_manager, alice):
        user = user_manager.update_user(
            alice.id,
            {"role": UserRole.ADMIN, "account_status": "verified",
             "total_income": Decimal("12.5")},
            actor_id="admin-1"
        )
        assert user.is_admin
        assert user.account_status == "verified"
        assert user.total_income == Decimal("12.5")

    def test_balance_edit_is_ledger_adjustment(self, user_manager, ledger, alice):
        user = user_manager.update_user(alice.id, {"balance": Decimal("250")}, actor_id="admin-1")

        assert user.balance == Decimal("250")
        entries = ledger.list_entries(alice.id)
        assert len(entries) == 1
        assert entries[0].entry_type == EntryType.ADJUSTMENT
        assert ledger.compute_balance(alice.id) == Decimal("250")

    def test_repeated_balance_edits_each_post(self, user_manager, ledger, alice):
        user_manager.update_user(alice.id, {"balance": Decimal("100")}, actor_id="admin-1")
        user_manager.update_user(alice.id, {"balance": Decimal("40")}, actor_id="admin-1")

        assert ledger.get_balance(alice.id) == Decimal("40")
        assert len(ledger.list_entries(alice.id)) == 2

    def test_unknown_user(self, user_manager):
        with pytest.raises(NotFoundError):
            user_manager.update_user("missing", {"phone": "1"}, actor_id="admin-1")


class TestDefaultAdmin:

    def test_creates_admin(self, user_manager):
        admin = user_manager.ensure_default_admin("root@example.com", "root", "rootpass")
        assert admin.is_admin
        assert user_manager.find_by_email("root@example.com").id == admin.id

    def test_idempotent(self, user_manager):
        first = user_manager.ensure_default_admin("root@example.com", "root", "rootpass")
        second = user_manager.ensure_default_admin("root@example.com", "root", "rootpass")
        assert first.id == second.id
        assert len(user_manager.list_users()) == 1

    def test_promotes_existing_user(self, user_manager, alice):
        admin = user_manager.ensure_default_admin("alice@example.com", "alice", "secret1")
        assert admin.id == alice.id
        assert admin.is_admin


class TestOwnership:

    def test_owner_and_admin_allowed(self, user_manager, alice):
        admin = user_manager.register("root", "root@example.com", "rootpass", role=UserRole.ADMIN)
        ensure_owner_or_admin(alice.id, alice)
        ensure_owner_or_admin(alice.id, admin)

    def test_other_user_denied(self, user_manager, alice):
        bob = user_manager.register("bob", "bob@example.com", "secret1")
        with pytest.raises(NotAuthorizedError):
            ensure_owner_or_admin(alice.id, bob)
        with pytest.raises(NotAuthorizedError):
            user_manager.get_user_for(alice.id, bob)

    def test_summary(self, user_manager, alice):
        assert user_manager.summary(alice.id) == {
            "id": alice.id, "username": "alice", "email": "alice@example.com"
        }
        assert user_manager.summary(None) is None
        assert user_manager.summary("missing") is None
