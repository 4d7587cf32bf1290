"""
Tests for deposit requests
"""

import pytest
from decimal import Decimal

from investment_platform.storage import InMemoryStorage
from investment_platform.ledger import AccountLedger
from investment_platform.users import UserManager
from investment_platform.deposits import DepositRequestManager, RequestStatus
from investment_platform.errors import NotAuthorizedError, NotFoundError, ValidationError


@pytest.fixture
def setup():
    storage = InMemoryStorage()
    ledger = AccountLedger(storage)
    user_manager = UserManager(storage, ledger)
    manager = DepositRequestManager(storage, user_manager)
    user = user_manager.register("alice", "alice@example.com", "secret1")
    return manager, ledger, user_manager, user


def _deposit(manager, user_id, **kwargs):
    return manager.create_request(
        user_id=user_id,
        amount=Decimal(kwargs.pop("amount", "250")),
        crypto="USDT",
        blockchain="TRC20 (Tron)",
        wallet_address="T-wallet",
        payment_method="crypto",
        **kwargs
    )


class TestDepositRequests:

    def test_create_defaults(self, setup):
        manager, ledger, _, user = setup
        request = _deposit(manager, user.id)

        assert request.status == RequestStatus.PENDING
        assert request.transaction_ref == "N/A"
        assert request.username == "alice"
        assert manager.require_request(request.id).amount == Decimal("250")

    def test_create_validation(self, setup):
        manager, _, _, user = setup
        with pytest.raises(ValidationError):
            _deposit(manager, user.id, amount="0")
        with pytest.raises(NotFoundError):
            _deposit(manager, "missing")

    def test_confirmation_never_moves_balance(self, setup):
        manager, ledger, _, user = setup
        request = _deposit(manager, user.id)

        updated = manager.update_status(request.id, RequestStatus.CONFIRMED,
                                        transaction_ref="0xabc")

        assert updated.status == RequestStatus.CONFIRMED
        assert updated.transaction_ref == "0xabc"
        assert ledger.get_balance(user.id) == Decimal("0")
        assert ledger.list_entries(user.id) == []

    def test_status_update_keeps_reference_when_omitted(self, setup):
        manager, _, _, user = setup
        request = _deposit(manager, user.id, transaction_ref="0xdef")

        updated = manager.update_status(request.id, RequestStatus.REJECTED)
        assert updated.transaction_ref == "0xdef"

    def test_access_and_lists(self, setup):
        manager, _, user_manager, user = setup
        bob = user_manager.register("bob", "bob@example.com", "secret1")
        request = _deposit(manager, user.id)
        _deposit(manager, bob.id)

        assert len(manager.list_user_requests(user.id)) == 1
        assert len(manager.list_requests()) == 2
        with pytest.raises(NotAuthorizedError):
            manager.get_request_for(request.id, bob)
