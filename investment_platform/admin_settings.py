"""
Admin Settings Module

A single settings document holding the deposit wallet for each supported
coin. The document is created with defaults the first time it is read.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict

from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


SETTINGS_ID = "globalAdminSettings"

WALLET_DEFAULTS = {
    "bitcoin": "BTC",
    "ethereum": "ERC20 (ETH)",
    "usdt": "TRC20 (Tron)",
}


def _default_wallet(coin: str) -> Dict[str, str]:
    return {"blockchain": WALLET_DEFAULTS[coin], "wallet_address": ""}


@dataclass
class AdminSettings(StorageRecord):
    """Deposit wallets shown to users"""
    bitcoin: Dict[str, str] = field(default_factory=lambda: _default_wallet("bitcoin"))
    ethereum: Dict[str, str] = field(default_factory=lambda: _default_wallet("ethereum"))
    usdt: Dict[str, str] = field(default_factory=lambda: _default_wallet("usdt"))


class AdminSettingsManager:

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "admin_settings"
        self.logger = get_logger("platform.admin_settings")

    def get_or_create(self) -> AdminSettings:
        with self.storage.atomic():
            data = self.storage.load(self.table_name, SETTINGS_ID)
            if data:
                return AdminSettings.from_dict(data)

            now = datetime.now(timezone.utc)
            settings = AdminSettings(id=SETTINGS_ID, created_at=now, updated_at=now)
            self.storage.save(self.table_name, SETTINGS_ID, settings.to_dict())
            return settings

    def update(self, changes: Dict[str, Dict[str, Any]]) -> AdminSettings:
        """
        Merge wallet changes into the settings document, creating it if needed.

        Args:
            changes: coin name -> partial {blockchain, wallet_address}
        """
        with self.storage.atomic():
            settings = self.get_or_create()
            for coin in WALLET_DEFAULTS:
                wallet = changes.get(coin)
                if not wallet:
                    continue
                merged = dict(getattr(settings, coin))
                merged.update({k: str(v) for k, v in wallet.items() if v is not None})
                setattr(settings, coin, merged)

            settings.touch()
            self.storage.save(self.table_name, SETTINGS_ID, settings.to_dict())

        log_action(
            self.logger, "info", "Admin settings updated",
            action="update_admin_settings", resource=f"admin_settings:{SETTINGS_ID}",
            extra={"coins": sorted(k for k in changes if k in WALLET_DEFAULTS)}
        )
        return settings
