"""Resolve authenticated role users to the wallet address they act as."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from eth_account import Account

from schemas import UserRole

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Each supply-chain role signs with its own wallet. Only the derived
    address is kept; private keys are not retained after start-up.
    """

    def __init__(self, role_keys: Dict[UserRole, str]):
        self._addresses: Dict[UserRole, str] = {}
        for role, private_key in role_keys.items():
            if not private_key:
                raise ValueError(f"Private key for role '{role.value}' is not configured")
            try:
                account = Account.from_key(private_key)
            except Exception as exc:
                raise ValueError(f"Invalid private key for role '{role.value}'") from exc
            self._addresses[role] = account.address
            logger.info(f"{role.value} wallet: {account.address}")

    @classmethod
    def from_settings(cls, settings) -> "IdentityResolver":
        return cls({
            UserRole.MANUFACTURER: settings.MANUFACTURER_PRIVATE_KEY,
            UserRole.DISTRIBUTOR: settings.DISTRIBUTOR_PRIVATE_KEY,
            UserRole.RETAILER: settings.RETAILER_PRIVATE_KEY,
        })

    def address_for(self, role: UserRole) -> Optional[str]:
        """Consumers and other unconfigured roles have no wallet."""
        return self._addresses.get(role)
