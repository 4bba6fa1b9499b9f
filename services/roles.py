"""Role registry: which address plays manufacturer, distributor and retailer."""

from __future__ import annotations

import logging
from typing import Optional

from schemas import RoleAssignments, UserRole
from utils import normalize_address, same_address

from .errors import InvalidArgument, Unauthorized

logger = logging.getLogger(__name__)


class RoleRegistry:
    """
    Holds the three supply-chain role addresses.

    The manufacturer is fixed at creation. Distributor and retailer can be
    replaced, but only by the manufacturer.
    """

    def __init__(self, manufacturer: str, distributor: str, retailer: str):
        self._manufacturer = check_address(manufacturer, "manufacturer")
        self._distributor = check_address(distributor, "distributor")
        self._retailer = check_address(retailer, "retailer")

    @classmethod
    def initialize(
        cls,
        deployer: str,
        distributor: Optional[str] = None,
        retailer: Optional[str] = None,
    ) -> "RoleRegistry":
        """The deploying address becomes manufacturer; unset roles default to it."""
        registry = cls(deployer, distributor or deployer, retailer or deployer)
        logger.info(
            f"Role registry initialized: manufacturer={registry.manufacturer}, "
            f"distributor={registry.distributor}, retailer={registry.retailer}"
        )
        return registry

    @property
    def manufacturer(self) -> str:
        return self._manufacturer

    @property
    def distributor(self) -> str:
        return self._distributor

    @property
    def retailer(self) -> str:
        return self._retailer

    def address_of(self, role: UserRole) -> str:
        if role == UserRole.MANUFACTURER:
            return self._manufacturer
        if role == UserRole.DISTRIBUTOR:
            return self._distributor
        if role == UserRole.RETAILER:
            return self._retailer
        raise InvalidArgument(f"Role {role.value} has no registered address")

    def has_role(self, address: Optional[str], role: UserRole) -> bool:
        return same_address(address, self.address_of(role))

    def require_manufacturer(self, caller: Optional[str]) -> None:
        if not self.has_role(caller, UserRole.MANUFACTURER):
            raise Unauthorized("Only the manufacturer can perform this action")

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------
    def set_distributor(self, caller: str, address: str) -> str:
        self.require_manufacturer(caller)
        self._distributor = check_address(address, "distributor")
        logger.info(f"Distributor changed to {self._distributor}")
        return self._distributor

    def set_retailer(self, caller: str, address: str) -> str:
        self.require_manufacturer(caller)
        self._retailer = check_address(address, "retailer")
        logger.info(f"Retailer changed to {self._retailer}")
        return self._retailer

    def snapshot(self) -> RoleAssignments:
        return RoleAssignments(
            manufacturer=self._manufacturer,
            distributor=self._distributor,
            retailer=self._retailer,
        )

    @classmethod
    def from_snapshot(cls, data: RoleAssignments) -> "RoleRegistry":
        return cls(data.manufacturer, data.distributor, data.retailer)


def check_address(address: Optional[str], role: str) -> str:
    """Normalize a role or holder address, raising InvalidArgument when unusable."""
    try:
        return normalize_address(address)
    except ValueError:
        raise InvalidArgument(f"Invalid {role} address: {address!r}") from None
