"""
Demo authentication for the ledger API

Every demo user signs in as one role. Supply-chain roles act on the ledger
through the wallet derived from that role's private key, so a user is only
useful for mutations once the wallets are bound at start-up.
"""
from typing import Dict, Optional
from pydantic import BaseModel
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from schemas import UserRole
from services.identity import IdentityResolver

security = HTTPBearer(auto_error=False)

DEMO_PASSWORD = "demo123"

class User(BaseModel):
    id: str
    username: str
    role: UserRole
    wallet_address: Optional[str] = None  # None for consumers and before wallets are bound

class AuthService:
    def __init__(self, resolver: Optional[IdentityResolver] = None):
        # Demo users - one per role, the username doubles as the bearer token
        self.demo_users: Dict[str, str] = {role.value: str(n) for n, role in enumerate(UserRole, start=1)}
        self.resolver = resolver

    def bind_wallets(self, resolver: Optional[IdentityResolver]) -> None:
        """Attach (or detach with None) the role wallets used to sign ledger calls"""
        self.resolver = resolver

    def _load_user(self, username: str) -> Optional[User]:
        user_id = self.demo_users.get(username)
        if user_id is None:
            return None
        role = UserRole(username)
        wallet = self.resolver.address_for(role) if self.resolver else None
        return User(id=user_id, username=username, role=role, wallet_address=wallet)

    def authenticate_user(self, username: str, password: str) -> Optional[User]:
        if password != DEMO_PASSWORD:
            return None
        return self._load_user(username)

    def get_user_by_token(self, token: str) -> Optional[User]:
        # In production, decode JWT token
        return self._load_user(token)

auth_service = AuthService()

def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[User]:
    """Current user, or None on public endpoints called without a token"""
    if not credentials:
        return None
    return auth_service.get_user_by_token(credentials.credentials)

def require_auth(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing authentication credentials"
        )
    return user

def require_wallet(allowed_roles: list[UserRole]):
    """Require one of the roles and a wallet to sign ledger calls with"""
    def wallet_checker(user: User = Depends(require_auth)) -> User:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        if not user.wallet_address:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {user.role.value} has no wallet"
            )
        return user
    return wallet_checker

# Ledger signers
require_manufacturer = require_wallet([UserRole.MANUFACTURER])
require_supply_chain_roles = require_wallet([
    UserRole.MANUFACTURER,
    UserRole.DISTRIBUTOR,
    UserRole.RETAILER,
])
