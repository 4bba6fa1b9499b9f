from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import List, Optional
import logging
import uvicorn

from ledger import BatchLedger
from schemas import (
    Batch,
    BatchListResponse,
    BatchResponse,
    CreateBatchRequest,
    HistoryResponse,
    AnyLedgerEvent,
    LoginRequest,
    LoginResponse,
    RoleAssignments,
    SetRoleRequest,
    TransferRequest,
    UpdateStatusRequest,
    UserInfo,
    UserRole,
)
from config import settings
from utils import same_address
from auth import (
    auth_service,
    get_current_user,
    require_manufacturer,
    require_supply_chain_roles,
    User,
)
from services import (
    ErrorKind,
    IdentityResolver,
    LedgerError,
    LedgerStore,
    RoleRegistry,
    next_statuses,
    status_label,
)


logger = logging.getLogger("supplychain.backend")

# Global services
ledger: Optional[BatchLedger] = None
identity_resolver: Optional[IdentityResolver] = None

ERROR_STATUS_CODES = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.INVALID_STATE: 500,
}


def _require_service(service, name: str):
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} service is not available")
    return service


def _ledger_http_error(exc: LedgerError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS_CODES[exc.kind], detail=exc.to_dict())


def _map_batch(batch: Batch) -> BatchResponse:
    upcoming = next_statuses(batch.status)
    return BatchResponse(
        **batch.model_dump(),
        statusLabel=status_label(batch.status),
        nextStatuses=upcoming,
        isFinalStage=not upcoming,
    )


def _warn_on_wallet_drift(roles: RoleRegistry) -> None:
    """Demo users sign with their key wallet; a registry pointing elsewhere locks them out"""
    for role in (UserRole.DISTRIBUTOR, UserRole.RETAILER):
        wallet = identity_resolver.address_for(role) if identity_resolver else None
        registered = roles.address_of(role)
        if wallet and not same_address(wallet, registered):
            logger.warning(
                f"{role.value} wallet {wallet} is not the registered {role.value} {registered}; "
                f"the {role.value} user cannot advance batches"
            )


def build_ledger() -> BatchLedger:
    """Bring the ledger up from settings. Any bad key or address aborts start-up."""
    global identity_resolver
    identity_resolver = IdentityResolver.from_settings(settings)
    auth_service.bind_wallets(identity_resolver)

    roles = RoleRegistry.initialize(
        identity_resolver.address_for(UserRole.MANUFACTURER),
        settings.DISTRIBUTOR_ADDRESS or identity_resolver.address_for(UserRole.DISTRIBUTOR),
        settings.RETAILER_ADDRESS or identity_resolver.address_for(UserRole.RETAILER),
    )
    store = LedgerStore(settings.LEDGER_STATE_PATH) if settings.LEDGER_STATE_PATH else None
    svc = BatchLedger(roles, store=store, allow_transfer=settings.LEDGER_ALLOW_TRANSFER)
    _warn_on_wallet_drift(svc.roles)
    return svc


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    global ledger
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ledger = build_ledger()
    except (LedgerError, ValueError) as e:
        logger.error(f"Failed to initialize batch ledger: {e}")
        raise
    logger.info(f"Batch ledger ready with {await ledger.count()} batches")

    yield
    ledger = None
    auth_service.bind_wallets(None)

app = FastAPI(
    title="SupplyChain Ledger API",
    description="Role-gated batch lifecycle ledger with an append-only audit trail",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware for frontend communication
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"message": "SupplyChain Ledger API", "status": "running"}

@app.get("/health")
async def health_check():
    svc = _require_service(ledger, "Ledger")
    return {
        "status": "healthy",
        "batches": await svc.count(),
        "transferEnabled": svc.allow_transfer,
        "roles": svc.roles.snapshot(),
    }

# Authentication Endpoints
@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """Login endpoint for all user types"""
    user = auth_service.authenticate_user(request.username, request.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    # Return username as token for demo (use JWT in production)
    return LoginResponse(
        success=True,
        token=user.username,
        user={
            "id": user.id,
            "username": user.username,
            "role": user.role.value,
            "wallet_address": user.wallet_address
        },
        message=f"Logged in as {user.role.value}"
    )

@app.get("/auth/me", response_model=UserInfo)
async def get_current_user_info(user: User = Depends(get_current_user)):
    """Get current user information"""
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return UserInfo(
        id=user.id,
        username=user.username,
        role=user.role,
        wallet_address=user.wallet_address
    )

# Batch Management Endpoints
@app.post("/batches", response_model=BatchResponse, status_code=201)
async def create_batch(request: CreateBatchRequest, user: User = Depends(require_supply_chain_roles)):
    """Register a new batch (manufacturer wallet only)"""
    svc = _require_service(ledger, "Ledger")
    try:
        batch = await svc.create_batch(
            caller=user.wallet_address,
            batch_id=request.batchId,
            quantity=request.quantity,
            owner_ref=request.ownerRef,
            label=request.label,
            initial_location=request.location,
        )
    except LedgerError as e:
        raise _ledger_http_error(e) from e
    return _map_batch(batch)

@app.get("/batches", response_model=BatchListResponse)
async def list_batches(owner: Optional[str] = None):
    """All batches in creation order, optionally only those of one owner"""
    svc = _require_service(ledger, "Ledger")
    batch_ids = await svc.ids_by_owner(owner) if owner is not None else await svc.all_ids()
    batches = [_map_batch(await svc.get(batch_id)) for batch_id in batch_ids]
    return BatchListResponse(count=len(batches), batches=batches)

# Consumer Audit Endpoints (Public - no auth required)
@app.get("/batches/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: str):
    svc = _require_service(ledger, "Ledger")
    try:
        return _map_batch(await svc.get(batch_id))
    except LedgerError as e:
        raise _ledger_http_error(e) from e

@app.get("/batches/{batch_id}/history", response_model=HistoryResponse)
async def get_batch_history(batch_id: str):
    svc = _require_service(ledger, "Ledger")
    try:
        return HistoryResponse(batchId=batch_id, history=await svc.history(batch_id))
    except LedgerError as e:
        raise _ledger_http_error(e) from e

@app.post("/batches/{batch_id}/status", response_model=BatchResponse)
async def update_batch_status(
    batch_id: str,
    request: UpdateStatusRequest,
    user: User = Depends(require_supply_chain_roles),
):
    """Advance a batch to its next lifecycle status"""
    svc = _require_service(ledger, "Ledger")
    try:
        batch = await svc.update_status(
            caller=user.wallet_address,
            batch_id=batch_id,
            target_status=request.status,
            new_location=request.location,
        )
    except LedgerError as e:
        raise _ledger_http_error(e) from e
    return _map_batch(batch)

@app.post("/batches/{batch_id}/transfer", response_model=BatchResponse)
async def transfer_batch(
    batch_id: str,
    request: TransferRequest,
    user: User = Depends(require_supply_chain_roles),
):
    """Hand the batch to another address without changing its status"""
    svc = _require_service(ledger, "Ledger")
    try:
        batch = await svc.transfer_ownership(
            caller=user.wallet_address,
            batch_id=batch_id,
            new_holder=request.newHolder,
            new_location=request.location,
        )
    except LedgerError as e:
        raise _ledger_http_error(e) from e
    return _map_batch(batch)

@app.get("/events", response_model=List[AnyLedgerEvent])
async def list_events(since: int = 0, batchId: Optional[str] = None):
    svc = _require_service(ledger, "Ledger")
    events = await svc.events(since=since, batch_id=batchId)
    return events

# Role Administration Endpoints
@app.get("/roles", response_model=RoleAssignments)
async def get_roles():
    svc = _require_service(ledger, "Ledger")
    return svc.roles.snapshot()

@app.put("/roles/distributor", response_model=RoleAssignments)
async def set_distributor(request: SetRoleRequest, user: User = Depends(require_manufacturer)):
    svc = _require_service(ledger, "Ledger")
    try:
        await svc.set_distributor(user.wallet_address, request.address)
        _warn_on_wallet_drift(svc.roles)
    except LedgerError as e:
        raise _ledger_http_error(e) from e
    return svc.roles.snapshot()

@app.put("/roles/retailer", response_model=RoleAssignments)
async def set_retailer(request: SetRoleRequest, user: User = Depends(require_manufacturer)):
    svc = _require_service(ledger, "Ledger")
    try:
        await svc.set_retailer(user.wallet_address, request.address)
        _warn_on_wallet_drift(svc.roles)
    except LedgerError as e:
        raise _ledger_http_error(e) from e
    return svc.roles.snapshot()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG
    )
