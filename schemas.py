from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union
from datetime import datetime
from enum import Enum

class BatchStatus(str, Enum):
    CREATED = "Created"
    DISPATCHED_BY_MANUFACTURER = "DispatchedByManufacturer"
    DELIVERED_TO_DISTRIBUTOR = "DeliveredToDistributor"
    DISPATCHED_BY_DISTRIBUTOR = "DispatchedByDistributor"
    DELIVERED_TO_RETAILER = "DeliveredToRetailer"
    DELIVERED_TO_CONSUMER = "DeliveredToConsumer"  # Final stage

class UserRole(str, Enum):
    MANUFACTURER = "manufacturer"
    DISTRIBUTOR = "distributor"
    RETAILER = "retailer"
    CONSUMER = "consumer"


# Ledger Models
class Batch(BaseModel):
    batchId: str
    quantity: int
    ownerRef: str
    label: str
    createdAt: datetime
    status: BatchStatus
    location: str
    holder: str
    history: List[str] = Field(default_factory=list)

class RoleAssignments(BaseModel):
    manufacturer: str
    distributor: str
    retailer: str


# Event Log
class LedgerEvent(BaseModel):
    sequence: int = Field(..., description="1-based commit order")
    timestamp: datetime
    batchId: str

class BatchCreated(LedgerEvent):
    event: Literal["BatchCreated"] = "BatchCreated"
    label: str
    quantity: int
    ownerRef: str

class BatchStatusUpdated(LedgerEvent):
    event: Literal["BatchStatusUpdated"] = "BatchStatusUpdated"
    newStatusLabel: str
    caller: str
    newLocation: str

class BatchTransferred(LedgerEvent):
    event: Literal["BatchTransferred"] = "BatchTransferred"
    fromHolder: str
    toHolder: str
    newLocation: str

AnyLedgerEvent = Annotated[
    Union[BatchCreated, BatchStatusUpdated, BatchTransferred],
    Field(discriminator="event"),
]


# Authentication Models
class LoginRequest(BaseModel):
    username: str
    password: str

class LoginResponse(BaseModel):
    success: bool
    token: str
    user: dict
    message: str

class UserInfo(BaseModel):
    id: str
    username: str
    role: UserRole
    wallet_address: Optional[str] = None

# Request Models
class CreateBatchRequest(BaseModel):
    batchId: str = Field(..., description="Unique batch identifier")
    quantity: int = Field(..., description="Number of units in the batch")
    ownerRef: str = Field(..., description="Off-chain owner reference")
    label: str = Field("", description="Internal batch name")
    location: str = Field(..., description="Initial physical location")

class UpdateStatusRequest(BaseModel):
    status: str = Field(..., description="Target status, enum value or label")
    location: str = Field(..., description="New physical location")

class TransferRequest(BaseModel):
    newHolder: str = Field(..., description="Address of the new holder")
    location: str = Field(..., description="New physical location")

class SetRoleRequest(BaseModel):
    address: str = Field(..., description="New role address")

# Response Models
class BatchResponse(Batch):
    statusLabel: str
    nextStatuses: List[BatchStatus]
    isFinalStage: bool  # True when delivered to the consumer

class HistoryResponse(BaseModel):
    batchId: str
    history: List[str]

class BatchListResponse(BaseModel):
    count: int
    batches: List[BatchResponse]
