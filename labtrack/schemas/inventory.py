from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from labtrack.models.inventory_item import ItemCategory, ItemCondition, ItemStatus, MaintenanceNeeds
from labtrack.utils.clock import as_utc


class InventoryCreateRequest(BaseModel):
    name:          str
    itemId:        Optional[str]          = None
    description:   Optional[str]          = None
    category:      ItemCategory           = ItemCategory.EQUIPMENT
    cost:          Decimal                = Decimal("0")
    roomAssigned:  str                    = ""
    condition:     ItemCondition          = ItemCondition.GOOD
    quantity:      int                    = Field(1, ge=0, le=100000)
    canBeBorrowed: bool                   = True
    nextMaintenance: Optional[datetime]   = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if not v.strip(): raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("cost")
    @classmethod
    def check_cost(cls, v):
        if v < 0: raise ValueError("Cost cannot be negative")
        return v

    @field_validator("nextMaintenance")
    @classmethod
    def normalize_date(cls, v):
        return as_utc(v)


class InventoryUpdateRequest(BaseModel):
    """Metadata only. Bucket levels change through the workflows, never here."""
    name:             Optional[str]              = None
    description:      Optional[str]              = None
    category:         Optional[ItemCategory]     = None
    cost:             Optional[Decimal]          = None
    roomAssigned:     Optional[str]              = None
    calibrator:       Optional[str]              = None
    condition:        Optional[ItemCondition]    = None
    status:           Optional[ItemStatus]       = None
    maintenanceNeeds: Optional[MaintenanceNeeds] = None
    nextMaintenance:  Optional[datetime]         = None

    @field_validator("cost")
    @classmethod
    def check_cost(cls, v):
        if v is not None and v < 0: raise ValueError("Cost cannot be negative")
        return v

    @field_validator("nextMaintenance")
    @classmethod
    def normalize_date(cls, v):
        return as_utc(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v in (ItemStatus.BORROWED, ItemStatus.DISPOSED):
            raise ValueError(f"Status '{v.value}' is managed by the workflows")
        return v


class BorrowingStatusRequest(BaseModel):
    canBeBorrowed: bool
