from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from labtrack.models.maintenance_record import MaintenanceType, MaintenancePriority, MaintenanceStatus
from labtrack.utils.clock import as_utc


class PartUsed(BaseModel):
    name:     str
    quantity: int     = Field(..., ge=1)
    cost:     Decimal = Field(..., ge=0)


class MaintenanceCreateRequest(BaseModel):
    equipmentId:       int
    type:              MaintenanceType     = MaintenanceType.MAINTENANCE
    priority:          MaintenancePriority = MaintenancePriority.MEDIUM
    quantity:          int                 = Field(1, ge=1)
    scheduledDate:     datetime
    dueDate:           datetime
    nextMaintenance:   datetime
    assignedToName:    str
    description:       Optional[str]       = None
    estimatedDuration: int                 = Field(1, ge=0)
    partsUsed:         list[PartUsed]      = []
    totalCost:         Optional[Decimal]   = None

    @field_validator("assignedToName")
    @classmethod
    def check_assignee(cls, v):
        if not v.strip(): raise ValueError("assignedToName cannot be empty")
        return v.strip()

    @field_validator("totalCost")
    @classmethod
    def check_cost(cls, v):
        if v is not None and v < 0: raise ValueError("Cost cannot be negative")
        return v

    @field_validator("scheduledDate", "dueDate", "nextMaintenance")
    @classmethod
    def normalize_dates(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def check_dates(self) -> "MaintenanceCreateRequest":
        if self.dueDate < self.scheduledDate:
            raise ValueError("dueDate cannot be before scheduledDate")
        if self.nextMaintenance <= self.dueDate:
            raise ValueError("Next maintenance date must be after the due date")
        return self


class MaintenanceUpdateRequest(BaseModel):
    type:              Optional[MaintenanceType]     = None
    priority:          Optional[MaintenancePriority] = None
    status:            Optional[MaintenanceStatus]   = None
    quantity:          Optional[int]                 = Field(None, ge=1)
    scheduledDate:     Optional[datetime]            = None
    dueDate:           Optional[datetime]            = None
    nextMaintenance:   Optional[datetime]            = None
    assignedToName:    Optional[str]                 = None
    description:       Optional[str]                 = None
    notes:             Optional[str]                 = None
    findings:          Optional[str]                 = None
    actionsTaken:      Optional[str]                 = None
    estimatedDuration: Optional[int]                 = Field(None, ge=0)
    partsUsed:         Optional[list[PartUsed]]      = None
    totalCost:         Optional[Decimal]             = None

    @field_validator("scheduledDate", "dueDate", "nextMaintenance")
    @classmethod
    def normalize_dates(cls, v):
        return as_utc(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v == MaintenanceStatus.OVERDUE:
            raise ValueError("Overdue is derived from dueDate and cannot be set")
        return v

    @field_validator("totalCost")
    @classmethod
    def check_cost(cls, v):
        if v is not None and v < 0: raise ValueError("Cost cannot be negative")
        return v


class MaintenanceQuantityRequest(BaseModel):
    maintainedQuantity: int = Field(..., ge=0)
