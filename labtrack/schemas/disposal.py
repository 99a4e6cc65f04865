from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from labtrack.models.disposal_record import DisposalMethod, DisposalStatus
from labtrack.utils.clock import as_utc


class DisposalCreateRequest(BaseModel):
    inventoryItemId:  int
    reason:           str
    description:      str
    disposedBy:       str
    disposalMethod:   DisposalMethod
    disposalDate:     datetime
    disposalQuantity: int = Field(..., ge=1)
    salvageValue:     Decimal = Decimal("0")
    notes:            str = ""
    status:           DisposalStatus = DisposalStatus.PENDING

    @field_validator("reason", "description", "disposedBy")
    @classmethod
    def check_not_blank(cls, v, info):
        if not v.strip(): raise ValueError(f"{info.field_name} cannot be empty")
        return v.strip()

    @field_validator("salvageValue")
    @classmethod
    def check_salvage(cls, v):
        if v < 0: raise ValueError("Salvage value cannot be negative")
        return v

    @field_validator("disposalDate")
    @classmethod
    def normalize_date(cls, v):
        return as_utc(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v == DisposalStatus.CANCELLED:
            raise ValueError("A disposal cannot be created already cancelled")
        return v


class DisposalUpdateRequest(BaseModel):
    status:       Optional[DisposalStatus] = None
    salvageValue: Optional[Decimal]        = None
    notes:        Optional[str]            = None

    @field_validator("salvageValue")
    @classmethod
    def check_salvage(cls, v):
        if v is not None and v < 0: raise ValueError("Salvage value cannot be negative")
        return v
