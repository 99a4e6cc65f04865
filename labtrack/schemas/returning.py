from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from labtrack.models.return_record import DamageSeverity, ReturnStatus
from labtrack.utils.clock import as_utc


class ReturnCreateRequest(BaseModel):
    borrowingId:       int
    actualReturnDate:  Optional[datetime] = None
    conditionBefore:   str = ""
    conditionAfter:    str = ""
    damageDescription: str = ""
    damageSeverity:    DamageSeverity = DamageSeverity.NONE
    penaltyFee:        Optional[Decimal] = Field(None, ge=0)
    damageFee:         Decimal = Field(Decimal("0"), ge=0)
    isFeePaid:         bool = False
    remarks:           str = ""
    roomReturned:      str = ""

    @field_validator("actualReturnDate")
    @classmethod
    def normalize_date(cls, v):
        return as_utc(v)


class ReturnUpdateRequest(BaseModel):
    status:            Optional[ReturnStatus]   = None
    damageSeverity:    Optional[DamageSeverity] = None
    damageDescription: Optional[str]            = None
    conditionAfter:    Optional[str]            = None
    penaltyFee:        Optional[Decimal]        = Field(None, ge=0)
    damageFee:         Optional[Decimal]        = Field(None, ge=0)
    isFeePaid:         Optional[bool]           = None
    remarks:           Optional[str]            = None
