from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime

from labtrack.models.borrowing import BorrowerType, BorrowingStatus
from labtrack.utils.clock import as_utc


class BorrowingCreateRequest(BaseModel):
    equipmentId:        int
    borrowerType:       BorrowerType = BorrowerType.STUDENT
    borrowerId:         str
    borrowerName:       str
    borrowerEmail:      EmailStr
    purpose:            str
    description:        Optional[str] = None
    quantity:           int = Field(1, ge=1)
    intendedBorrowDate: datetime
    intendedReturnDate: datetime
    roomAssigned:       str = ""
    conditionOnBorrow:  Optional[str] = None

    @field_validator("borrowerId", "borrowerName", "purpose")
    @classmethod
    def check_not_blank(cls, v, info):
        if not v.strip(): raise ValueError(f"{info.field_name} cannot be empty")
        return v.strip()

    @field_validator("intendedBorrowDate", "intendedReturnDate")
    @classmethod
    def normalize_dates(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def check_dates(self) -> "BorrowingCreateRequest":
        if self.intendedReturnDate <= self.intendedBorrowDate:
            raise ValueError("intendedReturnDate must be after intendedBorrowDate")
        return self


class BorrowingUpdateRequest(BaseModel):
    """PATCH body: the target status drives which workflow action runs."""
    status:            BorrowingStatus
    adminRemarks:      Optional[str] = None
    remarks:           Optional[str] = None
    releasedBy:        Optional[str] = None
    receivedBy:        Optional[str] = None
    conditionOnReturn: Optional[str] = None
    damageReport:      Optional[str] = None

    @property
    def remark_text(self) -> Optional[str]:
        return self.adminRemarks or self.remarks
