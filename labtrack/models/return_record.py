import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from labtrack.database import Base


class DamageSeverity(str, enum.Enum):
    NONE     = "None"
    MINOR    = "Minor"
    MODERATE = "Moderate"
    SEVERE   = "Severe"


class ReturnStatus(str, enum.Enum):
    PENDING   = "pending"
    APPROVED  = "approved"
    REJECTED  = "rejected"
    COMPLETED = "completed"


class ReturnRecord(Base):
    __tablename__ = "return_records"

    id                 = Column(Integer, primary_key=True, index=True)
    borrowingId        = Column(Integer, ForeignKey("borrowing_requests.id", ondelete="CASCADE"),
                                nullable=False, index=True)
    equipmentId        = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    borrowerName       = Column(String(200), nullable=False)
    borrowerEmail      = Column(String(200), nullable=False)
    equipmentName      = Column(String(200), nullable=False)
    intendedReturnDate = Column(TIMESTAMP(timezone=True), nullable=False)
    actualReturnDate   = Column(TIMESTAMP(timezone=True), nullable=False)
    conditionBefore    = Column(String(100), default="", nullable=False)
    conditionAfter     = Column(String(100), default="", nullable=False)
    damageDescription  = Column(Text, default="", nullable=False)
    damageSeverity     = Column(Enum(DamageSeverity), default=DamageSeverity.NONE, nullable=False)
    status             = Column(Enum(ReturnStatus), default=ReturnStatus.PENDING, nullable=False, index=True)
    isLate             = Column(Boolean, default=False, nullable=False)
    lateDays           = Column(Integer, default=0, nullable=False)
    penaltyFee         = Column(Numeric(12, 2), default=0, nullable=False)
    damageFee          = Column(Numeric(12, 2), default=0, nullable=False)
    totalFee           = Column(Numeric(12, 2), default=0, nullable=False)
    isFeePaid          = Column(Boolean, default=False, nullable=False)
    remarks            = Column(Text, default="", nullable=False)
    roomReturned       = Column(String(100), default="", nullable=False)
    version            = Column(Integer, nullable=False)
    createdAt          = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt          = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                                onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ─── Relationships ─────────────────────────────────────────────────────────
    borrowing = relationship("BorrowingRequest", back_populates="return_records")

    def __repr__(self):
        return f"<ReturnRecord id={self.id} borrowingId={self.borrowingId} status={self.status}>"
