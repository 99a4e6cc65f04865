import enum
from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from labtrack.database import Base
from labtrack.utils.clock import utcnow, as_utc


class BorrowerType(str, enum.Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    GUEST   = "guest"


class BorrowingStatus(str, enum.Enum):
    PENDING          = "pending"
    APPROVED         = "approved"
    REJECTED         = "rejected"
    RELEASED         = "released"
    OVERDUE          = "overdue"
    RETURN_REQUESTED = "return_requested"
    RETURN_APPROVED  = "return_approved"
    RETURN_REJECTED  = "return_rejected"
    RETURNED         = "returned"


# Statuses in which the request's units sit in the item's borrowed bucket
HOLDING_STATUSES = frozenset({
    BorrowingStatus.APPROVED,
    BorrowingStatus.RELEASED,
    BorrowingStatus.OVERDUE,
    BorrowingStatus.RETURN_REQUESTED,
    BorrowingStatus.RETURN_APPROVED,
    BorrowingStatus.RETURN_REJECTED,
})

TRANSITIONS: dict[BorrowingStatus, frozenset[BorrowingStatus]] = {
    BorrowingStatus.PENDING:          frozenset({BorrowingStatus.APPROVED, BorrowingStatus.REJECTED}),
    BorrowingStatus.APPROVED:         frozenset({BorrowingStatus.RELEASED, BorrowingStatus.RETURNED,
                                                 BorrowingStatus.OVERDUE}),
    BorrowingStatus.RELEASED:         frozenset({BorrowingStatus.RETURN_REQUESTED, BorrowingStatus.RETURNED,
                                                 BorrowingStatus.OVERDUE}),
    BorrowingStatus.OVERDUE:          frozenset({BorrowingStatus.RETURN_REQUESTED, BorrowingStatus.RETURNED}),
    BorrowingStatus.RETURN_REQUESTED: frozenset({BorrowingStatus.RETURN_APPROVED, BorrowingStatus.RETURN_REJECTED,
                                                 BorrowingStatus.RETURNED}),
    BorrowingStatus.RETURN_APPROVED:  frozenset({BorrowingStatus.RETURNED}),
    BorrowingStatus.RETURN_REJECTED:  frozenset({BorrowingStatus.RETURN_REQUESTED, BorrowingStatus.RETURNED}),
    BorrowingStatus.REJECTED:         frozenset(),
    BorrowingStatus.RETURNED:         frozenset(),
}


class BorrowingRequest(Base):
    __tablename__ = "borrowing_requests"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_borrowing_quantity_positive"),
    )

    id                 = Column(Integer, primary_key=True, index=True)
    equipmentId        = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    borrowerType       = Column(Enum(BorrowerType), default=BorrowerType.STUDENT, nullable=False)
    borrowerId         = Column(String(100), nullable=False, index=True)
    borrowerName       = Column(String(200), nullable=False)
    borrowerEmail      = Column(String(200), nullable=False)
    purpose            = Column(Text, nullable=False)
    description        = Column(Text, nullable=True)
    quantity           = Column(Integer, default=1, nullable=False)
    status             = Column(Enum(BorrowingStatus), default=BorrowingStatus.PENDING, nullable=False, index=True)
    requestedDate      = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    intendedBorrowDate = Column(TIMESTAMP(timezone=True), nullable=False)
    intendedReturnDate = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    approvedDate       = Column(TIMESTAMP(timezone=True), nullable=True)
    releasedDate       = Column(TIMESTAMP(timezone=True), nullable=True)
    returnRequestDate  = Column(TIMESTAMP(timezone=True), nullable=True)
    returnApprovedDate = Column(TIMESTAMP(timezone=True), nullable=True)
    actualReturnDate   = Column(TIMESTAMP(timezone=True), nullable=True)
    approvedBy         = Column(String(200), nullable=True)
    releasedBy         = Column(String(200), nullable=True)
    receivedBy         = Column(String(200), nullable=True)
    adminRemarks       = Column(Text, nullable=True)
    conditionOnBorrow  = Column(String(100), nullable=True)
    conditionOnReturn  = Column(String(100), nullable=True)
    damageReport       = Column(Text, nullable=True)
    roomAssigned       = Column(String(100), default="", nullable=False)
    version            = Column(Integer, nullable=False)
    createdAt          = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt          = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                                onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ─── Relationships ─────────────────────────────────────────────────────────
    equipment      = relationship("InventoryItem", back_populates="borrowings")
    return_records = relationship("ReturnRecord", back_populates="borrowing", cascade="all, delete-orphan")

    @property
    def effective_status(self) -> BorrowingStatus:
        """Released requests past their return date read as overdue; nothing is written."""
        if (self.status == BorrowingStatus.RELEASED
                and as_utc(self.intendedReturnDate) < utcnow()):
            return BorrowingStatus.OVERDUE
        return self.status

    def __repr__(self):
        return f"<BorrowingRequest id={self.id} status={self.status} equipmentId={self.equipmentId}>"
