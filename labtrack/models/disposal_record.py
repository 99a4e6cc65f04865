import enum
from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, Numeric, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from labtrack.database import Base


class DisposalMethod(str, enum.Enum):
    RECYCLE         = "Recycle"
    LANDFILL        = "Landfill"
    INCINERATION    = "Incineration"
    HAZARDOUS_WASTE = "Hazardous Waste"
    DONATION        = "Donation"
    OTHER           = "Other"


class DisposalStatus(str, enum.Enum):
    PENDING   = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class DisposalRecord(Base):
    __tablename__ = "disposal_records"
    __table_args__ = (
        CheckConstraint('"disposalQuantity" >= 1', name="ck_disposal_quantity_positive"),
        CheckConstraint('"salvageValue" >= 0', name="ck_disposal_salvage_nonneg"),
    )

    id               = Column(Integer, primary_key=True, index=True)
    inventoryItemId  = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    itemId           = Column(String(40), nullable=False)
    equipmentName    = Column(String(200), nullable=False)
    category         = Column(String(50), nullable=False, index=True)
    reason           = Column(String(200), nullable=False)
    description      = Column(Text, nullable=False)
    disposedBy       = Column(String(200), nullable=False)
    originalCost     = Column(Numeric(12, 2), default=0, nullable=False)
    salvageValue     = Column(Numeric(12, 2), default=0, nullable=False)
    disposalMethod   = Column(Enum(DisposalMethod), nullable=False)
    status           = Column(Enum(DisposalStatus), default=DisposalStatus.PENDING, nullable=False, index=True)
    notes            = Column(Text, default="", nullable=False)
    disposalDate     = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    disposalQuantity = Column(Integer, nullable=False)
    version          = Column(Integer, nullable=False)
    createdAt        = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt        = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                              onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ─── Relationships ─────────────────────────────────────────────────────────
    inventory_item = relationship("InventoryItem", back_populates="disposal_records")

    @property
    def holds_units(self) -> bool:
        """Cancelled records have already handed their units back."""
        return self.status != DisposalStatus.CANCELLED

    def __repr__(self):
        return f"<DisposalRecord id={self.id} itemId={self.itemId} qty={self.disposalQuantity} status={self.status}>"
