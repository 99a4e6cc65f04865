import enum
from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, TIMESTAMP, Numeric, Enum, JSON, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from labtrack.database import Base
from labtrack.utils.clock import utcnow, as_utc


class MaintenanceType(str, enum.Enum):
    MAINTENANCE = "Maintenance"
    CALIBRATION = "Calibration"
    REPAIR      = "Repair"


class MaintenancePriority(str, enum.Enum):
    LOW      = "Low"
    MEDIUM   = "Medium"
    HIGH     = "High"
    CRITICAL = "Critical"


class MaintenanceStatus(str, enum.Enum):
    SCHEDULED   = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED   = "Completed"
    OVERDUE     = "Overdue"
    CANCELLED   = "Cancelled"


CLOSED_STATUSES = frozenset({MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED})


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_maintenance_quantity_positive"),
        CheckConstraint('"maintainedQuantity" >= 0 AND "maintainedQuantity" <= quantity',
                        name="ck_maintenance_maintained_range"),
    )

    id                 = Column(Integer, primary_key=True, index=True)
    equipmentId        = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    type               = Column(Enum(MaintenanceType), default=MaintenanceType.MAINTENANCE, nullable=False)
    priority           = Column(Enum(MaintenancePriority), default=MaintenancePriority.MEDIUM, nullable=False)
    quantity           = Column(Integer, default=1, nullable=False)
    maintainedQuantity = Column(Integer, default=0, nullable=False)
    status             = Column(Enum(MaintenanceStatus), default=MaintenanceStatus.SCHEDULED,
                                nullable=False, index=True)
    scheduledDate      = Column(TIMESTAMP(timezone=True), nullable=False)
    dueDate            = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    completedDate      = Column(TIMESTAMP(timezone=True), nullable=True)
    nextMaintenance    = Column(TIMESTAMP(timezone=True), nullable=True)
    assignedToName     = Column(String(200), nullable=False)
    description        = Column(Text, nullable=True)
    notes              = Column(Text, nullable=True)
    findings           = Column(Text, nullable=True)
    actionsTaken       = Column(Text, nullable=True)
    partsUsed          = Column(JSON, default=list, nullable=False)  # [{name, quantity, cost}]
    totalCost          = Column(Numeric(12, 2), default=0, nullable=False)
    estimatedDuration  = Column(Integer, default=1, nullable=False)  # days
    actualDuration     = Column(Integer, nullable=True)              # days
    version            = Column(Integer, nullable=False)
    createdAt          = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt          = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                                onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ─── Relationships ─────────────────────────────────────────────────────────
    equipment = relationship("InventoryItem", back_populates="maintenance_records")

    @property
    def remainingQuantity(self) -> int:
        return self.quantity - self.maintainedQuantity

    @property
    def outstandingQuantity(self) -> int:
        """Units of this job still sitting in the item's maintenance bucket."""
        if self.status in CLOSED_STATUSES:
            return 0
        return self.remainingQuantity

    @property
    def effective_status(self) -> MaintenanceStatus:
        if self.status == MaintenanceStatus.SCHEDULED and as_utc(self.dueDate) < utcnow():
            return MaintenanceStatus.OVERDUE
        return self.status

    def __repr__(self):
        return (f"<MaintenanceRecord id={self.id} equipmentId={self.equipmentId} "
                f"{self.maintainedQuantity}/{self.quantity} status={self.status}>")
