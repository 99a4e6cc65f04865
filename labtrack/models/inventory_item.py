import enum
import secrets
import time
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Numeric, TIMESTAMP, Enum, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from labtrack.database import Base


class ItemCategory(str, enum.Enum):
    EQUIPMENT    = "Equipment"
    CONSUMABLES  = "Consumables"
    MATERIALS    = "Materials"
    INSTRUMENTS  = "Instruments"
    FURNITURE    = "Furniture"
    ELECTRONICS  = "Electronics"
    LIQUIDS      = "Liquids"
    SAFETY_GEAR  = "Safety Gear"
    LAB_SUPPLIES = "Lab Supplies"
    TOOLS        = "Tools"


class ItemCondition(str, enum.Enum):
    EXCELLENT         = "Excellent"
    GOOD              = "Good"
    FAIR              = "Fair"
    NEEDS_REPAIR      = "Needs Repair"
    UNDER_MAINTENANCE = "Under Maintenance"
    OUT_OF_STOCK      = "Out of Stock"


class ItemStatus(str, enum.Enum):
    ACTIVE   = "Active"
    INACTIVE = "Inactive"
    BORROWED = "Borrowed"
    DISPOSED = "Disposed"
    EXPIRED  = "Expired"


class MaintenanceNeeds(str, enum.Enum):
    YES       = "Yes"
    NO        = "No"
    SCHEDULED = "Scheduled"


BORROWABLE_CONDITIONS = {ItemCondition.EXCELLENT, ItemCondition.GOOD, ItemCondition.FAIR}


def generate_item_code() -> str:
    return f"INV-{secrets.token_hex(4).upper()}-{str(int(time.time() * 1000))[-4:]}"


class InventoryItem(Base):
    """
    One equipment SKU. Units are partitioned into buckets:

        availableQuantity + borrowedQuantity + maintenanceQuantity == quantity

    with written-off units counted in disposalQuantity, outside `quantity`.
    Buckets are only changed through services.ledger.transfer().
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint('quantity >= 0', name="ck_inventory_quantity_nonneg"),
        CheckConstraint('"availableQuantity" >= 0', name="ck_inventory_available_nonneg"),
        CheckConstraint('"borrowedQuantity" >= 0', name="ck_inventory_borrowed_nonneg"),
        CheckConstraint('"maintenanceQuantity" >= 0', name="ck_inventory_maintenance_nonneg"),
        CheckConstraint('"disposalQuantity" >= 0', name="ck_inventory_disposal_nonneg"),
        CheckConstraint(
            '"availableQuantity" + "borrowedQuantity" + "maintenanceQuantity" = quantity',
            name="ck_inventory_buckets_balance",
        ),
    )

    id               = Column(Integer, primary_key=True, index=True)
    itemId           = Column(String(40), unique=True, nullable=False, index=True, default=generate_item_code)
    name             = Column(String(200), nullable=False)
    description      = Column(Text, nullable=True)
    category         = Column(Enum(ItemCategory), default=ItemCategory.EQUIPMENT, nullable=False, index=True)
    cost             = Column(Numeric(12, 2), default=0, nullable=False)
    roomAssigned     = Column(String(100), default="", nullable=False)
    calibrator       = Column(String(100), default="", nullable=False)
    condition        = Column(Enum(ItemCondition), default=ItemCondition.GOOD, nullable=False)
    status           = Column(Enum(ItemStatus), default=ItemStatus.ACTIVE, nullable=False, index=True)
    maintenanceNeeds = Column(Enum(MaintenanceNeeds), default=MaintenanceNeeds.NO, nullable=False)
    lastMaintenance  = Column(TIMESTAMP(timezone=True), nullable=True)
    nextMaintenance  = Column(TIMESTAMP(timezone=True), nullable=True)
    canBeBorrowed    = Column(Boolean, default=True, nullable=False)
    isDisposed       = Column(Boolean, default=False, nullable=False)

    # ─── Ledger buckets ────────────────────────────────────────────────────────
    quantity            = Column(Integer, default=0, nullable=False)
    availableQuantity   = Column(Integer, default=0, nullable=False)
    borrowedQuantity    = Column(Integer, default=0, nullable=False)
    maintenanceQuantity = Column(Integer, default=0, nullable=False)
    disposalQuantity    = Column(Integer, default=0, nullable=False)

    createdAt = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                       onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    borrowings          = relationship("BorrowingRequest", back_populates="equipment")
    maintenance_records = relationship("MaintenanceRecord", back_populates="equipment")
    disposal_records    = relationship("DisposalRecord", back_populates="inventory_item")
    movements           = relationship("LedgerMovement", back_populates="item",
                                       cascade="all, delete-orphan")

    @property
    def totalQuantity(self) -> int:
        return self.quantity + self.disposalQuantity

    @property
    def borrowableQuantity(self) -> int:
        if not self.canBeBorrowed or self.isDisposed:
            return 0
        if self.status not in (ItemStatus.ACTIVE, ItemStatus.BORROWED):
            return 0
        if self.condition not in BORROWABLE_CONDITIONS:
            return 0
        return self.availableQuantity

    @property
    def isAvailable(self) -> bool:
        return self.availableQuantity > 0 and not self.isDisposed and self.status == ItemStatus.ACTIVE

    def __repr__(self):
        return (f"<InventoryItem id={self.id} name={self.name} qty={self.quantity} "
                f"avail={self.availableQuantity} borrowed={self.borrowedQuantity} "
                f"maint={self.maintenanceQuantity} disposed={self.disposalQuantity}>")
