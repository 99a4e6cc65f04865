from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from labtrack.database import Base


class LedgerMovement(Base):
    """Journal row for one bucket-to-bucket transfer on an inventory item."""
    __tablename__ = "ledger_movements"

    id         = Column(Integer, primary_key=True, index=True)
    itemId     = Column(Integer, ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True)
    fromBucket = Column(String(40), nullable=False)
    toBucket   = Column(String(40), nullable=False)
    quantity   = Column(Integer, nullable=False)
    workflow   = Column(String(40), nullable=False)   # borrowing | maintenance | disposal
    recordId   = Column(Integer, nullable=True)
    actor      = Column(String(200), nullable=True)
    createdAt  = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    item = relationship("InventoryItem", back_populates="movements")

    def __repr__(self):
        return (f"<LedgerMovement id={self.id} item={self.itemId} "
                f"{self.fromBucket}->{self.toBucket} x{self.quantity}>")
