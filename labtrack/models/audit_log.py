from sqlalchemy import Column, Index, Integer, String, Text, TIMESTAMP
from sqlalchemy.sql import func
from labtrack.database import Base


class AuditLog(Base):
    """One row per workflow action, written in the same transaction as its ledger movements."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_entity", "entityType", "entityId"),
    )

    id          = Column(Integer, primary_key=True, index=True)
    actor       = Column(String(200), nullable=False, default="system")
    action      = Column(String(30), nullable=False)        # CREATE, UPDATE, DELETE, APPROVE, REJECT, RETURN
    entityType  = Column(String(50), nullable=False)        # model class name
    entityId    = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AuditLog #{self.id} {self.actor} {self.action} {self.entityType}:{self.entityId}>"
