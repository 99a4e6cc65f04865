"""
Import all models here so that:
1. Alembic can auto-detect them when generating migrations
2. Relationships between models resolve correctly

Order matters: import parent tables before child tables.
"""

from labtrack.models.inventory_item import InventoryItem
from labtrack.models.borrowing import BorrowingRequest
from labtrack.models.maintenance_record import MaintenanceRecord
from labtrack.models.disposal_record import DisposalRecord
from labtrack.models.return_record import ReturnRecord
from labtrack.models.ledger_movement import LedgerMovement
from labtrack.models.audit_log import AuditLog

__all__ = [
    "InventoryItem",
    "BorrowingRequest",
    "MaintenanceRecord",
    "DisposalRecord",
    "ReturnRecord",
    "LedgerMovement",
    "AuditLog",
]
