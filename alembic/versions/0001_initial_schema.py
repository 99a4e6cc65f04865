"""initial schema: inventory ledger, workflow records, journal and audit log

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updatedAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("itemId", sa.String(40), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Enum("EQUIPMENT", "CONSUMABLES", "MATERIALS", "INSTRUMENTS", "FURNITURE",
                                      "ELECTRONICS", "LIQUIDS", "SAFETY_GEAR", "LAB_SUPPLIES", "TOOLS",
                                      name="itemcategory"), nullable=False),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("roomAssigned", sa.String(100), nullable=False),
        sa.Column("calibrator", sa.String(100), nullable=False),
        sa.Column("condition", sa.Enum("EXCELLENT", "GOOD", "FAIR", "NEEDS_REPAIR", "UNDER_MAINTENANCE",
                                       "OUT_OF_STOCK", name="itemcondition"), nullable=False),
        sa.Column("status", sa.Enum("ACTIVE", "INACTIVE", "BORROWED", "DISPOSED", "EXPIRED",
                                    name="itemstatus"), nullable=False),
        sa.Column("maintenanceNeeds", sa.Enum("YES", "NO", "SCHEDULED", name="maintenanceneeds"), nullable=False),
        sa.Column("lastMaintenance", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("nextMaintenance", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("canBeBorrowed", sa.Boolean(), nullable=False),
        sa.Column("isDisposed", sa.Boolean(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("availableQuantity", sa.Integer(), nullable=False),
        sa.Column("borrowedQuantity", sa.Integer(), nullable=False),
        sa.Column("maintenanceQuantity", sa.Integer(), nullable=False),
        sa.Column("disposalQuantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 0', name="ck_inventory_quantity_nonneg"),
        sa.CheckConstraint('"availableQuantity" >= 0', name="ck_inventory_available_nonneg"),
        sa.CheckConstraint('"borrowedQuantity" >= 0', name="ck_inventory_borrowed_nonneg"),
        sa.CheckConstraint('"maintenanceQuantity" >= 0', name="ck_inventory_maintenance_nonneg"),
        sa.CheckConstraint('"disposalQuantity" >= 0', name="ck_inventory_disposal_nonneg"),
        sa.CheckConstraint('"availableQuantity" + "borrowedQuantity" + "maintenanceQuantity" = quantity',
                           name="ck_inventory_buckets_balance"),
    )
    op.create_index("ix_inventory_items_id", "inventory_items", ["id"])
    op.create_index("ix_inventory_items_itemId", "inventory_items", ["itemId"], unique=True)
    op.create_index("ix_inventory_items_category", "inventory_items", ["category"])
    op.create_index("ix_inventory_items_status", "inventory_items", ["status"])

    op.create_table(
        "borrowing_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("equipmentId", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("borrowerType", sa.Enum("STUDENT", "FACULTY", "GUEST", name="borrowertype"), nullable=False),
        sa.Column("borrowerId", sa.String(100), nullable=False),
        sa.Column("borrowerName", sa.String(200), nullable=False),
        sa.Column("borrowerEmail", sa.String(200), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.Enum("PENDING", "APPROVED", "REJECTED", "RELEASED", "OVERDUE",
                                    "RETURN_REQUESTED", "RETURN_APPROVED", "RETURN_REJECTED", "RETURNED",
                                    name="borrowingstatus"), nullable=False),
        sa.Column("requestedDate", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("intendedBorrowDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("intendedReturnDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("approvedDate", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("releasedDate", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("returnRequestDate", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("returnApprovedDate", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("actualReturnDate", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("approvedBy", sa.String(200), nullable=True),
        sa.Column("releasedBy", sa.String(200), nullable=True),
        sa.Column("receivedBy", sa.String(200), nullable=True),
        sa.Column("adminRemarks", sa.Text(), nullable=True),
        sa.Column("conditionOnBorrow", sa.String(100), nullable=True),
        sa.Column("conditionOnReturn", sa.String(100), nullable=True),
        sa.Column("damageReport", sa.Text(), nullable=True),
        sa.Column("roomAssigned", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_borrowing_quantity_positive"),
    )
    op.create_index("ix_borrowing_requests_id", "borrowing_requests", ["id"])
    op.create_index("ix_borrowing_requests_equipmentId", "borrowing_requests", ["equipmentId"])
    op.create_index("ix_borrowing_requests_borrowerId", "borrowing_requests", ["borrowerId"])
    op.create_index("ix_borrowing_requests_status", "borrowing_requests", ["status"])
    op.create_index("ix_borrowing_requests_intendedReturnDate", "borrowing_requests", ["intendedReturnDate"])

    op.create_table(
        "maintenance_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("equipmentId", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("type", sa.Enum("MAINTENANCE", "CALIBRATION", "REPAIR", name="maintenancetype"), nullable=False),
        sa.Column("priority", sa.Enum("LOW", "MEDIUM", "HIGH", "CRITICAL", name="maintenancepriority"),
                  nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("maintainedQuantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.Enum("SCHEDULED", "IN_PROGRESS", "COMPLETED", "OVERDUE", "CANCELLED",
                                    name="maintenancestatus"), nullable=False),
        sa.Column("scheduledDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("dueDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completedDate", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("nextMaintenance", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("assignedToName", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("findings", sa.Text(), nullable=True),
        sa.Column("actionsTaken", sa.Text(), nullable=True),
        sa.Column("partsUsed", sa.JSON(), nullable=False),
        sa.Column("totalCost", sa.Numeric(12, 2), nullable=False),
        sa.Column("estimatedDuration", sa.Integer(), nullable=False),
        sa.Column("actualDuration", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_maintenance_quantity_positive"),
        sa.CheckConstraint('"maintainedQuantity" >= 0 AND "maintainedQuantity" <= quantity',
                           name="ck_maintenance_maintained_range"),
    )
    op.create_index("ix_maintenance_records_id", "maintenance_records", ["id"])
    op.create_index("ix_maintenance_records_equipmentId", "maintenance_records", ["equipmentId"])
    op.create_index("ix_maintenance_records_status", "maintenance_records", ["status"])
    op.create_index("ix_maintenance_records_dueDate", "maintenance_records", ["dueDate"])

    op.create_table(
        "disposal_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("inventoryItemId", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("itemId", sa.String(40), nullable=False),
        sa.Column("equipmentName", sa.String(200), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("reason", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("disposedBy", sa.String(200), nullable=False),
        sa.Column("originalCost", sa.Numeric(12, 2), nullable=False),
        sa.Column("salvageValue", sa.Numeric(12, 2), nullable=False),
        sa.Column("disposalMethod", sa.Enum("RECYCLE", "LANDFILL", "INCINERATION", "HAZARDOUS_WASTE",
                                            "DONATION", "OTHER", name="disposalmethod"), nullable=False),
        sa.Column("status", sa.Enum("PENDING", "COMPLETED", "CANCELLED", name="disposalstatus"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("disposalDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("disposalQuantity", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('"disposalQuantity" >= 1', name="ck_disposal_quantity_positive"),
        sa.CheckConstraint('"salvageValue" >= 0', name="ck_disposal_salvage_nonneg"),
    )
    op.create_index("ix_disposal_records_id", "disposal_records", ["id"])
    op.create_index("ix_disposal_records_inventoryItemId", "disposal_records", ["inventoryItemId"])
    op.create_index("ix_disposal_records_category", "disposal_records", ["category"])
    op.create_index("ix_disposal_records_status", "disposal_records", ["status"])
    op.create_index("ix_disposal_records_disposalDate", "disposal_records", ["disposalDate"])

    op.create_table(
        "return_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("borrowingId", sa.Integer(), sa.ForeignKey("borrowing_requests.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("equipmentId", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("borrowerName", sa.String(200), nullable=False),
        sa.Column("borrowerEmail", sa.String(200), nullable=False),
        sa.Column("equipmentName", sa.String(200), nullable=False),
        sa.Column("intendedReturnDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("actualReturnDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("conditionBefore", sa.String(100), nullable=False),
        sa.Column("conditionAfter", sa.String(100), nullable=False),
        sa.Column("damageDescription", sa.Text(), nullable=False),
        sa.Column("damageSeverity", sa.Enum("NONE", "MINOR", "MODERATE", "SEVERE", name="damageseverity"),
                  nullable=False),
        sa.Column("status", sa.Enum("PENDING", "APPROVED", "REJECTED", "COMPLETED", name="returnstatus"),
                  nullable=False),
        sa.Column("isLate", sa.Boolean(), nullable=False),
        sa.Column("lateDays", sa.Integer(), nullable=False),
        sa.Column("penaltyFee", sa.Numeric(12, 2), nullable=False),
        sa.Column("damageFee", sa.Numeric(12, 2), nullable=False),
        sa.Column("totalFee", sa.Numeric(12, 2), nullable=False),
        sa.Column("isFeePaid", sa.Boolean(), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=False),
        sa.Column("roomReturned", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_return_records_id", "return_records", ["id"])
    op.create_index("ix_return_records_borrowingId", "return_records", ["borrowingId"])
    op.create_index("ix_return_records_equipmentId", "return_records", ["equipmentId"])
    op.create_index("ix_return_records_status", "return_records", ["status"])

    op.create_table(
        "ledger_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("itemId", sa.Integer(), sa.ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("fromBucket", sa.String(40), nullable=False),
        sa.Column("toBucket", sa.String(40), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("workflow", sa.String(40), nullable=False),
        sa.Column("recordId", sa.Integer(), nullable=True),
        sa.Column("actor", sa.String(200), nullable=True),
        sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_ledger_movements_id", "ledger_movements", ["id"])
    op.create_index("ix_ledger_movements_itemId", "ledger_movements", ["itemId"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.String(200), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("entityType", sa.String(50), nullable=False),
        sa.Column("entityId", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entityType", "entityId"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("ledger_movements")
    op.drop_table("return_records")
    op.drop_table("disposal_records")
    op.drop_table("maintenance_records")
    op.drop_table("borrowing_requests")
    op.drop_table("inventory_items")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in ("itemcategory", "itemcondition", "itemstatus", "maintenanceneeds", "borrowertype",
                          "borrowingstatus", "maintenancetype", "maintenancepriority", "maintenancestatus",
                          "disposalmethod", "disposalstatus", "damageseverity", "returnstatus"):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
