from sqlalchemy import or_
from sqlalchemy.orm import Session

from labtrack.database import atomic
from labtrack.models.borrowing import BorrowingRequest
from labtrack.models.disposal_record import DisposalRecord
from labtrack.models.inventory_item import InventoryItem, ItemCategory, ItemStatus
from labtrack.models.ledger_movement import LedgerMovement
from labtrack.models.maintenance_record import MaintenanceRecord
from labtrack.schemas.inventory import InventoryCreateRequest, InventoryUpdateRequest
from labtrack.services import ledger
from labtrack.utils.audit import log_action
from labtrack.utils.clock import isoformat
from labtrack.utils.exceptions import ItemInUseException, ValidationException


def serialize_item(i: InventoryItem) -> dict:
    return {
        "id":                  i.id,
        "itemId":              i.itemId,
        "name":                i.name,
        "description":         i.description,
        "category":            i.category.value,
        "cost":                float(i.cost) if i.cost is not None else 0.0,
        "roomAssigned":        i.roomAssigned,
        "calibrator":          i.calibrator,
        "condition":           i.condition.value,
        "status":              i.status.value,
        "maintenanceNeeds":    i.maintenanceNeeds.value,
        "lastMaintenance":     isoformat(i.lastMaintenance),
        "nextMaintenance":     isoformat(i.nextMaintenance),
        "canBeBorrowed":       i.canBeBorrowed,
        "isDisposed":          i.isDisposed,
        "quantity":            i.quantity,
        "availableQuantity":   i.availableQuantity,
        "borrowedQuantity":    i.borrowedQuantity,
        "maintenanceQuantity": i.maintenanceQuantity,
        "disposalQuantity":    i.disposalQuantity,
        "totalQuantity":       i.totalQuantity,
        "borrowableQuantity":  i.borrowableQuantity,
        "isAvailable":         i.isAvailable,
        "createdAt":           isoformat(i.createdAt),
        "updatedAt":           isoformat(i.updatedAt),
    }


def item_summary(i: InventoryItem) -> dict:
    """Compact form embedded in workflow records."""
    return {
        "id":                  i.id,
        "itemId":              i.itemId,
        "name":                i.name,
        "category":            i.category.value,
        "condition":           i.condition.value,
        "status":              i.status.value,
        "quantity":            i.quantity,
        "availableQuantity":   i.availableQuantity,
        "borrowedQuantity":    i.borrowedQuantity,
        "maintenanceQuantity": i.maintenanceQuantity,
        "disposalQuantity":    i.disposalQuantity,
    }


class InventoryService:

    def list_items(
        self, db: Session, page: int, limit: int,
        category: ItemCategory | None, status: ItemStatus | None, search: str | None, borrowable: bool | None,
    ) -> tuple[list[dict], int]:
        q = db.query(InventoryItem)

        if category: q = q.filter(InventoryItem.category == category)
        if status:   q = q.filter(InventoryItem.status == status)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(InventoryItem.name.ilike(like), InventoryItem.itemId.ilike(like),
                             InventoryItem.roomAssigned.ilike(like)))
        if borrowable is True:
            q = q.filter(InventoryItem.canBeBorrowed == True,
                         InventoryItem.isDisposed == False,
                         InventoryItem.availableQuantity > 0)

        total = q.count()
        items = q.order_by(InventoryItem.name.asc()).offset((page - 1) * limit).limit(limit).all()
        return [serialize_item(i) for i in items], total

    def get_item(self, db: Session, item_id: int) -> dict:
        return serialize_item(ledger.get_item(db, item_id))

    def create_item(self, db: Session, data: InventoryCreateRequest, actor: str) -> dict:
        if data.itemId and db.query(InventoryItem).filter(InventoryItem.itemId == data.itemId).first():
            raise ValidationException(f"Item code '{data.itemId}' is already in use", field="itemId")

        item = InventoryItem(
            name=data.name,
            description=data.description,
            category=data.category,
            cost=data.cost,
            roomAssigned=data.roomAssigned,
            condition=data.condition,
            canBeBorrowed=data.canBeBorrowed,
            nextMaintenance=data.nextMaintenance,
            quantity=data.quantity,
            availableQuantity=data.quantity,
        )
        if data.itemId:
            item.itemId = data.itemId

        with atomic(db):
            db.add(item)
            db.flush()
            log_action(db, actor, "CREATE", "InventoryItem", item.id,
                       f"Intake of {data.quantity} x '{item.name}'")
        db.refresh(item)
        return serialize_item(item)

    def update_item(self, db: Session, item_id: int, data: InventoryUpdateRequest, actor: str) -> dict:
        item = ledger.get_item(db, item_id)

        with atomic(db):
            for field, value in data.model_dump(exclude_unset=True).items():
                if value is None and field in ("name", "category", "cost", "condition", "status",
                                               "maintenanceNeeds", "roomAssigned", "calibrator"):
                    continue
                setattr(item, field, value)
            if item.isDisposed and item.status != ItemStatus.DISPOSED:
                raise ValidationException("A fully disposed item stays Disposed until a disposal is reversed",
                                          field="status")
            log_action(db, actor, "UPDATE", "InventoryItem", item.id, f"Updated item '{item.name}'")
        db.refresh(item)
        return serialize_item(item)

    def set_borrowing_status(self, db: Session, item_id: int, can_be_borrowed: bool, actor: str) -> dict:
        item = ledger.get_item(db, item_id)
        with atomic(db):
            item.canBeBorrowed = can_be_borrowed
            log_action(db, actor, "UPDATE", "InventoryItem", item.id,
                       f"'{item.name}' borrowing {'enabled' if can_be_borrowed else 'disabled'}")
        db.refresh(item)
        return serialize_item(item)

    def delete_item(self, db: Session, item_id: int, actor: str) -> None:
        item = ledger.get_item(db, item_id)

        if item.borrowedQuantity or item.maintenanceQuantity:
            raise ItemInUseException(
                f"Item has {item.borrowedQuantity} unit(s) borrowed and "
                f"{item.maintenanceQuantity} unit(s) in maintenance"
            )
        referenced = (
            db.query(BorrowingRequest.id).filter(BorrowingRequest.equipmentId == item_id).first()
            or db.query(MaintenanceRecord.id).filter(MaintenanceRecord.equipmentId == item_id).first()
            or db.query(DisposalRecord.id).filter(DisposalRecord.inventoryItemId == item_id).first()
        )
        if referenced:
            raise ItemInUseException("Item has workflow history; set its status to Inactive instead")

        with atomic(db):
            log_action(db, actor, "DELETE", "InventoryItem", item_id, f"Deleted item '{item.name}'")
            db.delete(item)

    def list_movements(self, db: Session, item_id: int, page: int, limit: int) -> tuple[list[dict], int]:
        ledger.get_item(db, item_id)
        q = db.query(LedgerMovement).filter(LedgerMovement.itemId == item_id)
        total = q.count()
        rows = q.order_by(LedgerMovement.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return [{
            "id":         m.id,
            "fromBucket": m.fromBucket,
            "toBucket":   m.toBucket,
            "quantity":   m.quantity,
            "workflow":   m.workflow,
            "recordId":   m.recordId,
            "actor":      m.actor,
            "createdAt":  isoformat(m.createdAt),
        } for m in rows], total


inventory_service = InventoryService()
