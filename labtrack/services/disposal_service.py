import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from labtrack.database import atomic
from labtrack.models.disposal_record import DisposalRecord, DisposalMethod, DisposalStatus
from labtrack.models.inventory_item import InventoryItem, ItemCondition, ItemStatus
from labtrack.schemas.disposal import DisposalCreateRequest, DisposalUpdateRequest
from labtrack.services import ledger
from labtrack.services.ledger import Bucket
from labtrack.services.inventory_service import item_summary
from labtrack.utils.audit import log_action
from labtrack.utils.clock import isoformat
from labtrack.utils.exceptions import NotFoundException, InvalidTransitionException, QuantityConflictException

logger = logging.getLogger(__name__)

WORKFLOW = "disposal"

# Pending is the only state that can still move
DISPOSAL_TRANSITIONS = {
    DisposalStatus.PENDING:   {DisposalStatus.COMPLETED, DisposalStatus.CANCELLED},
    DisposalStatus.COMPLETED: set(),
    DisposalStatus.CANCELLED: set(),
}


def _serialize(d: DisposalRecord) -> dict:
    return {
        "id":               d.id,
        "inventoryItemId":  d.inventoryItemId,
        "inventoryItem":    item_summary(d.inventory_item) if d.inventory_item else None,
        "itemId":           d.itemId,
        "equipmentName":    d.equipmentName,
        "category":         d.category,
        "reason":           d.reason,
        "description":      d.description,
        "disposedBy":       d.disposedBy,
        "originalCost":     float(d.originalCost or 0),
        "salvageValue":     float(d.salvageValue or 0),
        "disposalMethod":   d.disposalMethod.value,
        "status":           d.status.value,
        "notes":            d.notes,
        "disposalDate":     isoformat(d.disposalDate),
        "disposalQuantity": d.disposalQuantity,
        "createdAt":        isoformat(d.createdAt),
        "updatedAt":        isoformat(d.updatedAt),
    }


def _get(db: Session, disposal_id: int) -> DisposalRecord:
    d = db.query(DisposalRecord).filter(DisposalRecord.id == disposal_id).first()
    if not d:
        raise NotFoundException("Disposal record")
    return d


def _restore_units(db: Session, d: DisposalRecord, actor: str) -> InventoryItem:
    """Hand a disposal's units back to available and revive the item."""
    ledger.transfer(db, d.inventoryItemId, Bucket.DISPOSAL, Bucket.AVAILABLE, d.disposalQuantity,
                    workflow=WORKFLOW, record_id=d.id, actor=actor, clamp=True)
    item = ledger.reload(db, ledger.get_item(db, d.inventoryItemId))

    if item.isDisposed:
        item.isDisposed = False
        item.status     = ItemStatus.ACTIVE
    return ledger.mark_restocked(item)


class DisposalService:

    def list_disposals(
        self, db: Session, page: int, limit: int,
        status: DisposalStatus | None, category: str | None, method: DisposalMethod | None, search: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(DisposalRecord)

        if status:   q = q.filter(DisposalRecord.status == status)
        if category: q = q.filter(DisposalRecord.category == category)
        if method:   q = q.filter(DisposalRecord.disposalMethod == method)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(DisposalRecord.equipmentName.ilike(like),
                             DisposalRecord.itemId.ilike(like),
                             DisposalRecord.reason.ilike(like)))

        total = q.count()
        items = q.order_by(DisposalRecord.disposalDate.desc(), DisposalRecord.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [_serialize(d) for d in items], total

    def get_disposal(self, db: Session, disposal_id: int) -> dict:
        return _serialize(_get(db, disposal_id))

    def create_disposal(self, db: Session, data: DisposalCreateRequest, actor: str) -> dict:
        item = ledger.get_item(db, data.inventoryItemId)
        if data.disposalQuantity > item.availableQuantity:
            raise QuantityConflictException(available=item.availableQuantity, requested=data.disposalQuantity)

        d = DisposalRecord(
            inventoryItemId=item.id,
            itemId=item.itemId,
            equipmentName=item.name,
            category=item.category.value,
            reason=data.reason,
            description=data.description,
            disposedBy=data.disposedBy,
            originalCost=item.cost,
            salvageValue=data.salvageValue,
            disposalMethod=data.disposalMethod,
            status=data.status,
            notes=data.notes,
            disposalDate=data.disposalDate,
            disposalQuantity=data.disposalQuantity,
        )

        with atomic(db):
            db.add(d)
            db.flush()
            ledger.transfer(db, item.id, Bucket.AVAILABLE, Bucket.DISPOSAL, data.disposalQuantity,
                            workflow=WORKFLOW, record_id=d.id, actor=actor)
            ledger.reload(db, item)

            if item.quantity == 0:
                item.isDisposed = True
                item.status     = ItemStatus.DISPOSED
                item.condition  = ItemCondition.OUT_OF_STOCK
            elif item.availableQuantity == 0:
                item.condition = ItemCondition.OUT_OF_STOCK

            log_action(db, actor, "CREATE", "DisposalRecord", d.id,
                       f"{data.disposalQuantity} x '{item.name}' written off ({data.disposalMethod.value})")
        db.refresh(d)
        return _serialize(d)

    def update_disposal(self, db: Session, disposal_id: int, data: DisposalUpdateRequest, actor: str) -> dict:
        d = _get(db, disposal_id)

        with atomic(db):
            if data.salvageValue is not None: d.salvageValue = data.salvageValue
            if data.notes is not None:        d.notes        = data.notes

            target = data.status
            if target is not None and target != d.status:
                if target not in DISPOSAL_TRANSITIONS[d.status]:
                    raise InvalidTransitionException("Disposal record", d.status.value, target.value)
                if target == DisposalStatus.CANCELLED:
                    _restore_units(db, d, actor)
                d.status = target

            log_action(db, actor, "UPDATE", "DisposalRecord", d.id,
                       f"Disposal #{d.id} updated ({d.status.value})")
        db.refresh(d)
        return _serialize(d)

    def delete_disposal(self, db: Session, disposal_id: int, actor: str) -> None:
        d = _get(db, disposal_id)

        with atomic(db):
            if d.holds_units:
                item = _restore_units(db, d, actor)
                logger.info(f"Disposal #{d.id} deleted; {d.disposalQuantity} x '{item.name}' restored")
            log_action(db, actor, "DELETE", "DisposalRecord", d.id,
                       f"Deleted disposal #{d.id} of {d.disposalQuantity} x '{d.equipmentName}'")
            db.delete(d)


disposal_service = DisposalService()
