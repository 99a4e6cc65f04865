import logging
from decimal import Decimal

from sqlalchemy import and_, or_, func
from sqlalchemy.orm import Session

from labtrack.database import atomic
from labtrack.models.inventory_item import InventoryItem, ItemCondition, MaintenanceNeeds
from labtrack.models.maintenance_record import (
    MaintenanceRecord, MaintenanceStatus, MaintenanceType, CLOSED_STATUSES,
)
from labtrack.schemas.maintenance import MaintenanceCreateRequest, MaintenanceUpdateRequest
from labtrack.services import ledger
from labtrack.services.ledger import Bucket
from labtrack.services.inventory_service import item_summary
from labtrack.utils.audit import log_action
from labtrack.utils.clock import utcnow, as_utc, days_between, isoformat
from labtrack.utils.exceptions import (
    NotFoundException, InvalidQuantityException, InvalidTransitionException,
    QuantityConflictException, ValidationException,
)

logger = logging.getLogger(__name__)

WORKFLOW = "maintenance"

# Columns a PUT may omit but never clear
NOT_NULL_FIELDS = ("type", "priority", "scheduledDate", "dueDate", "assignedToName", "estimatedDuration")


def _serialize(m: MaintenanceRecord) -> dict:
    status = m.effective_status
    return {
        "id":                 m.id,
        "equipmentId":        m.equipmentId,
        "equipment":          item_summary(m.equipment) if m.equipment else None,
        "type":               m.type.value,
        "priority":           m.priority.value,
        "status":             status.value,
        "quantity":           m.quantity,
        "maintainedQuantity": m.maintainedQuantity,
        "remainingQuantity":  m.remainingQuantity,
        "completionRate":     round(m.maintainedQuantity / m.quantity * 100, 1) if m.quantity else 0.0,
        "isOverdue":          status == MaintenanceStatus.OVERDUE,
        "daysUntilDue":       days_between(utcnow(), m.dueDate),
        "scheduledDate":      isoformat(m.scheduledDate),
        "dueDate":            isoformat(m.dueDate),
        "completedDate":      isoformat(m.completedDate),
        "nextMaintenance":    isoformat(m.nextMaintenance),
        "assignedToName":     m.assignedToName,
        "description":        m.description,
        "notes":              m.notes,
        "findings":           m.findings,
        "actionsTaken":       m.actionsTaken,
        "partsUsed":          m.partsUsed or [],
        "totalCost":          float(m.totalCost or 0),
        "estimatedDuration":  m.estimatedDuration,
        "actualDuration":     m.actualDuration,
        "createdAt":          isoformat(m.createdAt),
        "updatedAt":          isoformat(m.updatedAt),
    }


def _get(db: Session, record_id: int) -> MaintenanceRecord:
    m = db.query(MaintenanceRecord).filter(MaintenanceRecord.id == record_id).first()
    if not m:
        raise NotFoundException("Maintenance record")
    return m


def _parts_json(parts) -> tuple[list[dict], Decimal]:
    rows  = [{"name": p.name, "quantity": p.quantity, "cost": float(p.cost)} for p in parts]
    total = sum((Decimal(p.quantity) * p.cost for p in parts), Decimal("0"))
    return rows, total


def _persist_derived_status(m: MaintenanceRecord) -> MaintenanceStatus:
    current = m.effective_status
    if current != m.status:
        logger.info(f"Maintenance #{m.id} marked {current.value} (due date passed)")
        m.status = current
    return current


def _complete(m: MaintenanceRecord) -> None:
    now = utcnow()
    m.status        = MaintenanceStatus.COMPLETED
    m.completedDate = now
    m.actualDuration = max(days_between(m.scheduledDate, now), 0)


def _sync_item_after_release(db: Session, item_id: int) -> InventoryItem:
    """Once no units of the item are left in maintenance it is back in good order."""
    item = ledger.mark_restocked(ledger.reload(db, ledger.get_item(db, item_id)))
    if item.maintenanceQuantity == 0:
        item.condition        = ItemCondition.GOOD
        item.maintenanceNeeds = MaintenanceNeeds.NO
    return item


class MaintenanceService:

    def list_records(
        self, db: Session, page: int, limit: int,
        status: MaintenanceStatus | None, equipment_id: int | None, type_: MaintenanceType | None,
    ) -> tuple[list[dict], int, dict]:
        q = db.query(MaintenanceRecord)
        now = utcnow()
        derived_overdue = or_(
            MaintenanceRecord.status == MaintenanceStatus.OVERDUE,
            and_(MaintenanceRecord.status == MaintenanceStatus.SCHEDULED, MaintenanceRecord.dueDate < now),
        )

        if equipment_id: q = q.filter(MaintenanceRecord.equipmentId == equipment_id)
        if type_:        q = q.filter(MaintenanceRecord.type == type_)
        base = q

        if status == MaintenanceStatus.OVERDUE:
            q = q.filter(derived_overdue)
        elif status == MaintenanceStatus.SCHEDULED:
            q = q.filter(MaintenanceRecord.status == MaintenanceStatus.SCHEDULED, MaintenanceRecord.dueDate >= now)
        elif status:
            q = q.filter(MaintenanceRecord.status == status)

        stats = {
            "totalRecords":    base.count(),
            "totalUnits":      base.with_entities(func.coalesce(func.sum(MaintenanceRecord.quantity), 0)).scalar(),
            "completed":       base.filter(MaintenanceRecord.status == MaintenanceStatus.COMPLETED).count(),
            "inProgress":      base.filter(MaintenanceRecord.status == MaintenanceStatus.IN_PROGRESS).count(),
            "overdue":         base.filter(derived_overdue).count(),
            "totalCost":       float(base.with_entities(
                                   func.coalesce(func.sum(MaintenanceRecord.totalCost), 0)).scalar() or 0),
        }

        total = q.count()
        items = q.order_by(MaintenanceRecord.dueDate.asc(), MaintenanceRecord.id.asc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [_serialize(m) for m in items], total, stats

    def get_record(self, db: Session, record_id: int) -> dict:
        return _serialize(_get(db, record_id))

    def schedule_maintenance(self, db: Session, data: MaintenanceCreateRequest, actor: str) -> dict:
        item = ledger.get_item(db, data.equipmentId)
        if data.quantity > item.availableQuantity:
            raise QuantityConflictException(
                available=item.availableQuantity, requested=data.quantity,
                message=f"Only {item.availableQuantity} units available. Requested {data.quantity} units.",
            )

        if data.partsUsed:
            parts, total_cost = _parts_json(data.partsUsed)
        else:
            parts, total_cost = [], data.totalCost or Decimal("0")

        m = MaintenanceRecord(
            equipmentId=item.id,
            type=data.type,
            priority=data.priority,
            quantity=data.quantity,
            maintainedQuantity=0,
            status=MaintenanceStatus.SCHEDULED,
            scheduledDate=data.scheduledDate,
            dueDate=data.dueDate,
            nextMaintenance=data.nextMaintenance,
            assignedToName=data.assignedToName,
            description=data.description,
            partsUsed=parts,
            totalCost=total_cost,
            estimatedDuration=data.estimatedDuration,
        )

        with atomic(db):
            db.add(m)
            db.flush()
            ledger.transfer(db, item.id, Bucket.AVAILABLE, Bucket.MAINTENANCE, data.quantity,
                            workflow=WORKFLOW, record_id=m.id, actor=actor)
            ledger.reload(db, item)

            item.maintenanceNeeds = MaintenanceNeeds.SCHEDULED
            item.lastMaintenance  = data.scheduledDate
            item.nextMaintenance  = data.nextMaintenance
            item.calibrator       = data.assignedToName
            if data.quantity == item.quantity or item.availableQuantity == 0:
                item.condition = ItemCondition.UNDER_MAINTENANCE
            else:
                item.condition = ItemCondition.NEEDS_REPAIR

            log_action(db, actor, "CREATE", "MaintenanceRecord", m.id,
                       f"{m.type.value} of {data.quantity} x '{item.name}' assigned to {data.assignedToName}")
        db.refresh(m)
        return _serialize(m)

    def record_progress(self, db: Session, record_id: int, maintained_quantity: int, actor: str) -> dict:
        """Mark more units of a job as done and hand them back to available."""
        m = _get(db, record_id)

        with atomic(db):
            current = _persist_derived_status(m)
            if current == MaintenanceStatus.CANCELLED:
                raise InvalidTransitionException("Maintenance record", current.value,
                                                 MaintenanceStatus.IN_PROGRESS.value)

            delta = maintained_quantity - m.maintainedQuantity
            if delta < 0:
                raise InvalidQuantityException(
                    f"Maintained quantity cannot decrease (from {m.maintainedQuantity} to {maintained_quantity})",
                    field="maintainedQuantity",
                )
            if maintained_quantity > m.quantity:
                raise InvalidQuantityException(
                    f"Maintained quantity ({maintained_quantity}) cannot exceed the job quantity ({m.quantity})",
                    field="maintainedQuantity",
                )
            if current == MaintenanceStatus.COMPLETED and delta:
                raise InvalidTransitionException("Maintenance record", current.value,
                                                 MaintenanceStatus.IN_PROGRESS.value)

            if delta:
                ledger.transfer(db, m.equipmentId, Bucket.MAINTENANCE, Bucket.AVAILABLE, delta,
                                workflow=WORKFLOW, record_id=m.id, actor=actor)
                m.maintainedQuantity = maintained_quantity

                if m.maintainedQuantity == m.quantity:
                    _complete(m)
                elif current in (MaintenanceStatus.SCHEDULED, MaintenanceStatus.OVERDUE):
                    m.status = MaintenanceStatus.IN_PROGRESS

                item = _sync_item_after_release(db, m.equipmentId)
                log_action(db, actor, "UPDATE", "MaintenanceRecord", m.id,
                           f"{m.maintainedQuantity}/{m.quantity} x '{item.name}' maintained")
        db.refresh(m)
        return _serialize(m)

    def update_record(self, db: Session, record_id: int, data: MaintenanceUpdateRequest, actor: str) -> dict:
        m = _get(db, record_id)
        fields = data.model_dump(exclude_unset=True)

        with atomic(db):
            current = _persist_derived_status(m)
            closed  = current in CLOSED_STATUSES
            released = False

            # ─── Quantity change ───────────────────────────────────────────────
            new_qty = fields.pop("quantity", None)
            if new_qty is not None and new_qty != m.quantity:
                if closed:
                    raise InvalidTransitionException("Maintenance record", current.value, "quantity change")
                if new_qty < m.maintainedQuantity:
                    raise InvalidQuantityException(
                        f"Quantity cannot be less than the {m.maintainedQuantity} unit(s) already maintained",
                        field="quantity",
                    )
                delta = new_qty - m.quantity
                if delta > 0:
                    item = ledger.get_item(db, m.equipmentId)
                    if delta > item.availableQuantity:
                        limit = item.availableQuantity + m.quantity
                        raise QuantityConflictException(
                            available=limit, requested=new_qty,
                            message=f"Only {limit} units available. Requested {new_qty} units.",
                        )
                    ledger.transfer(db, m.equipmentId, Bucket.AVAILABLE, Bucket.MAINTENANCE, delta,
                                    workflow=WORKFLOW, record_id=m.id, actor=actor)
                else:
                    ledger.transfer(db, m.equipmentId, Bucket.MAINTENANCE, Bucket.AVAILABLE, -delta,
                                    workflow=WORKFLOW, record_id=m.id, actor=actor)
                    released = True
                m.quantity = new_qty
                if m.maintainedQuantity == m.quantity:
                    _complete(m)

            # ─── Status change ─────────────────────────────────────────────────
            target = fields.pop("status", None)
            if target is not None and target != m.status:
                if m.status in CLOSED_STATUSES:
                    raise InvalidTransitionException("Maintenance record", m.status.value, target.value)
                outstanding = m.remainingQuantity
                if target in (MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED) and outstanding:
                    ledger.transfer(db, m.equipmentId, Bucket.MAINTENANCE, Bucket.AVAILABLE, outstanding,
                                    workflow=WORKFLOW, record_id=m.id, actor=actor)
                    released = True
                if target == MaintenanceStatus.COMPLETED:
                    m.maintainedQuantity = m.quantity
                    _complete(m)
                else:
                    m.status = target

            # ─── Parts and metadata ────────────────────────────────────────────
            fields.pop("partsUsed", None)
            if data.partsUsed is not None:
                m.partsUsed, m.totalCost = _parts_json(data.partsUsed)
            elif fields.get("totalCost") is not None:
                m.totalCost = fields["totalCost"]
            fields.pop("totalCost", None)

            for field, value in fields.items():
                if value is None and field in NOT_NULL_FIELDS:
                    continue
                setattr(m, field, value)

            if as_utc(m.dueDate) < as_utc(m.scheduledDate):
                raise ValidationException("dueDate cannot be before scheduledDate", field="dueDate")
            if m.nextMaintenance and as_utc(m.nextMaintenance) <= as_utc(m.dueDate):
                raise ValidationException("Next maintenance date must be after the due date",
                                          field="nextMaintenance")

            # Transfers bypass the session, so the loaded item is re-read either way
            if released:
                item = _sync_item_after_release(db, m.equipmentId)
            else:
                item = ledger.reload(db, ledger.get_item(db, m.equipmentId))
            if "nextMaintenance" in fields and m.nextMaintenance:
                item.nextMaintenance = m.nextMaintenance
            if "assignedToName" in fields and m.assignedToName:
                item.calibrator = m.assignedToName

            log_action(db, actor, "UPDATE", "MaintenanceRecord", m.id,
                       f"Maintenance #{m.id} updated ({m.status.value}, {m.maintainedQuantity}/{m.quantity})")
        db.refresh(m)
        return _serialize(m)

    def delete_record(self, db: Session, record_id: int, actor: str) -> None:
        m = _get(db, record_id)

        with atomic(db):
            outstanding = m.outstandingQuantity
            if outstanding:
                ledger.transfer(db, m.equipmentId, Bucket.MAINTENANCE, Bucket.AVAILABLE, outstanding,
                                workflow=WORKFLOW, record_id=m.id, actor=actor, clamp=True)
                _sync_item_after_release(db, m.equipmentId)
            log_action(db, actor, "DELETE", "MaintenanceRecord", m.id,
                       f"Deleted maintenance #{m.id}; {outstanding} outstanding unit(s) returned")
            db.delete(m)


maintenance_service = MaintenanceService()
