import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from labtrack.database import atomic
from labtrack.models.borrowing import (
    BorrowingRequest, BorrowingStatus, BorrowerType, HOLDING_STATUSES, TRANSITIONS,
)
from labtrack.models.inventory_item import InventoryItem, ItemStatus
from labtrack.schemas.borrowing import BorrowingCreateRequest, BorrowingUpdateRequest
from labtrack.services import ledger
from labtrack.services.ledger import Bucket
from labtrack.services.inventory_service import item_summary
from labtrack.utils.audit import log_action
from labtrack.utils.clock import utcnow, as_utc, days_between, isoformat
from labtrack.utils.email import send_borrowing_status_email
from labtrack.utils.exceptions import (
    NotFoundException, NotBorrowableException, QuantityConflictException, InvalidTransitionException,
)

logger = logging.getLogger(__name__)

WORKFLOW = "borrowing"


def _serialize(b: BorrowingRequest) -> dict:
    status = b.effective_status
    overdue = status == BorrowingStatus.OVERDUE
    return {
        "id":                 b.id,
        "equipmentId":        b.equipmentId,
        "equipment":          item_summary(b.equipment) if b.equipment else None,
        "borrowerType":       b.borrowerType.value,
        "borrowerId":         b.borrowerId,
        "borrowerName":       b.borrowerName,
        "borrowerEmail":      b.borrowerEmail,
        "purpose":            b.purpose,
        "description":        b.description,
        "quantity":           b.quantity,
        "status":             status.value,
        "isOverdue":          overdue,
        "daysOverdue":        max(days_between(b.intendedReturnDate, utcnow()), 0) if overdue else 0,
        "requestedDate":      isoformat(b.requestedDate),
        "intendedBorrowDate": isoformat(b.intendedBorrowDate),
        "intendedReturnDate": isoformat(b.intendedReturnDate),
        "approvedDate":       isoformat(b.approvedDate),
        "releasedDate":       isoformat(b.releasedDate),
        "returnRequestDate":  isoformat(b.returnRequestDate),
        "returnApprovedDate": isoformat(b.returnApprovedDate),
        "actualReturnDate":   isoformat(b.actualReturnDate),
        "approvedBy":         b.approvedBy,
        "releasedBy":         b.releasedBy,
        "receivedBy":         b.receivedBy,
        "adminRemarks":       b.adminRemarks,
        "conditionOnBorrow":  b.conditionOnBorrow,
        "conditionOnReturn":  b.conditionOnReturn,
        "damageReport":       b.damageReport,
        "roomAssigned":       b.roomAssigned,
        "createdAt":          isoformat(b.createdAt),
        "updatedAt":          isoformat(b.updatedAt),
    }


def _get(db: Session, borrowing_id: int) -> BorrowingRequest:
    b = db.query(BorrowingRequest).filter(BorrowingRequest.id == borrowing_id).first()
    if not b:
        raise NotFoundException("Borrowing request")
    return b


def _persist_derived_status(b: BorrowingRequest) -> BorrowingStatus:
    """Write a read-time overdue status through before any other change."""
    current = b.effective_status
    if current != b.status:
        logger.info(f"Borrowing #{b.id} marked {current.value} (return date passed)")
        b.status = current
    return current


def _check_borrowable(item: InventoryItem) -> None:
    if item.isDisposed:
        raise NotBorrowableException("This equipment has been disposed")
    if not item.canBeBorrowed:
        raise NotBorrowableException()


class BorrowingService:

    def list_borrowings(
        self, db: Session, page: int, limit: int,
        status: BorrowingStatus | None, equipment_id: int | None, borrower_type: BorrowerType | None,
        search: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(BorrowingRequest)
        now = utcnow()

        # Overdue is partly derived, so both filters look at the return date
        if status == BorrowingStatus.OVERDUE:
            q = q.filter(or_(
                BorrowingRequest.status == BorrowingStatus.OVERDUE,
                and_(BorrowingRequest.status == BorrowingStatus.RELEASED,
                     BorrowingRequest.intendedReturnDate < now),
            ))
        elif status == BorrowingStatus.RELEASED:
            q = q.filter(BorrowingRequest.status == BorrowingStatus.RELEASED,
                         BorrowingRequest.intendedReturnDate >= now)
        elif status:
            q = q.filter(BorrowingRequest.status == status)

        if equipment_id:  q = q.filter(BorrowingRequest.equipmentId == equipment_id)
        if borrower_type: q = q.filter(BorrowingRequest.borrowerType == borrower_type)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(BorrowingRequest.borrowerName.ilike(like),
                             BorrowingRequest.borrowerId.ilike(like),
                             BorrowingRequest.purpose.ilike(like)))

        total = q.count()
        items = q.order_by(BorrowingRequest.createdAt.desc(), BorrowingRequest.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [_serialize(b) for b in items], total

    def get_borrowing(self, db: Session, borrowing_id: int) -> dict:
        return _serialize(_get(db, borrowing_id))

    def create_borrowing(self, db: Session, data: BorrowingCreateRequest, actor: str) -> dict:
        item = ledger.get_item(db, data.equipmentId)
        _check_borrowable(item)
        if data.quantity > item.availableQuantity:
            raise QuantityConflictException(available=item.availableQuantity, requested=data.quantity)

        b = BorrowingRequest(
            equipmentId=item.id,
            borrowerType=data.borrowerType,
            borrowerId=data.borrowerId,
            borrowerName=data.borrowerName,
            borrowerEmail=data.borrowerEmail,
            purpose=data.purpose,
            description=data.description,
            quantity=data.quantity,
            status=BorrowingStatus.PENDING,
            intendedBorrowDate=data.intendedBorrowDate,
            intendedReturnDate=data.intendedReturnDate,
            roomAssigned=data.roomAssigned or item.roomAssigned,
            conditionOnBorrow=data.conditionOnBorrow or item.condition.value,
        )
        with atomic(db):
            db.add(b)
            db.flush()
            log_action(db, actor, "CREATE", "BorrowingRequest", b.id,
                       f"{data.borrowerName} requested {data.quantity} x '{item.name}'")
        db.refresh(b)
        return _serialize(b)

    def update_borrowing(self, db: Session, borrowing_id: int, data: BorrowingUpdateRequest, actor: str) -> dict:
        """Dispatch a PATCH on the requested target status."""
        b = _get(db, borrowing_id)
        target = data.status

        if target == BorrowingStatus.APPROVED:
            return self.approve_borrowing(db, b, data, actor)
        if target == BorrowingStatus.REJECTED:
            return self.reject_borrowing(db, b, data, actor)
        if target == BorrowingStatus.RETURNED:
            return self.return_borrowing(db, b, data, actor)
        return self.transition_borrowing(db, b, data, actor)

    def approve_borrowing(self, db: Session, b: BorrowingRequest, data: BorrowingUpdateRequest, actor: str) -> dict:
        with atomic(db):
            current = _persist_derived_status(b)
            if current != BorrowingStatus.PENDING:
                raise InvalidTransitionException("Borrowing request", current.value, BorrowingStatus.APPROVED.value)

            item = ledger.get_item(db, b.equipmentId)
            _check_borrowable(item)
            ledger.transfer(db, item.id, Bucket.AVAILABLE, Bucket.BORROWED, b.quantity,
                            workflow=WORKFLOW, record_id=b.id, actor=actor)
            ledger.reload(db, item)
            if item.availableQuantity == 0 and item.status == ItemStatus.ACTIVE:
                item.status = ItemStatus.BORROWED

            b.status       = BorrowingStatus.APPROVED
            b.approvedDate = utcnow()
            b.approvedBy   = actor
            if data.remark_text is not None:
                b.adminRemarks = data.remark_text
            log_action(db, actor, "APPROVE", "BorrowingRequest", b.id,
                       f"Borrowing #{b.id} approved: {b.quantity} x '{item.name}' for {b.borrowerName}")
        db.refresh(b)

        send_borrowing_status_email(b.borrowerEmail, b.borrowerName, b.id,
                                    b.equipment.name, "APPROVED", b.adminRemarks)
        return _serialize(b)

    def reject_borrowing(self, db: Session, b: BorrowingRequest, data: BorrowingUpdateRequest, actor: str) -> dict:
        with atomic(db):
            current = _persist_derived_status(b)
            if current != BorrowingStatus.PENDING:
                raise InvalidTransitionException("Borrowing request", current.value, BorrowingStatus.REJECTED.value)

            b.status = BorrowingStatus.REJECTED
            if data.remark_text is not None:
                b.adminRemarks = data.remark_text
            log_action(db, actor, "REJECT", "BorrowingRequest", b.id,
                       f"Borrowing #{b.id} rejected. Reason: {b.adminRemarks}")
        db.refresh(b)

        send_borrowing_status_email(b.borrowerEmail, b.borrowerName, b.id,
                                    b.equipment.name, "REJECTED", b.adminRemarks)
        return _serialize(b)

    def return_borrowing(self, db: Session, b: BorrowingRequest, data: BorrowingUpdateRequest, actor: str) -> dict:
        if b.status == BorrowingStatus.RETURNED:
            return _serialize(b)

        with atomic(db):
            _persist_derived_status(b)
            self.apply_return(db, b, actor,
                              received_by=data.receivedBy,
                              condition=data.conditionOnReturn,
                              damage_report=data.damageReport,
                              remarks=data.remark_text)
        db.refresh(b)

        send_borrowing_status_email(b.borrowerEmail, b.borrowerName, b.id,
                                    b.equipment.name, "RETURNED", b.adminRemarks)
        return _serialize(b)

    def apply_return(
        self, db: Session, b: BorrowingRequest, actor: str,
        received_by: str | None = None, condition: str | None = None,
        damage_report: str | None = None, remarks: str | None = None,
        returned_at=None,
    ) -> bool:
        """
        Credit the request's units back to available and close it.

        Runs inside the caller's atomic() block. Returns False (and changes
        nothing) when the request is already returned.
        """
        if b.status == BorrowingStatus.RETURNED:
            return False
        current = b.effective_status
        if current not in HOLDING_STATUSES:
            raise InvalidTransitionException("Borrowing request", current.value, BorrowingStatus.RETURNED.value)

        moved = ledger.transfer(db, b.equipmentId, Bucket.BORROWED, Bucket.AVAILABLE, b.quantity,
                                workflow=WORKFLOW, record_id=b.id, actor=actor, clamp=True)
        if moved < b.quantity:
            logger.warning(f"Borrowing #{b.id}: only {moved} of {b.quantity} unit(s) were still on loan")

        item = ledger.mark_restocked(ledger.reload(db, ledger.get_item(db, b.equipmentId)))

        b.status           = BorrowingStatus.RETURNED
        b.actualReturnDate = as_utc(returned_at) or utcnow()
        if received_by is not None:   b.receivedBy        = received_by
        if condition is not None:     b.conditionOnReturn = condition
        if damage_report is not None: b.damageReport      = damage_report
        if remarks is not None:       b.adminRemarks      = remarks

        log_action(db, actor, "RETURN", "BorrowingRequest", b.id,
                   f"Borrowing #{b.id}: {moved} x '{item.name}' returned by {b.borrowerName}")
        return True

    def transition_borrowing(self, db: Session, b: BorrowingRequest, data: BorrowingUpdateRequest, actor: str) -> dict:
        """Moves with no ledger effect (release, overdue, return request/approval/rejection)."""
        target = data.status
        with atomic(db):
            current = _persist_derived_status(b)
            if target not in TRANSITIONS[current]:
                raise InvalidTransitionException("Borrowing request", current.value, target.value)
            self.apply_transition(b, target)

            if data.releasedBy is not None:        b.releasedBy        = data.releasedBy
            if data.receivedBy is not None:        b.receivedBy        = data.receivedBy
            if data.conditionOnReturn is not None: b.conditionOnReturn = data.conditionOnReturn
            if data.damageReport is not None:      b.damageReport      = data.damageReport
            if data.remark_text is not None:       b.adminRemarks      = data.remark_text
            log_action(db, actor, "UPDATE", "BorrowingRequest", b.id,
                       f"Borrowing #{b.id} {current.value} -> {target.value}")
        db.refresh(b)

        send_borrowing_status_email(b.borrowerEmail, b.borrowerName, b.id,
                                    b.equipment.name, target.value.upper(), b.adminRemarks)
        return _serialize(b)

    @staticmethod
    def apply_transition(b: BorrowingRequest, target: BorrowingStatus) -> None:
        now = utcnow()
        b.status = target
        if target == BorrowingStatus.RELEASED:
            b.releasedDate = now
        elif target == BorrowingStatus.RETURN_REQUESTED:
            b.returnRequestDate = now
        elif target == BorrowingStatus.RETURN_APPROVED:
            b.returnApprovedDate = now

    def delete_borrowing(self, db: Session, borrowing_id: int, actor: str) -> None:
        b = _get(db, borrowing_id)

        with atomic(db):
            current = _persist_derived_status(b)
            if current in HOLDING_STATUSES:
                moved = ledger.transfer(db, b.equipmentId, Bucket.BORROWED, Bucket.AVAILABLE, b.quantity,
                                        workflow=WORKFLOW, record_id=b.id, actor=actor, clamp=True)
                ledger.mark_restocked(ledger.reload(db, ledger.get_item(db, b.equipmentId)))
                logger.info(f"Borrowing #{b.id} deleted while {current.value}; {moved} unit(s) restored")
            log_action(db, actor, "DELETE", "BorrowingRequest", b.id,
                       f"Deleted borrowing #{b.id} ({current.value}) for {b.borrowerName}")
            db.delete(b)


borrowing_service = BorrowingService()
