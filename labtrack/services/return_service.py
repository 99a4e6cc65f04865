import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.orm import Session

from labtrack.config import settings
from labtrack.database import atomic
from labtrack.models.borrowing import BorrowingRequest, BorrowingStatus, HOLDING_STATUSES, TRANSITIONS
from labtrack.models.return_record import ReturnRecord, ReturnStatus, DamageSeverity
from labtrack.schemas.returning import ReturnCreateRequest, ReturnUpdateRequest
from labtrack.services.borrowing_service import borrowing_service
from labtrack.utils.audit import log_action
from labtrack.utils.clock import utcnow, as_utc, days_between, isoformat
from labtrack.utils.email import send_return_status_email
from labtrack.utils.exceptions import NotFoundException, InvalidTransitionException

logger = logging.getLogger(__name__)

AUTO_APPROVE_SEVERITIES = {DamageSeverity.NONE, DamageSeverity.MINOR}

RETURN_TRANSITIONS = {
    ReturnStatus.PENDING:   {ReturnStatus.APPROVED, ReturnStatus.REJECTED, ReturnStatus.COMPLETED},
    ReturnStatus.APPROVED:  {ReturnStatus.COMPLETED},
    ReturnStatus.REJECTED:  set(),
    ReturnStatus.COMPLETED: set(),
}

# Outcomes that hand the borrowed units back to the shelf
RELEASING_STATUSES = {ReturnStatus.APPROVED, ReturnStatus.COMPLETED}


def adjudicate(severity: DamageSeverity | None, total_fee, is_fee_paid: bool) -> tuple[ReturnStatus, str]:
    """
    Decide the initial status of a submitted return.

    Light (or no) damage is approved without review; if there is also nothing
    left to pay, the return is completed outright. Heavier damage waits for an
    administrator.
    """
    auto_approve = severity is None or severity in AUTO_APPROVE_SEVERITIES
    should_auto_complete = Decimal(str(total_fee or 0)) <= 0 or bool(is_fee_paid)

    if auto_approve and should_auto_complete:
        return ReturnStatus.COMPLETED, "Return processed and completed automatically"
    if auto_approve:
        return ReturnStatus.APPROVED, f"Return approved. Outstanding fee of {float(total_fee):.2f} must be settled"
    return ReturnStatus.PENDING, "Return submitted and awaiting review due to reported damage"


def compute_fees(
    intended_return: datetime, actual_return: datetime,
    penalty_fee: Decimal | None, damage_fee: Decimal | None,
) -> dict:
    """Late days are whole days past the intended date, rounded up."""
    late_days = max(days_between(intended_return, actual_return), 0)
    if penalty_fee is None:
        penalty_fee = Decimal(late_days) * Decimal(str(settings.LATE_FEE_PER_DAY))
    penalty_fee = Decimal(penalty_fee)
    damage_fee  = Decimal(damage_fee or 0)
    return {
        "isLate":     late_days > 0,
        "lateDays":   late_days,
        "penaltyFee": penalty_fee,
        "damageFee":  damage_fee,
        "totalFee":   penalty_fee + damage_fee,
    }


def _serialize(r: ReturnRecord) -> dict:
    return {
        "id":                 r.id,
        "borrowingId":        r.borrowingId,
        "borrowingStatus":    r.borrowing.effective_status.value if r.borrowing else None,
        "equipmentId":        r.equipmentId,
        "equipmentName":      r.equipmentName,
        "borrowerName":       r.borrowerName,
        "borrowerEmail":      r.borrowerEmail,
        "intendedReturnDate": isoformat(r.intendedReturnDate),
        "actualReturnDate":   isoformat(r.actualReturnDate),
        "conditionBefore":    r.conditionBefore,
        "conditionAfter":     r.conditionAfter,
        "damageDescription":  r.damageDescription,
        "damageSeverity":     r.damageSeverity.value,
        "status":             r.status.value,
        "isLate":             r.isLate,
        "lateDays":           r.lateDays,
        "penaltyFee":         float(r.penaltyFee or 0),
        "damageFee":          float(r.damageFee or 0),
        "totalFee":           float(r.totalFee or 0),
        "isFeePaid":          r.isFeePaid,
        "remarks":            r.remarks,
        "roomReturned":       r.roomReturned,
        "createdAt":          isoformat(r.createdAt),
        "updatedAt":          isoformat(r.updatedAt),
    }


def _get(db: Session, return_id: int) -> ReturnRecord:
    r = db.query(ReturnRecord).filter(ReturnRecord.id == return_id).first()
    if not r:
        raise NotFoundException("Return record")
    return r


def _request_review(b: BorrowingRequest) -> None:
    current = b.effective_status
    if BorrowingStatus.RETURN_REQUESTED in TRANSITIONS[current]:
        borrowing_service.apply_transition(b, BorrowingStatus.RETURN_REQUESTED)
    elif current != b.status:
        b.status = current


def _reject_on_borrowing(b: BorrowingRequest) -> None:
    current = b.effective_status
    if BorrowingStatus.RETURN_REJECTED in TRANSITIONS[current]:
        borrowing_service.apply_transition(b, BorrowingStatus.RETURN_REJECTED)
    else:
        logger.info(f"Borrowing #{b.id} left at {current.value} after its return was rejected")


class ReturnService:

    def list_returns(
        self, db: Session, page: int, limit: int, status: ReturnStatus | None, search: str | None,
    ) -> tuple[list[dict], int]:
        q = db.query(ReturnRecord)

        if status: q = q.filter(ReturnRecord.status == status)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(ReturnRecord.borrowerName.ilike(like),
                             ReturnRecord.equipmentName.ilike(like),
                             ReturnRecord.borrowerEmail.ilike(like)))

        total = q.count()
        items = q.order_by(ReturnRecord.createdAt.desc(), ReturnRecord.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [_serialize(r) for r in items], total

    def get_return(self, db: Session, return_id: int) -> dict:
        return _serialize(_get(db, return_id))

    def submit_return(self, db: Session, data: ReturnCreateRequest, actor: str) -> tuple[dict, str]:
        b = db.query(BorrowingRequest).filter(BorrowingRequest.id == data.borrowingId).first()
        if not b:
            raise NotFoundException("Borrowing request")
        current = b.effective_status
        if current not in HOLDING_STATUSES and current != BorrowingStatus.RETURNED:
            raise InvalidTransitionException("Borrowing request", current.value, "return")

        actual = as_utc(data.actualReturnDate) or utcnow()
        fees = compute_fees(b.intendedReturnDate, actual, data.penaltyFee, data.damageFee)
        status, message = adjudicate(data.damageSeverity, fees["totalFee"], data.isFeePaid)

        r = ReturnRecord(
            borrowingId=b.id,
            equipmentId=b.equipmentId,
            borrowerName=b.borrowerName,
            borrowerEmail=b.borrowerEmail,
            equipmentName=b.equipment.name,
            intendedReturnDate=b.intendedReturnDate,
            actualReturnDate=actual,
            conditionBefore=data.conditionBefore or b.conditionOnBorrow or "",
            conditionAfter=data.conditionAfter,
            damageDescription=data.damageDescription,
            damageSeverity=data.damageSeverity,
            status=status,
            isFeePaid=data.isFeePaid,
            remarks=data.remarks,
            roomReturned=data.roomReturned or b.roomAssigned,
            **fees,
        )

        with atomic(db):
            db.add(r)
            db.flush()
            if status in RELEASING_STATUSES:
                borrowing_service.apply_return(
                    db, b, actor,
                    condition=data.conditionAfter or None,
                    damage_report=data.damageDescription or None,
                    returned_at=actual,
                )
            else:
                _request_review(b)
            log_action(db, actor, "CREATE", "ReturnRecord", r.id,
                       f"Return of borrowing #{b.id} by {b.borrowerName}: {status.value}, "
                       f"fee {float(fees['totalFee']):.2f}")
        db.refresh(r)

        send_return_status_email(r.borrowerEmail, r.borrowerName, r.id, r.equipmentName,
                                 r.status.value.upper(), float(r.totalFee))
        return _serialize(r), message

    def update_return(self, db: Session, return_id: int, data: ReturnUpdateRequest, actor: str) -> dict:
        r = _get(db, return_id)
        fields = data.model_dump(exclude_unset=True)
        target = fields.pop("status", None)

        with atomic(db):
            for field in ("damageSeverity", "damageDescription", "conditionAfter", "isFeePaid", "remarks"):
                if fields.get(field) is not None:
                    setattr(r, field, fields[field])

            fees = compute_fees(
                r.intendedReturnDate, r.actualReturnDate,
                fields["penaltyFee"] if fields.get("penaltyFee") is not None else r.penaltyFee,
                fields["damageFee"] if fields.get("damageFee") is not None else r.damageFee,
            )
            r.isLate, r.lateDays = fees["isLate"], fees["lateDays"]
            r.penaltyFee, r.damageFee, r.totalFee = fees["penaltyFee"], fees["damageFee"], fees["totalFee"]

            should_auto_complete = r.totalFee <= 0 or r.isFeePaid
            if target is None and r.status == ReturnStatus.APPROVED and should_auto_complete:
                target = ReturnStatus.COMPLETED

            if target is not None and target != r.status:
                if target not in RETURN_TRANSITIONS[r.status]:
                    raise InvalidTransitionException("Return record", r.status.value, target.value)
                if target == ReturnStatus.APPROVED and should_auto_complete:
                    target = ReturnStatus.COMPLETED
                r.status = target

                b = r.borrowing
                if target in RELEASING_STATUSES:
                    borrowing_service.apply_return(
                        db, b, actor,
                        condition=r.conditionAfter or None,
                        damage_report=r.damageDescription or None,
                        returned_at=r.actualReturnDate,
                    )
                elif target == ReturnStatus.REJECTED:
                    _reject_on_borrowing(b)

            log_action(db, actor, "UPDATE", "ReturnRecord", r.id,
                       f"Return #{r.id} updated ({r.status.value}, fee {float(r.totalFee):.2f})")
        db.refresh(r)

        if target is not None:
            send_return_status_email(r.borrowerEmail, r.borrowerName, r.id, r.equipmentName,
                                     r.status.value.upper(), float(r.totalFee))
        return _serialize(r)

    def delete_return(self, db: Session, return_id: int, actor: str) -> None:
        r = _get(db, return_id)
        with atomic(db):
            log_action(db, actor, "DELETE", "ReturnRecord", r.id,
                       f"Deleted return #{r.id} for borrowing #{r.borrowingId}")
            db.delete(r)


return_service = ReturnService()
