from sqlalchemy.orm import Session

from labtrack.dependencies import DEFAULT_ACTOR
from labtrack.models.audit_log import AuditLog


def log_action(
    db: Session,
    actor: str | None,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    description: str | None = None,
) -> AuditLog:
    """
    Add an audit entry to the session without committing it.

    Call it inside the same atomic() block as the workflow change it
    describes, so a refused or rolled-back transfer leaves no entry behind.

        with atomic(db):
            ledger.transfer(db, ...)
            log_action(db, actor, "APPROVE", "BorrowingRequest", b.id, f"Borrowing #{b.id} approved")
    """
    entry = AuditLog(
        actor=actor or DEFAULT_ACTOR,
        action=action,
        entityType=entity_type,
        entityId=entity_id,
        description=description,
    )
    db.add(entry)
    return entry
