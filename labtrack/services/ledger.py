"""
Inventory ledger.

Every change to an item's quantity buckets goes through transfer(). It issues a
single conditional UPDATE whose WHERE clause carries the precondition
(`<source bucket> >= amount`), so the check and the debit happen atomically in
the storage engine. Concurrent writers against the same item either see the
row lock or find the guard false; neither can oversell.

Moving units into DISPOSAL also takes them out of `quantity` (the in-service
count); moving them back out of DISPOSAL returns them. The table's CHECK
constraints hold the remaining balance:

    availableQuantity + borrowedQuantity + maintenanceQuantity == quantity
"""
import enum
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from labtrack.models.inventory_item import InventoryItem, ItemCondition, ItemStatus
from labtrack.models.ledger_movement import LedgerMovement
from labtrack.utils.exceptions import (
    NotFoundException, QuantityConflictException, InvalidQuantityException, PersistenceException,
)

logger = logging.getLogger(__name__)


class Bucket(str, enum.Enum):
    AVAILABLE   = "availableQuantity"
    BORROWED    = "borrowedQuantity"
    MAINTENANCE = "maintenanceQuantity"
    DISPOSAL    = "disposalQuantity"

    @property
    def column(self):
        return getattr(InventoryItem, self.value)


def get_item(db: Session, item_id: int) -> InventoryItem:
    item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not item:
        raise NotFoundException("Inventory item")
    return item


def _current_level(db: Session, item_id: int, bucket: Bucket, lock: bool = False) -> int:
    stmt = select(bucket.column).where(InventoryItem.id == item_id)
    if lock:
        stmt = stmt.with_for_update()
    level = db.execute(stmt).scalar_one_or_none()
    if level is None:
        raise NotFoundException("Inventory item")
    return level


def transfer(
    db: Session,
    item_id: int,
    source: Bucket,
    target: Bucket,
    amount: int,
    *,
    workflow: str,
    record_id: int | None = None,
    actor: str | None = None,
    clamp: bool = False,
) -> int:
    """
    Move `amount` units of one item from `source` to `target`.

    With clamp=True the amount is capped at what the source bucket holds
    (read under FOR UPDATE), so a restore never drives a bucket negative.
    Returns the number of units actually moved.

    Raises:
        QuantityConflictException: source bucket holds fewer than `amount`
        NotFoundException:         item does not exist

    Must run inside the caller's transaction (see database.atomic); the
    caller should refresh the item afterwards if it needs the new levels.
    """
    if source == target:
        raise ValueError("source and target buckets must differ")
    if amount < 0:
        raise InvalidQuantityException(f"Transfer amount cannot be negative ({amount})")

    if clamp:
        amount = min(amount, _current_level(db, item_id, source, lock=True))
    if amount == 0:
        return 0

    values = {
        source.value: source.column - amount,
        target.value: target.column + amount,
    }
    if target == Bucket.DISPOSAL:
        values["quantity"] = InventoryItem.quantity - amount
    elif source == Bucket.DISPOSAL:
        values["quantity"] = InventoryItem.quantity + amount

    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item_id, source.column >= amount)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)

    if result.rowcount == 0:
        available = _current_level(db, item_id, source)
        logger.info(f"Ledger guard rejected item={item_id} {source.value}->{target.value} "
                    f"requested={amount} available={available}")
        raise QuantityConflictException(available=available, requested=amount, bucket=source.value)
    if result.rowcount != 1:
        raise PersistenceException(f"Ledger update touched {result.rowcount} rows for item {item_id}")

    db.add(LedgerMovement(
        itemId=item_id,
        fromBucket=source.value,
        toBucket=target.value,
        quantity=amount,
        workflow=workflow,
        recordId=record_id,
        actor=actor,
    ))
    logger.debug(f"Ledger item={item_id} {source.value}->{target.value} x{amount} ({workflow}#{record_id})")
    return amount


def reload(db: Session, item: InventoryItem) -> InventoryItem:
    """
    Re-read bucket levels written by transfer() into the loaded item.

    Refreshing discards pending attribute changes on the item, so call it
    before touching status or condition.
    """
    db.refresh(item)
    if not check_balance(item):
        logger.error(f"Ledger out of balance: {item!r}")
        raise PersistenceException(f"Inventory item {item.id} buckets do not add up")
    return item


def mark_restocked(item: InventoryItem) -> InventoryItem:
    """Status and condition follow availability once units are back on the shelf."""
    if item.availableQuantity > 0:
        if item.status == ItemStatus.BORROWED:
            item.status = ItemStatus.ACTIVE
        if item.condition == ItemCondition.OUT_OF_STOCK:
            item.condition = ItemCondition.GOOD
    return item


def check_balance(item: InventoryItem) -> bool:
    buckets = (item.availableQuantity, item.borrowedQuantity,
               item.maintenanceQuantity, item.disposalQuantity)
    if any(b < 0 for b in buckets):
        return False
    return item.availableQuantity + item.borrowedQuantity + item.maintenanceQuantity == item.quantity
