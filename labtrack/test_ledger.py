import unittest
from datetime import timedelta
from unittest.mock import patch

from labtrack.database import atomic
from labtrack.models.borrowing import BorrowingStatus
from labtrack.models.disposal_record import DisposalMethod, DisposalStatus
from labtrack.models.ledger_movement import LedgerMovement
from labtrack.schemas.borrowing import BorrowingUpdateRequest
from labtrack.schemas.disposal import DisposalCreateRequest, DisposalUpdateRequest
from labtrack.schemas.maintenance import MaintenanceCreateRequest
from labtrack.services import ledger
from labtrack.services.borrowing_service import borrowing_service
from labtrack.services.disposal_service import disposal_service
from labtrack.services.maintenance_service import maintenance_service
from labtrack.services.ledger import Bucket
from labtrack.testing import DatabaseTestCase, ACTOR
from labtrack.utils.clock import utcnow
from labtrack.utils.exceptions import (
    QuantityConflictException, NotFoundException, InvalidQuantityException, PersistenceException,
)


class TestLedgerTransfer(DatabaseTestCase):

    def test_transfer_moves_units_and_journals_it(self):
        item_id = self.make_item(quantity=5)

        with atomic(self.db):
            moved = ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.BORROWED, 2,
                                    workflow="borrowing", record_id=7, actor=ACTOR)

        self.assertEqual(moved, 2)
        self.assertBuckets(item_id, availableQuantity=3, borrowedQuantity=2, quantity=5)
        movement = self.db.query(LedgerMovement).filter(LedgerMovement.itemId == item_id).one()
        self.assertEqual((movement.fromBucket, movement.toBucket, movement.quantity),
                         ("availableQuantity", "borrowedQuantity", 2))
        self.assertEqual(movement.recordId, 7)
        self.assertEqual(movement.actor, ACTOR)

    def test_guard_rejects_overdraw_and_leaves_buckets_alone(self):
        item_id = self.make_item(quantity=5)

        with self.assertRaises(QuantityConflictException) as ctx:
            with atomic(self.db):
                ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.BORROWED, 6, workflow="borrowing")

        self.assertEqual(ctx.exception.available, 5)
        self.assertEqual(ctx.exception.requested, 6)
        self.assertIn("Available: 5, Requested: 6", ctx.exception.message)
        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)
        self.assertEqual(self.db.query(LedgerMovement).count(), 0)

    def test_clamp_caps_at_source_level(self):
        item_id = self.make_item(quantity=5)
        with atomic(self.db):
            ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.BORROWED, 2, workflow="borrowing")

        with atomic(self.db):
            moved = ledger.transfer(self.db, item_id, Bucket.BORROWED, Bucket.AVAILABLE, 4,
                                    workflow="borrowing", clamp=True)

        self.assertEqual(moved, 2)
        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)

    def test_disposal_moves_units_out_of_service(self):
        item_id = self.make_item(quantity=4)

        with atomic(self.db):
            ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.DISPOSAL, 3, workflow="disposal")
        self.assertBuckets(item_id, quantity=1, availableQuantity=1, disposalQuantity=3)
        self.assertEqual(self.item(item_id).totalQuantity, 4)

        with atomic(self.db):
            ledger.transfer(self.db, item_id, Bucket.DISPOSAL, Bucket.AVAILABLE, 3, workflow="disposal")
        self.assertBuckets(item_id, quantity=4, availableQuantity=4, disposalQuantity=0)

    def test_rollback_discards_every_transfer_in_the_block(self):
        item_id = self.make_item(quantity=5)

        with self.assertRaises(QuantityConflictException):
            with atomic(self.db):
                ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.MAINTENANCE, 3, workflow="maintenance")
                ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.BORROWED, 3, workflow="borrowing")

        self.assertBuckets(item_id, availableQuantity=5, maintenanceQuantity=0, borrowedQuantity=0)

    def test_unknown_item(self):
        with self.assertRaises(NotFoundException):
            with atomic(self.db):
                ledger.transfer(self.db, 999, Bucket.AVAILABLE, Bucket.BORROWED, 1, workflow="borrowing")

    def test_negative_amount_rejected(self):
        item_id = self.make_item(quantity=5)
        with self.assertRaises(InvalidQuantityException):
            ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.BORROWED, -1, workflow="borrowing")

    def test_zero_amount_is_noop(self):
        item_id = self.make_item(quantity=5)
        with atomic(self.db):
            moved = ledger.transfer(self.db, item_id, Bucket.AVAILABLE, Bucket.BORROWED, 0, workflow="borrowing")
        self.assertEqual(moved, 0)
        self.assertEqual(self.db.query(LedgerMovement).count(), 0)

    def test_check_balance(self):
        item = self.item(self.make_item(quantity=3))
        self.assertTrue(ledger.check_balance(item))
        item.availableQuantity = 2
        self.assertFalse(ledger.check_balance(item))
        self.db.rollback()

    def test_reload_refuses_unbalanced_row(self):
        item = self.item(self.make_item(quantity=3))
        with patch("labtrack.services.ledger.check_balance", return_value=False):
            with self.assertRaises(PersistenceException):
                ledger.reload(self.db, item)
        self.assertIs(ledger.reload(self.db, item), item)



class TestMixedWorkflows(DatabaseTestCase):
    """The balance holds after every step when all four workflows share one item."""

    def test_sequence_across_workflows(self):
        item_id = self.make_item(quantity=10)
        start = utcnow()

        b_id = self.make_borrowing(item_id, quantity=3)
        borrowing_service.update_borrowing(self.db, b_id, BorrowingUpdateRequest(status=BorrowingStatus.APPROVED), ACTOR)
        self.assertBuckets(item_id, quantity=10, availableQuantity=7, borrowedQuantity=3,
                           maintenanceQuantity=0, disposalQuantity=0)

        job = maintenance_service.schedule_maintenance(self.db, MaintenanceCreateRequest(
            equipmentId=item_id, quantity=2, scheduledDate=start, dueDate=start + timedelta(days=2),
            nextMaintenance=start + timedelta(days=90), assignedToName="R. Santos",
        ), ACTOR)
        self.assertBuckets(item_id, quantity=10, availableQuantity=5, borrowedQuantity=3,
                           maintenanceQuantity=2, disposalQuantity=0)

        disposal = disposal_service.create_disposal(self.db, DisposalCreateRequest(
            inventoryItemId=item_id, reason="Corroded", description="Left in acid bath", disposedBy="M. Cruz",
            disposalMethod=DisposalMethod.RECYCLE, disposalDate=start, disposalQuantity=5,
        ), ACTOR)
        self.assertBuckets(item_id, quantity=5, availableQuantity=0, borrowedQuantity=3,
                           maintenanceQuantity=2, disposalQuantity=5)

        with self.assertRaises(QuantityConflictException):
            self.make_borrowing(item_id, quantity=1)

        maintenance_service.record_progress(self.db, job["id"], 1, ACTOR)
        self.assertBuckets(item_id, quantity=5, availableQuantity=1, borrowedQuantity=3,
                           maintenanceQuantity=1, disposalQuantity=5)

        disposal_service.update_disposal(self.db, disposal["id"],
                                         DisposalUpdateRequest(status=DisposalStatus.CANCELLED), ACTOR)
        self.assertBuckets(item_id, quantity=10, availableQuantity=6, borrowedQuantity=3,
                           maintenanceQuantity=1, disposalQuantity=0)

        borrowing_service.update_borrowing(self.db, b_id, BorrowingUpdateRequest(status=BorrowingStatus.RETURNED), ACTOR)
        self.assertBuckets(item_id, quantity=10, availableQuantity=9, borrowedQuantity=0,
                           maintenanceQuantity=1, disposalQuantity=0)

        maintenance_service.delete_record(self.db, job["id"], ACTOR)
        self.assertBuckets(item_id, quantity=10, availableQuantity=10, borrowedQuantity=0,
                           maintenanceQuantity=0, disposalQuantity=0)

        journal = self.db.query(LedgerMovement).filter(LedgerMovement.itemId == item_id).all()
        self.assertEqual({m.workflow for m in journal}, {"borrowing", "maintenance", "disposal"})


if __name__ == '__main__':
    unittest.main()
