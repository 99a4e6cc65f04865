import unittest
from decimal import Decimal

from labtrack.models.disposal_record import DisposalMethod, DisposalStatus
from labtrack.models.inventory_item import ItemCondition, ItemStatus
from labtrack.schemas.disposal import DisposalCreateRequest, DisposalUpdateRequest
from labtrack.services.disposal_service import disposal_service
from labtrack.testing import DatabaseTestCase, ACTOR
from labtrack.utils.clock import utcnow
from labtrack.utils.exceptions import QuantityConflictException, InvalidTransitionException


class TestDisposalWorkflow(DatabaseTestCase):

    def dispose(self, item_id: int, quantity: int, **extra) -> dict:
        body = DisposalCreateRequest(
            inventoryItemId=item_id,
            reason=extra.pop("reason", "Cracked housing"),
            description=extra.pop("description", "Dropped during practical"),
            disposedBy=extra.pop("disposedBy", "M. Cruz"),
            disposalMethod=extra.pop("disposalMethod", DisposalMethod.RECYCLE),
            disposalDate=extra.pop("disposalDate", utcnow()),
            disposalQuantity=quantity,
            **extra,
        )
        return disposal_service.create_disposal(self.db, body, ACTOR)

    def update(self, disposal_id: int, **fields) -> dict:
        return disposal_service.update_disposal(self.db, disposal_id, DisposalUpdateRequest(**fields), ACTOR)

    def test_scenario_dispose_everything_then_cancel(self):
        item_id = self.make_item(quantity=2, cost=Decimal("1500"))

        record = self.dispose(item_id, 2)
        self.assertEqual(record["status"], "Pending")
        self.assertEqual(record["originalCost"], 1500.0)
        self.assertBuckets(item_id, quantity=0, availableQuantity=0, disposalQuantity=2)
        item = self.item(item_id)
        self.assertTrue(item.isDisposed)
        self.assertEqual(item.status, ItemStatus.DISPOSED)
        self.assertEqual(item.condition, ItemCondition.OUT_OF_STOCK)

        self.update(record["id"], status=DisposalStatus.CANCELLED)

        self.assertBuckets(item_id, quantity=2, availableQuantity=2, disposalQuantity=0)
        item = self.item(item_id)
        self.assertFalse(item.isDisposed)
        self.assertEqual(item.status, ItemStatus.ACTIVE)
        self.assertEqual(item.condition, ItemCondition.GOOD)

    def test_partial_disposal_keeps_item_in_service(self):
        item_id = self.make_item(quantity=5)
        self.dispose(item_id, 2)

        self.assertBuckets(item_id, quantity=3, availableQuantity=3, disposalQuantity=2)
        item = self.item(item_id)
        self.assertFalse(item.isDisposed)
        self.assertEqual(item.totalQuantity, 5)

    def test_dispose_more_than_available(self):
        item_id = self.make_item(quantity=2)
        with self.assertRaises(QuantityConflictException):
            self.dispose(item_id, 3)
        self.assertBuckets(item_id, quantity=2, availableQuantity=2, disposalQuantity=0)

    def test_complete_is_terminal(self):
        item_id = self.make_item(quantity=5)
        record = self.dispose(item_id, 1)

        data = self.update(record["id"], status=DisposalStatus.COMPLETED, salvageValue=Decimal("20"))
        self.assertEqual(data["status"], "Completed")
        self.assertEqual(data["salvageValue"], 20.0)
        self.assertBuckets(item_id, quantity=4, disposalQuantity=1)

        with self.assertRaises(InvalidTransitionException):
            self.update(record["id"], status=DisposalStatus.CANCELLED)
        with self.assertRaises(InvalidTransitionException):
            self.update(record["id"], status=DisposalStatus.PENDING)

        # Notes stay editable
        data = self.update(record["id"], notes="Sent to e-waste partner")
        self.assertEqual(data["notes"], "Sent to e-waste partner")

    def test_delete_reverses_unless_cancelled(self):
        item_id = self.make_item(quantity=5)
        kept = self.dispose(item_id, 1)
        cancelled = self.dispose(item_id, 2)
        self.update(cancelled["id"], status=DisposalStatus.CANCELLED)
        self.assertBuckets(item_id, quantity=4, availableQuantity=4, disposalQuantity=1)

        disposal_service.delete_disposal(self.db, cancelled["id"], ACTOR)
        self.assertBuckets(item_id, quantity=4, availableQuantity=4, disposalQuantity=1)

        disposal_service.delete_disposal(self.db, kept["id"], ACTOR)
        self.assertBuckets(item_id, quantity=5, availableQuantity=5, disposalQuantity=0)

    def test_list_filters(self):
        item_id = self.make_item(quantity=5)
        self.dispose(item_id, 1, disposalMethod=DisposalMethod.DONATION)
        self.dispose(item_id, 1)

        rows, total = disposal_service.list_disposals(self.db, 1, 20, None, None, DisposalMethod.DONATION, None)
        self.assertEqual(total, 1)
        self.assertEqual(rows[0]["disposalMethod"], "Donation")

        rows, total = disposal_service.list_disposals(self.db, 1, 20, DisposalStatus.PENDING, "Equipment", None, None)
        self.assertEqual(total, 2)


if __name__ == '__main__':
    unittest.main()
