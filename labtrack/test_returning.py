import unittest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from labtrack.config import settings
from labtrack.models.borrowing import BorrowingStatus
from labtrack.models.return_record import DamageSeverity, ReturnStatus
from labtrack.schemas.borrowing import BorrowingUpdateRequest
from labtrack.schemas.returning import ReturnCreateRequest, ReturnUpdateRequest
from labtrack.services.borrowing_service import borrowing_service
from labtrack.services.return_service import return_service, adjudicate, compute_fees
from labtrack.testing import DatabaseTestCase, ACTOR
from labtrack.utils.clock import utcnow
from labtrack.utils.exceptions import InvalidTransitionException, NotFoundException


class TestAdjudicate(unittest.TestCase):

    def test_minor_damage_without_fee_completes(self):
        status, _ = adjudicate(DamageSeverity.MINOR, Decimal("0"), False)
        self.assertEqual(status, ReturnStatus.COMPLETED)

    def test_no_damage_with_unpaid_fee_is_approved(self):
        status, message = adjudicate(DamageSeverity.NONE, Decimal("25"), False)
        self.assertEqual(status, ReturnStatus.APPROVED)
        self.assertIn("25.00", message)

    def test_paid_fee_completes(self):
        status, _ = adjudicate(DamageSeverity.NONE, Decimal("25"), True)
        self.assertEqual(status, ReturnStatus.COMPLETED)

    def test_severe_damage_always_pending(self):
        for fee, paid in ((Decimal("0"), False), (Decimal("0"), True), (Decimal("100"), True)):
            status, _ = adjudicate(DamageSeverity.SEVERE, fee, paid)
            self.assertEqual(status, ReturnStatus.PENDING)

    def test_moderate_damage_pending(self):
        status, _ = adjudicate(DamageSeverity.MODERATE, Decimal("0"), False)
        self.assertEqual(status, ReturnStatus.PENDING)

    def test_missing_severity_counts_as_none(self):
        status, _ = adjudicate(None, 0, False)
        self.assertEqual(status, ReturnStatus.COMPLETED)


class TestComputeFees(unittest.TestCase):

    def test_on_time(self):
        due = utcnow()
        fees = compute_fees(due, due - timedelta(hours=3), None, Decimal("0"))
        self.assertFalse(fees["isLate"])
        self.assertEqual(fees["lateDays"], 0)
        self.assertEqual(fees["totalFee"], Decimal("0"))

    def test_partial_day_rounds_up(self):
        due = utcnow()
        fees = compute_fees(due, due + timedelta(days=1, hours=2), Decimal("10"), Decimal("5"))
        self.assertTrue(fees["isLate"])
        self.assertEqual(fees["lateDays"], 2)
        self.assertEqual(fees["totalFee"], Decimal("15"))

    def test_default_penalty_uses_daily_rate(self):
        due = utcnow()
        with patch.object(settings, "LATE_FEE_PER_DAY", 20.0):
            fees = compute_fees(due, due + timedelta(days=3), None, None)
        self.assertEqual(fees["penaltyFee"], Decimal("60"))
        self.assertEqual(fees["totalFee"], Decimal("60"))


class TestReturnWorkflow(DatabaseTestCase):

    def lent(self, item_quantity: int = 5, quantity: int = 2) -> tuple[int, int]:
        item_id = self.make_item(quantity=item_quantity)
        b_id = self.make_borrowing(item_id, quantity=quantity)
        for status in (BorrowingStatus.APPROVED, BorrowingStatus.RELEASED):
            borrowing_service.update_borrowing(self.db, b_id, BorrowingUpdateRequest(status=status), ACTOR)
        return item_id, b_id

    def submit(self, borrowing_id: int, **fields) -> tuple[dict, str]:
        body = ReturnCreateRequest(borrowingId=borrowing_id, **fields)
        return return_service.submit_return(self.db, body, ACTOR)

    def borrowing_status(self, borrowing_id: int) -> str:
        return borrowing_service.get_borrowing(self.db, borrowing_id)["status"]

    def test_clean_return_completes_and_restocks(self):
        item_id, b_id = self.lent()

        data, message = self.submit(b_id, damageSeverity=DamageSeverity.MINOR, conditionAfter="Good")

        self.assertEqual(data["status"], "completed")
        self.assertEqual(data["totalFee"], 0.0)
        self.assertIn("completed", message)
        self.assertEqual(self.borrowing_status(b_id), "returned")
        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)

    def test_severe_damage_waits_for_review(self):
        item_id, b_id = self.lent()

        data, _ = self.submit(b_id, damageSeverity=DamageSeverity.SEVERE, damageFee=Decimal("0"))

        self.assertEqual(data["status"], "pending")
        self.assertEqual(self.borrowing_status(b_id), "return_requested")
        self.assertBuckets(item_id, availableQuantity=3, borrowedQuantity=2)

    def test_total_fee_is_recomputed(self):
        _, b_id = self.lent()
        data, _ = self.submit(b_id, penaltyFee=Decimal("12.5"), damageFee=Decimal("7.5"))
        self.assertEqual(data["totalFee"], 20.0)
        self.assertEqual(data["status"], "approved")

    def test_admin_approval_releases_units(self):
        item_id, b_id = self.lent()
        data, _ = self.submit(b_id, damageSeverity=DamageSeverity.SEVERE, damageFee=Decimal("40"))

        data = return_service.update_return(
            self.db, data["id"], ReturnUpdateRequest(status=ReturnStatus.APPROVED), ACTOR)

        self.assertEqual(data["status"], "approved")
        self.assertEqual(self.borrowing_status(b_id), "returned")
        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)

        # Paying the fee later closes the return without touching stock again
        data = return_service.update_return(self.db, data["id"], ReturnUpdateRequest(isFeePaid=True), ACTOR)
        self.assertEqual(data["status"], "completed")
        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)

    def test_approval_with_nothing_owed_promotes_to_completed(self):
        _, b_id = self.lent()
        data, _ = self.submit(b_id, damageSeverity=DamageSeverity.MODERATE)

        data = return_service.update_return(
            self.db, data["id"], ReturnUpdateRequest(status=ReturnStatus.APPROVED), ACTOR)
        self.assertEqual(data["status"], "completed")

    def test_rejection_moves_borrowing_to_return_rejected(self):
        item_id, b_id = self.lent()
        data, _ = self.submit(b_id, damageSeverity=DamageSeverity.SEVERE)

        data = return_service.update_return(
            self.db, data["id"], ReturnUpdateRequest(status=ReturnStatus.REJECTED, remarks="Lens missing"), ACTOR)

        self.assertEqual(data["status"], "rejected")
        self.assertEqual(self.borrowing_status(b_id), "return_rejected")
        self.assertBuckets(item_id, availableQuantity=3, borrowedQuantity=2)

        with self.assertRaises(InvalidTransitionException):
            return_service.update_return(
                self.db, data["id"], ReturnUpdateRequest(status=ReturnStatus.APPROVED), ACTOR)

    def test_fee_edits_are_recomputed(self):
        _, b_id = self.lent()
        data, _ = self.submit(b_id, damageSeverity=DamageSeverity.SEVERE, damageFee=Decimal("10"))

        data = return_service.update_return(
            self.db, data["id"], ReturnUpdateRequest(damageFee=Decimal("35"), penaltyFee=Decimal("5")), ACTOR)
        self.assertEqual(data["totalFee"], 40.0)
        self.assertEqual(data["status"], "pending")

    def test_pending_borrowing_cannot_be_returned(self):
        item_id = self.make_item(quantity=5)
        b_id = self.make_borrowing(item_id)
        with self.assertRaises(InvalidTransitionException):
            self.submit(b_id)

    def test_unknown_borrowing(self):
        with self.assertRaises(NotFoundException):
            self.submit(999)

    def test_late_return_flags_days(self):
        item_id = self.make_item(quantity=5)
        start = utcnow() - timedelta(days=6)
        b_id = self.make_borrowing(item_id, quantity=1, intendedBorrowDate=start,
                                   intendedReturnDate=start + timedelta(days=2))
        borrowing_service.update_borrowing(self.db, b_id, BorrowingUpdateRequest(status=BorrowingStatus.APPROVED),
                                           ACTOR)

        returned_at = start + timedelta(days=5, hours=1)
        with patch.object(settings, "LATE_FEE_PER_DAY", 15.0):
            data, message = self.submit(b_id, actualReturnDate=returned_at)
        self.assertTrue(data["isLate"])
        self.assertEqual(data["lateDays"], 4)
        self.assertEqual(data["penaltyFee"], 60.0)
        self.assertEqual(data["status"], "approved")
        self.assertIn("60.00", message)
        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)

    def test_delete_has_no_ledger_effect(self):
        item_id, b_id = self.lent()
        data, _ = self.submit(b_id)
        return_service.delete_return(self.db, data["id"], ACTOR)

        self.assertBuckets(item_id, availableQuantity=5, borrowedQuantity=0)
        self.assertEqual(self.borrowing_status(b_id), "returned")
        with self.assertRaises(NotFoundException):
            return_service.get_return(self.db, data["id"])


if __name__ == '__main__':
    unittest.main()
