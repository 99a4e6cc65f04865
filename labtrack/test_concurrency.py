"""
Two sessions racing on the same rows of a file-backed SQLite database.

The shared in-memory engine in labtrack.testing hands every session the same
connection, so it cannot show one session working from rows another session
has since committed over.
"""
import os
import tempfile
import unittest
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import labtrack.models  # noqa: F401
from labtrack.database import Base, enable_sqlite_foreign_keys
from labtrack.models.borrowing import BorrowingStatus
from labtrack.models.inventory_item import InventoryItem
from labtrack.schemas.borrowing import BorrowingCreateRequest, BorrowingUpdateRequest
from labtrack.schemas.inventory import InventoryCreateRequest
from labtrack.services.borrowing_service import borrowing_service
from labtrack.services.inventory_service import inventory_service
from labtrack.testing import ACTOR
from labtrack.utils.clock import utcnow
from labtrack.utils.exceptions import ConcurrencyException, QuantityConflictException

APPROVE = BorrowingUpdateRequest(status=BorrowingStatus.APPROVED)


class TestConcurrentApproval(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmp.name, "labtrack.db")
        self.engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
        enable_sqlite_foreign_keys(self.engine)
        Base.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.first = self.Session()
        self.second = self.Session()

    def tearDown(self):
        self.first.close()
        self.second.close()
        self.engine.dispose()
        self.tmp.cleanup()

    def make_item(self, quantity: int) -> int:
        body = InventoryCreateRequest(name="Analytical Balance", quantity=quantity)
        return inventory_service.create_item(self.first, body, ACTOR)["id"]

    def make_borrowing(self, item_id: int, quantity: int) -> int:
        start = utcnow()
        body = BorrowingCreateRequest(
            equipmentId=item_id,
            borrowerId="2021-00042",
            borrowerName="Dana Reyes",
            borrowerEmail="dana.reyes@example.edu",
            purpose="Titration practical",
            quantity=quantity,
            intendedBorrowDate=start,
            intendedReturnDate=start + timedelta(days=7),
        )
        return borrowing_service.create_borrowing(self.first, body, ACTOR)["id"]

    def buckets(self, item_id: int) -> tuple:
        with self.Session() as db:
            item = db.query(InventoryItem).filter(InventoryItem.id == item_id).one()
            return item.availableQuantity, item.borrowedQuantity

    def test_second_approval_of_same_request_loses(self):
        item_id = self.make_item(10)
        b_id = self.make_borrowing(item_id, 3)

        # Both operators open the pending request before either acts on it
        self.assertEqual(borrowing_service.get_borrowing(self.second, b_id)["status"], "pending")

        borrowing_service.update_borrowing(self.first, b_id, APPROVE, ACTOR)
        with self.assertRaises(ConcurrencyException):
            borrowing_service.update_borrowing(self.second, b_id, APPROVE, "stockroom")

        self.assertEqual(self.buckets(item_id), (7, 3))
        with self.Session() as db:
            data = borrowing_service.get_borrowing(db, b_id)
        self.assertEqual(data["status"], "approved")
        self.assertEqual(data["approvedBy"], ACTOR)

    def test_competing_requests_cannot_overdraw(self):
        item_id = self.make_item(5)
        first_id = self.make_borrowing(item_id, 3)
        second_id = self.make_borrowing(item_id, 3)

        borrowing_service.get_borrowing(self.second, second_id)
        borrowing_service.update_borrowing(self.first, first_id, APPROVE, ACTOR)
        with self.assertRaises(QuantityConflictException):
            borrowing_service.update_borrowing(self.second, second_id, APPROVE, "stockroom")

        self.assertEqual(self.buckets(item_id), (2, 3))
        with self.Session() as db:
            self.assertEqual(borrowing_service.get_borrowing(db, second_id)["status"], "pending")


if __name__ == '__main__':
    unittest.main()
