"""
Shared fixtures for the unittest modules beside the code.

Each test gets a fresh in-memory SQLite schema. StaticPool keeps the single
connection alive so every session (and the API's get_db override) sees the
same database.
"""
import unittest
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import labtrack.models  # noqa: F401  registers every table on Base.metadata
from labtrack.database import Base, enable_sqlite_foreign_keys, get_db
from labtrack.models.inventory_item import InventoryItem
from labtrack.schemas.borrowing import BorrowingCreateRequest
from labtrack.schemas.inventory import InventoryCreateRequest
from labtrack.services.inventory_service import inventory_service
from labtrack.services.borrowing_service import borrowing_service
from labtrack.utils.clock import utcnow

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)

TestingSessionLocal = sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)

ACTOR = "lab.tech"


class DatabaseTestCase(unittest.TestCase):
    """Service-level tests against a throwaway schema."""

    def setUp(self):
        Base.metadata.create_all(bind=test_engine)
        self.db = TestingSessionLocal()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=test_engine)

    # ─── Builders ─────────────────────────────────────────────────────────────
    def make_item(self, quantity: int = 10, **overrides) -> int:
        body = InventoryCreateRequest(name=overrides.pop("name", "Compound Microscope"),
                                      quantity=quantity, **overrides)
        return inventory_service.create_item(self.db, body, ACTOR)["id"]

    def make_borrowing(self, item_id: int, quantity: int = 1, days: int = 7, **overrides) -> int:
        start = overrides.pop("intendedBorrowDate", utcnow())
        body = BorrowingCreateRequest(
            equipmentId=item_id,
            borrowerId=overrides.pop("borrowerId", "2021-00042"),
            borrowerName=overrides.pop("borrowerName", "Dana Reyes"),
            borrowerEmail=overrides.pop("borrowerEmail", "dana.reyes@example.edu"),
            purpose=overrides.pop("purpose", "Cell biology practical"),
            quantity=quantity,
            intendedBorrowDate=start,
            intendedReturnDate=overrides.pop("intendedReturnDate", start + timedelta(days=days)),
            **overrides,
        )
        return borrowing_service.create_borrowing(self.db, body, ACTOR)["id"]

    def item(self, item_id: int) -> InventoryItem:
        """Fresh read of the item's bucket levels."""
        self.db.expire_all()
        return self.db.query(InventoryItem).filter(InventoryItem.id == item_id).one()

    def assertBuckets(self, item_id: int, **expected):
        item = self.item(item_id)
        actual = {k: getattr(item, k) for k in expected}
        self.assertEqual(actual, expected)
        self.assertEqual(item.availableQuantity + item.borrowedQuantity + item.maintenanceQuantity,
                         item.quantity)
        for bucket in ("availableQuantity", "borrowedQuantity", "maintenanceQuantity", "disposalQuantity"):
            self.assertGreaterEqual(getattr(item, bucket), 0, bucket)


class ApiTestCase(unittest.TestCase):
    """HTTP-level tests through FastAPI's TestClient with get_db pointed at the test engine."""

    def setUp(self):
        from labtrack.main import create_app

        Base.metadata.create_all(bind=test_engine)

        def override_get_db():
            db = TestingSessionLocal()
            try:
                yield db
            finally:
                db.close()

        self.app = create_app()
        self.app.dependency_overrides[get_db] = override_get_db
        # Not used as a context manager, so startup hooks stay off the real engine
        self.client = TestClient(self.app)
        self.headers = {"X-Actor": ACTOR}

    def tearDown(self):
        self.app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=test_engine)

    def post(self, path: str, body: dict):
        return self.client.post(f"/api/v1{path}", json=body, headers=self.headers)

    def put(self, path: str, body: dict):
        return self.client.put(f"/api/v1{path}", json=body, headers=self.headers)

    def patch(self, path: str, body: dict):
        return self.client.patch(f"/api/v1{path}", json=body, headers=self.headers)

    def get(self, path: str, **params):
        return self.client.get(f"/api/v1{path}", params=params, headers=self.headers)

    def delete(self, path: str):
        return self.client.delete(f"/api/v1{path}", headers=self.headers)
