import unittest
from datetime import timedelta

from labtrack.testing import ApiTestCase, ACTOR
from labtrack.utils.clock import utcnow


class TestInventoryApi(ApiTestCase):

    def create_item(self, **body) -> dict:
        body.setdefault("name", "Analytical Balance")
        body.setdefault("quantity", 4)
        res = self.post("/inventory", body)
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()["data"]

    def test_create_and_list_use_the_envelope(self):
        item = self.create_item(itemId="BAL-001", roomAssigned="Lab 3")
        self.assertEqual(item["availableQuantity"], 4)
        self.assertEqual(item["totalQuantity"], 4)

        res = self.get("/inventory", search="Lab 3")
        body = res.json()
        self.assertEqual(res.status_code, 200)
        self.assertTrue(body["success"])
        self.assertEqual(body["meta"]["total"], 1)
        self.assertEqual(body["meta"]["totalPages"], 1)
        self.assertFalse(body["meta"]["hasNext"])
        self.assertEqual(body["data"][0]["itemId"], "BAL-001")

    def test_missing_item_is_404(self):
        res = self.get("/inventory/999")
        body = res.json()
        self.assertEqual(res.status_code, 404)
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], "NOT_FOUND")

    def test_validation_errors_are_400_with_fields(self):
        res = self.post("/inventory", {"name": "  ", "quantity": -1})
        body = res.json()
        self.assertEqual(res.status_code, 400)
        self.assertEqual(body["error"]["code"], "VALIDATION_ERROR")
        fields = {d["field"] for d in body["error"]["details"]}
        self.assertIn("name", fields)
        self.assertIn("quantity", fields)

    def test_bucket_fields_are_not_editable(self):
        item = self.create_item()
        res = self.put(f"/inventory/{item['id']}", {"availableQuantity": 99, "roomAssigned": "Lab 9"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["availableQuantity"], 4)
        self.assertEqual(res.json()["data"]["roomAssigned"], "Lab 9")

    def test_borrowing_toggle(self):
        item = self.create_item()
        res = self.patch(f"/inventory/{item['id']}/borrowing-status", {"canBeBorrowed": False})
        self.assertEqual(res.status_code, 200)
        self.assertFalse(res.json()["data"]["canBeBorrowed"])
        self.assertEqual(self.get("/inventory", borrowable=True).json()["meta"]["total"], 0)


class TestWorkflowApi(ApiTestCase):

    def setUp(self):
        super().setUp()
        res = self.post("/inventory", {"name": "pH Meter", "quantity": 5})
        self.item_id = res.json()["data"]["id"]

    def borrow(self, quantity: int) -> dict:
        start = utcnow()
        return self.post("/borrowings", {
            "equipmentId":        self.item_id,
            "borrowerId":         "2020-00311",
            "borrowerName":       "Sam Villanueva",
            "borrowerEmail":      "sam.v@example.edu",
            "purpose":            "Titration lab",
            "quantity":           quantity,
            "intendedBorrowDate": start.isoformat(),
            "intendedReturnDate": (start + timedelta(days=3)).isoformat(),
        })

    def levels(self) -> dict:
        return self.get(f"/inventory/{self.item_id}").json()["data"]

    def test_quantity_conflict_over_http(self):
        res = self.borrow(6)
        body = res.json()
        self.assertEqual(res.status_code, 400)
        self.assertEqual(body["error"]["code"], "QUANTITY_CONFLICT")
        self.assertIn("Available: 5, Requested: 6", body["message"])

    def test_bad_email_is_rejected(self):
        start = utcnow()
        res = self.post("/borrowings", {
            "equipmentId":        self.item_id,
            "borrowerId":         "2020-00311",
            "borrowerName":       "Sam Villanueva",
            "borrowerEmail":      "not-an-email",
            "purpose":            "Titration lab",
            "intendedBorrowDate": start.isoformat(),
            "intendedReturnDate": (start + timedelta(days=1)).isoformat(),
        })
        self.assertEqual(res.status_code, 400)
        self.assertIn("borrowerEmail", {d["field"] for d in res.json()["error"]["details"]})

    def test_borrowing_lifecycle_and_journal(self):
        borrowing = self.borrow(2).json()["data"]

        res = self.patch(f"/borrowings/{borrowing['id']}", {"status": "approved"})
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["message"], "Borrowing request approved")
        self.assertEqual(self.levels()["availableQuantity"], 3)

        res = self.patch(f"/borrowings/{borrowing['id']}", {"status": "pending"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["code"], "INVALID_TRANSITION")

        res = self.patch(f"/borrowings/{borrowing['id']}", {"status": "returned"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self.levels()["availableQuantity"], 5)

        movements = self.get(f"/inventory/{self.item_id}/movements").json()
        self.assertEqual(movements["meta"]["total"], 2)
        latest = movements["data"][0]
        self.assertEqual((latest["fromBucket"], latest["toBucket"]), ("borrowedQuantity", "availableQuantity"))
        self.assertEqual(latest["actor"], ACTOR)
        self.assertEqual(latest["workflow"], "borrowing")

    def test_item_in_use_cannot_be_deleted(self):
        borrowing = self.borrow(1).json()["data"]
        self.patch(f"/borrowings/{borrowing['id']}", {"status": "approved"})

        res = self.delete(f"/inventory/{self.item_id}")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error"]["code"], "ITEM_IN_USE")

    def test_maintenance_list_carries_stats(self):
        start = utcnow()
        res = self.post("/maintenance", {
            "equipmentId":     self.item_id,
            "quantity":        2,
            "scheduledDate":   start.isoformat(),
            "dueDate":         (start + timedelta(days=2)).isoformat(),
            "nextMaintenance": (start + timedelta(days=90)).isoformat(),
            "assignedToName":  "J. Lim",
        })
        self.assertEqual(res.status_code, 201, res.text)
        record = res.json()["data"]

        res = self.put(f"/maintenance/{record['id']}/quantity", {"maintainedQuantity": 1})
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["data"]["status"], "In Progress")

        body = self.get("/maintenance").json()
        self.assertEqual(body["stats"]["totalRecords"], 1)
        self.assertEqual(body["stats"]["inProgress"], 1)
        self.assertEqual(self.levels()["maintenanceQuantity"], 1)

    def test_return_submission_reports_adjudication(self):
        borrowing = self.borrow(1).json()["data"]
        self.patch(f"/borrowings/{borrowing['id']}", {"status": "approved"})

        res = self.post("/returning", {"borrowingId": borrowing["id"], "damageSeverity": "Severe"})
        self.assertEqual(res.status_code, 201, res.text)
        self.assertEqual(res.json()["data"]["status"], "pending")
        self.assertIn("awaiting review", res.json()["message"])
        self.assertEqual(self.levels()["borrowedQuantity"], 1)


class TestHealth(ApiTestCase):

    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "ok")


if __name__ == '__main__':
    unittest.main()
