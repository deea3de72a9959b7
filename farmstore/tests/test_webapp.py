import datetime as dt
import tempfile
import unittest
from pathlib import Path

from farmstore.core.config import Config
from farmstore.core.logging_setup import reset_logging
from farmstore.webapp import create_app


class WebAppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        reset_logging()
        self.tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self.tmp.name) / "data"
        self.now = dt.datetime(2024, 5, 1, 9, 0)
        config = Config(Path(self.tmp.name) / "settings.ini")
        self.app = create_app(self.data_dir, config=config, now=lambda: self.now)

        @self.app.get("/boom")
        def boom():
            raise ZeroDivisionError("division by zero")

        self.client = self.app.test_client()

    def tearDown(self) -> None:
        reset_logging()
        self.tmp.cleanup()

    def test_index_redirects_to_reports(self) -> None:
        response = self.client.get("/")
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers["Location"].endswith("/reports"))

    def test_seeded_listing(self) -> None:
        response = self.client.get("/inventory")
        self.assertEqual(response.status_code, 200)
        skus = [item["sku"] for item in response.get_json()]
        self.assertEqual(skus, ["DOGFOOD-20", "CATTOY-FEATHER"])

    def test_sell_item_flow(self) -> None:
        response = self.client.post("/sales/items", json={"sku": "DOGFOOD-20", "qty": 3, "tender": "card"})
        self.assertEqual(response.status_code, 201)
        sale = response.get_json()
        self.assertEqual(sale["date_time"], "2024-05-01T09:00:00")
        self.assertAlmostEqual(sale["paid_card"], sale["total"], places=2)

        inventory = {item["sku"]: item for item in self.client.get("/inventory").get_json()}
        self.assertEqual(inventory["DOGFOOD-20"]["qty_on_hand"], 9)
        detail = self.client.get(f"/sales/{sale['id']}").get_json()
        self.assertEqual(detail["lines"][0]["ref_id"], "I1")

    def test_validation_failure_is_a_400(self) -> None:
        response = self.client.post("/sales/items", json={"sku": "DOGFOOD-20", "qty": 50})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Invalid qty")
        response = self.client.post("/sales/items", json={"sku": "DOGFOOD-20", "qty": "lots"})
        self.assertEqual(response.status_code, 400)

    def test_form_posts_are_accepted(self) -> None:
        response = self.client.post(
            "/inventory",
            data={"sku": "HAY-50", "name": "Hay", "unit_price": "18.50", "qty_on_hand": "4", "taxable": "on"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.get_json()["taxable"])
        duplicate = self.client.post("/inventory", data={"sku": "hay-50", "name": "Hay again"})
        self.assertEqual(duplicate.status_code, 400)

    def test_booking_and_completion(self) -> None:
        payload = {"customer_id": "C3", "service_id": "S2", "start": "2024-05-02T10:00", "full_name": "Pat"}
        booked = self.client.post("/appointments", json=payload)
        self.assertEqual(booked.status_code, 201)
        clash = self.client.post("/appointments", json=dict(payload, start="2024-05-02T10:15"))
        self.assertEqual(clash.status_code, 400)
        self.assertEqual(clash.get_json()["error"], "Time overlaps existing appointment.")

        appointment_id = booked.get_json()["id"]
        completed = self.client.post(f"/appointments/{appointment_id}/complete", json={})
        self.assertEqual(completed.get_json()["status"], "DONE")
        self.assertEqual(completed.get_json()["paid_amount"], 35.0)

        board = self.client.get("/appointments").get_json()
        self.assertEqual(board[0]["customer"], "Pat")

    def test_offset_start_is_rejected_and_later_bookings_work(self) -> None:
        aware = self.client.post(
            "/appointments", json={"customer_id": "C1", "service_id": "S1", "start": "2024-05-02T10:00:00+00:00"}
        )
        self.assertEqual(aware.status_code, 400)
        self.assertIn("UTC offset", aware.get_json()["error"])
        local = self.client.post(
            "/appointments", json={"customer_id": "C1", "service_id": "S1", "start": "2024-05-03T12:00"}
        )
        self.assertEqual(local.status_code, 201)
        self.assertEqual(len(self.client.get("/appointments").get_json()), 1)

    def test_clock_in_and_out(self) -> None:
        self.assertEqual(self.client.post("/employees/E1/clock-in").status_code, 201)
        self.assertEqual(self.client.post("/employees/E1/clock-in").status_code, 400)
        roster = {row["employee"]["id"]: row["clocked_in"] for row in self.client.get("/employees").get_json()}
        self.assertTrue(roster["E1"])
        self.now = self.now + dt.timedelta(hours=2)
        entry = self.client.post("/employees/E1/clock-out").get_json()
        self.assertEqual(entry["hours"], 2.0)
        self.assertEqual(entry["pay"], 31.0)
        report = self.client.get("/reports").get_json()
        self.assertEqual(report["employee_hours"], 2.0)

    def test_unexpected_error_is_logged_and_reported(self) -> None:
        response = self.client.get("/boom")
        self.assertEqual(response.status_code, 500)
        self.assertIn("Sorry, something went wrong", response.get_json()["error"])
        log_text = (self.data_dir / "error.log").read_text(encoding="utf-8")
        self.assertIn("Failure while handling GET /boom", log_text)
        self.assertIn("ZeroDivisionError", log_text)
        # The app keeps serving afterwards.
        self.assertEqual(self.client.get("/reports").status_code, 200)

    def test_unknown_route_is_a_404(self) -> None:
        self.assertEqual(self.client.get("/nowhere").status_code, 404)


if __name__ == "__main__":
    unittest.main()
