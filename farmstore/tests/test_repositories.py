import datetime as dt
import re
import tempfile
import unittest
from pathlib import Path

from farmstore.core.database import RecordFileStore
from farmstore.core.models import (
    Animal,
    Appointment,
    Employee,
    InventoryItem,
    Sale,
    SaleLine,
    TimeEntry,
)
from farmstore.core.repositories import Repositories


class RepositoriesTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.failures: list[str] = []
        self.store = RecordFileStore(
            Path(self.tmp.name) / "data", reporter=lambda doing, exc: self.failures.append(doing)
        )
        self.repos = Repositories(self.store)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _write_raw(self, name: str, text: str) -> None:
        self.store.directory.mkdir(parents=True, exist_ok=True)
        self.store.path(name).write_text(text, encoding="utf-8")

    def test_seed_all_writes_every_file_once(self) -> None:
        written = self.repos.seed_all()
        self.assertEqual(len(written), 8)
        self.assertEqual(self.repos.seed_all(), [])
        self.assertEqual([item.sku for item in self.repos.inventory.all()], ["DOGFOOD-20", "CATTOY-FEATHER"])
        self.assertEqual(len(self.repos.animals.all()), 2)
        self.assertEqual(len(self.repos.customers.all()), 2)
        self.assertEqual(len(self.repos.services.all()), 2)
        self.assertEqual(len(self.repos.employees.all()), 2)
        self.assertEqual(self.repos.appointments.all(), [])
        self.assertEqual(self.repos.sales.all(), [])
        self.assertEqual(self.repos.time_entries.all(), [])

    def test_seeded_values_are_parsed(self) -> None:
        self.repos.seed_all()
        kibble = self.repos.inventory.by_id("I1")
        self.assertEqual(kibble.unit_price, 29.99)
        self.assertEqual(kibble.qty_on_hand, 12)
        self.assertTrue(kibble.taxable)
        chicken = self.repos.animals.by_id("A1")
        self.assertIsNone(chicken.microchip_id)
        self.assertEqual(chicken.price, 15.0)
        self.assertFalse(chicken.sold)
        self.assertEqual(self.repos.services.by_id("S2").duration_minutes, 30)
        self.assertEqual(self.repos.employees.by_id("E1").hourly_rate, 15.5)

    def test_by_sku_ignores_case(self) -> None:
        self.repos.seed_all()
        self.assertEqual(self.repos.inventory.by_sku("dogfood-20").id, "I1")
        self.assertEqual(self.repos.inventory.by_sku(" CatToy-Feather ").id, "I2")
        self.assertIsNone(self.repos.inventory.by_sku("missing"))

    def test_inventory_round_trip_with_delimiters(self) -> None:
        items = [
            InventoryItem(sku="HAY-1", name="Hay, timothy", category="Feed, bulk", unit_price=18.5, qty_on_hand=4),
            InventoryItem(sku="GRIT", name="Grit", unit_price=3.0, qty_on_hand=0, taxable=False),
        ]
        self.assertTrue(self.repos.inventory.save_all(items))
        self.assertEqual(self.repos.inventory.all(), items)

    def test_save_all_replaces_the_collection(self) -> None:
        self.repos.seed_all()
        remaining = [item for item in self.repos.inventory.all() if item.id != "I1"]
        self.repos.inventory.save_all(remaining)
        self.assertIsNone(self.repos.inventory.by_id("I1"))
        self.assertEqual(len(self.repos.inventory.all()), 1)

    def test_short_rows_are_skipped(self) -> None:
        self._write_raw(
            "inventory.csv",
            "id,sku,name,category,unitPrice,qtyOnHand,taxable\n"
            "I1,SKU1,Truncated\n"
            "I2,SKU2,Whole,Cat,1.5,2,true\n",
        )
        items = self.repos.inventory.all()
        self.assertEqual([item.id for item in items], ["I2"])
        self.assertEqual(items[0].qty_on_hand, 2)

    def test_bad_scalars_default(self) -> None:
        self._write_raw(
            "inventory.csv",
            "id,sku,name,category,unitPrice,qtyOnHand,taxable\nI9,SKU9,Thing,Cat,abc,xyz,maybe\n",
        )
        item = self.repos.inventory.by_id("I9")
        self.assertEqual(item.unit_price, 0.0)
        self.assertEqual(item.qty_on_hand, 0)
        self.assertFalse(item.taxable)

    def test_unparseable_appointment_times_drop_the_row(self) -> None:
        self._write_raw(
            "appointments.csv",
            "id,customerId,animalId,serviceId,start,end,status,paidAmount\n"
            "AP1,C1,,S1,soon,later,BOOKED,0\n"
            "AP2,C1,,S1,2024-05-01T10:00,2024-05-01T10:15,BOOKED,0\n",
        )
        appointments = self.repos.appointments.all()
        self.assertEqual([a.id for a in appointments], ["AP2"])
        self.assertIsNone(appointments[0].animal_id)

    def test_appointment_round_trip(self) -> None:
        start = dt.datetime(2024, 5, 1, 10, 0)
        appointment = Appointment(
            customer_id="C1",
            service_id="S2",
            start=start,
            end=start + dt.timedelta(minutes=30),
            animal_id="A1",
        )
        self.repos.appointments.save_all([appointment])
        self.assertEqual(self.repos.appointments.all(), [appointment])

    def test_sale_round_trip(self) -> None:
        sale = Sale(
            date_time=dt.datetime(2024, 5, 1, 12, 30, 15),
            lines=[
                SaleLine("ITEM", "I1", "Dog Kibble 20lb", 2, 29.99, True, 59.98),
                SaleLine("ANIMAL", "A1", "Chicken (Silkie)", 1, 15.0, False, 15.0),
            ],
            sub_total=74.98,
            tax=4.2,
            total=79.18,
            paid_card=79.18,
        )
        self.repos.sales.save_all([sale])
        loaded = self.repos.sales.all()
        self.assertEqual(loaded, [sale])
        self.assertIsNone(loaded[0].customer_id)

    def test_time_entry_helpers(self) -> None:
        start = dt.datetime(2024, 5, 1, 9, 0)
        entries = [
            TimeEntry("E1", start, start + dt.timedelta(hours=2), 2.0, 31.0),
            TimeEntry("E1", start + dt.timedelta(days=1), None),
            TimeEntry("E2", start, start + dt.timedelta(hours=1), 1.0, 14.0),
        ]
        self.repos.time_entries.save_all(entries)
        self.assertEqual(self.repos.time_entries.open_shift_for("E1").id, entries[1].id)
        self.assertIsNone(self.repos.time_entries.open_shift_for("E2"))
        self.assertEqual(self.repos.time_entries.sum_hours("E1"), 2.0)
        self.assertEqual(self.repos.time_entries.sum_pay("E1"), 31.0)
        self.assertEqual(self.repos.time_entries.sum_pay("E3"), 0)
        self.assertEqual(len(self.repos.time_entries.for_employee("E1")), 2)
        raw = self.store.path("timeclock.csv").read_text(encoding="utf-8").splitlines()
        self.assertEqual(raw[2].split(",")[3], "")

    def test_generated_ids_use_type_prefix(self) -> None:
        self.assertRegex(Animal(species="Goat").id, r"^A-[0-9a-f]{8}$")
        self.assertRegex(Employee(name="Sam").id, r"^E-[0-9a-f]{8}$")
        self.assertTrue(re.fullmatch(r"R-[0-9a-f]{8}", Sale().id))
        self.assertTrue(Appointment("C1", "S1", dt.datetime.now(), dt.datetime.now()).id.startswith("AP-"))

    def test_read_failure_surfaces_as_empty_collection(self) -> None:
        self.store.path("employees.csv").mkdir(parents=True)
        self.assertEqual(self.repos.employees.all(), [])
        self.assertIsNone(self.repos.employees.by_id("E1"))
        self.assertIn("reading employees.csv", self.failures)


if __name__ == "__main__":
    unittest.main()
