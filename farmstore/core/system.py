"""Core orchestration logic for the farm store."""

from __future__ import annotations

import datetime as dt
import functools
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

from .database import Reporter, RecordFileStore
from .logging_setup import get_logger
from .models import (
    DONE,
    Animal,
    Appointment,
    Customer,
    Employee,
    InventoryItem,
    Sale,
    SaleLine,
    Service,
    TimeEntry,
)
from .repositories import FlatFileRepository, Repositories

TAX_RATE = 0.07
TENDERS = ("cash", "card")

logger = get_logger("system")


class ValidationError(RuntimeError):
    """Raised when incoming data or a business rule rejects an operation."""


def compute_totals(sale: Sale, tax_rate: float = TAX_RATE) -> Sale:
    """Fill in ``sub_total``, ``tax`` and ``total`` from the sale lines."""

    sub_total = sum(line.line_total for line in sale.lines)
    tax = sum(line.line_total * tax_rate for line in sale.lines if line.taxable)
    sale.sub_total = round(sub_total, 2)
    sale.tax = round(tax, 2)
    sale.total = round(sale.sub_total + sale.tax, 2)
    return sale


def elapsed_hours(start: dt.datetime, end: dt.datetime) -> float:
    """Whole minutes between ``start`` and ``end`` in hours, never negative."""

    minutes = int((end - start).total_seconds() // 60)
    return max(0.0, minutes / 60.0)


F = TypeVar("F", bound=Callable[..., Any])


def _serialized(method: F) -> F:
    """Run ``method`` while holding the system lock."""

    @functools.wraps(method)
    def wrapper(self: FarmStoreSystem, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class FarmStoreSystem:
    """High level façade over the record files.

    Every operation re-reads what it needs, changes it in memory and writes
    each touched collection back in full. Operations that touch two files
    (a sale changes stock and the sales ledger) issue two separate writes;
    if the second one fails the first is not rolled back.

    Operations that change a file hold one re-entrant lock for their whole
    read-check-write cycle, so concurrent callers in one process cannot both
    pass a check against the same snapshot.
    """

    def __init__(
        self,
        data_dir: str | Path = "data",
        *,
        tax_rate: float = TAX_RATE,
        reporter: Reporter | None = None,
        now: Callable[[], dt.datetime] | None = None,
        seed: bool = True,
    ) -> None:
        self._lock = threading.RLock()
        self.store = RecordFileStore(data_dir, reporter)
        self.repos = Repositories(self.store)
        self.tax_rate = tax_rate
        self.now = now or dt.datetime.now
        if seed:
            self.seed()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @_serialized
    def seed(self) -> list[str]:
        """Write seed data into any missing or empty file."""

        written = self.repos.seed_all()
        if written:
            logger.info("Seeded %s", ", ".join(written))
        return written

    def _save(self, repo: FlatFileRepository, entities: Iterable[Any], what: str) -> bool:
        saved = repo.save_all(entities)
        if not saved:
            logger.warning("%s was not saved to %s; the change is not on disk", what, repo.file_name)
        return saved

    def _record_sale(self, sale: Sale) -> bool:
        sales = self.repos.sales.all()
        sales.append(sale)
        return self._save(self.repos.sales, sales, f"Sale {sale.id}")

    @staticmethod
    def _apply_tender(sale: Sale, tender: str) -> None:
        if tender == "cash":
            sale.paid_cash = sale.total
        else:
            sale.paid_card = sale.total

    @staticmethod
    def _check_tender(tender: str) -> str:
        tender = (tender or "").strip().lower()
        if tender not in TENDERS:
            raise ValidationError("Payment method must be cash or card")
        return tender

    @staticmethod
    def _require_non_negative(**values: float | int | None) -> None:
        for name, value in values.items():
            if value is not None and value < 0:
                raise ValidationError(f"{name.replace('_', ' ').capitalize()} cannot be negative")

    # ------------------------------------------------------------------
    # Inventory & item sales
    # ------------------------------------------------------------------
    def list_inventory(self) -> list[InventoryItem]:
        return self.repos.inventory.all()

    def get_inventory_item(self, item_id: str) -> InventoryItem:
        item = self.repos.inventory.by_id(item_id)
        if item is None:
            raise ValidationError("Inventory item not found")
        return item

    @_serialized
    def add_inventory_item(
        self,
        *,
        sku: str,
        name: str,
        category: str = "",
        unit_price: float = 0.0,
        qty_on_hand: int = 0,
        taxable: bool = True,
    ) -> InventoryItem:
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("SKU is required")
        if self.repos.inventory.by_sku(sku) is not None:
            raise ValidationError("SKU exists")
        self._require_non_negative(unit_price=unit_price, quantity=qty_on_hand)
        item = InventoryItem(
            sku=sku,
            name=name,
            category=category,
            unit_price=unit_price,
            qty_on_hand=qty_on_hand,
            taxable=taxable,
        )
        items = self.repos.inventory.all()
        items.append(item)
        self._save(self.repos.inventory, items, f"Item {item.sku}")
        return item

    @_serialized
    def update_inventory_item(
        self,
        item_id: str,
        *,
        name: str | None = None,
        category: str | None = None,
        unit_price: float | None = None,
        qty_on_hand: int | None = None,
        taxable: bool | None = None,
    ) -> InventoryItem:
        self._require_non_negative(unit_price=unit_price, quantity=qty_on_hand)
        items = self.repos.inventory.all()
        for item in items:
            if item.id == item_id:
                break
        else:
            raise ValidationError("Inventory item not found")
        if name is not None:
            item.name = name
        if category is not None:
            item.category = category
        if unit_price is not None:
            item.unit_price = unit_price
        if qty_on_hand is not None:
            item.qty_on_hand = qty_on_hand
        if taxable is not None:
            item.taxable = taxable
        self._save(self.repos.inventory, items, f"Item {item.sku}")
        return item

    @_serialized
    def delete_inventory_item(self, item_id: str) -> InventoryItem:
        items = self.repos.inventory.all()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            raise ValidationError("Inventory item not found")
        removed = next(item for item in items if item.id == item_id)
        self._save(self.repos.inventory, remaining, f"Removal of {removed.sku}")
        return removed

    @_serialized
    def sell_item(
        self,
        *,
        sku: str,
        qty: int,
        tender: str = "cash",
        customer_id: str | None = None,
    ) -> Sale:
        """Sell ``qty`` units of the item with ``sku`` as a one-line sale."""

        tender = self._check_tender(tender)
        item = self.repos.inventory.by_sku(sku)
        if item is None:
            raise ValidationError("Not found")
        if qty <= 0 or qty > item.qty_on_hand:
            raise ValidationError("Invalid qty")

        sale = Sale(date_time=self.now(), customer_id=customer_id)
        sale.lines.append(SaleLine.for_item(item, qty))
        compute_totals(sale, self.tax_rate)
        self._apply_tender(sale, tender)

        items = self.repos.inventory.all()
        for stocked in items:
            if stocked.id == item.id:
                stocked.qty_on_hand -= qty
        self._save(self.repos.inventory, items, f"Stock for {item.sku} after sale {sale.id}")
        self._record_sale(sale)
        logger.info("Sale %s: %s x %s, total %.2f", sale.id, qty, item.sku, sale.total)
        return sale

    # ------------------------------------------------------------------
    # Animals
    # ------------------------------------------------------------------
    def list_animals(self) -> list[Animal]:
        return self.repos.animals.all()

    def get_animal(self, animal_id: str) -> Animal:
        animal = self.repos.animals.by_id(animal_id)
        if animal is None:
            raise ValidationError("Animal not found")
        return animal

    @_serialized
    def add_animal(
        self,
        *,
        species: str,
        breed: str = "",
        sex: str = "",
        age_months: int = 0,
        price: float = 0.0,
        supplier_name: str = "",
        microchip_id: str | None = None,
        notes: str = "",
    ) -> Animal:
        if not (species or "").strip():
            raise ValidationError("Species is required")
        self._require_non_negative(age=age_months, price=price)
        animal = Animal(
            species=species,
            breed=breed,
            sex=sex,
            age_months=age_months,
            microchip_id=microchip_id or None,
            price=price,
            supplier_name=supplier_name,
            notes=notes,
        )
        animals = self.repos.animals.all()
        animals.append(animal)
        self._save(self.repos.animals, animals, f"Animal {animal.id}")
        return animal

    @_serialized
    def update_animal(
        self,
        animal_id: str,
        *,
        breed: str | None = None,
        price: float | None = None,
        on_hold: bool | None = None,
        notes: str | None = None,
        microchip_id: str | None = None,
    ) -> Animal:
        self._require_non_negative(price=price)
        animals = self.repos.animals.all()
        for animal in animals:
            if animal.id == animal_id:
                break
        else:
            raise ValidationError("Animal not found")
        if breed is not None:
            animal.breed = breed
        if price is not None:
            animal.price = price
        if on_hold is not None:
            animal.on_hold = on_hold
        if notes is not None:
            animal.notes = notes
        if microchip_id is not None:
            animal.microchip_id = microchip_id or None
        self._save(self.repos.animals, animals, f"Animal {animal.id}")
        return animal

    @_serialized
    def sell_animal(
        self,
        animal_id: str,
        *,
        tender: str = "card",
        customer_id: str | None = None,
    ) -> Sale:
        tender = self._check_tender(tender)
        animal = self.get_animal(animal_id)
        if animal.on_hold:
            raise ValidationError("Animal is on hold.")
        if animal.sold:
            raise ValidationError("Already sold.")

        sale = Sale(date_time=self.now(), customer_id=customer_id)
        sale.lines.append(SaleLine.for_animal(animal))
        compute_totals(sale, self.tax_rate)
        self._apply_tender(sale, tender)

        animals = self.repos.animals.all()
        for stocked in animals:
            if stocked.id == animal.id:
                stocked.sold = True
        self._save(self.repos.animals, animals, f"Animal {animal.id} after sale {sale.id}")
        self._record_sale(sale)
        logger.info("Sale %s: animal %s, total %.2f", sale.id, animal.id, sale.total)
        return sale

    # ------------------------------------------------------------------
    # Customers, services & appointments
    # ------------------------------------------------------------------
    def list_customers(self) -> list[Customer]:
        return self.repos.customers.all()

    def get_customer(self, customer_id: str) -> Customer:
        customer = self.repos.customers.by_id(customer_id)
        if customer is None:
            raise ValidationError("Customer not found")
        return customer

    def list_services(self) -> list[Service]:
        return self.repos.services.all()

    def get_service(self, service_id: str) -> Service:
        service = self.repos.services.by_id(service_id)
        if service is None:
            raise ValidationError("Service not found")
        return service

    @_serialized
    def add_service(
        self,
        *,
        name: str,
        description: str = "",
        base_price: float = 0.0,
        duration_minutes: int = 0,
    ) -> Service:
        if not (name or "").strip():
            raise ValidationError("Service name is required")
        self._require_non_negative(base_price=base_price, duration=duration_minutes)
        service = Service(
            name=name,
            description=description,
            base_price=base_price,
            duration_minutes=duration_minutes,
        )
        services = self.repos.services.all()
        services.append(service)
        self._save(self.repos.services, services, f"Service {service.id}")
        return service

    def list_appointments(self) -> list[Appointment]:
        return self.repos.appointments.all()

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.repos.appointments.by_id(appointment_id)
        if appointment is None:
            raise ValidationError("Appointment not found")
        return appointment

    def appointment_board(self) -> list[dict]:
        """Appointments with customer and service names resolved for display."""

        customers = {customer.id: customer.full_name for customer in self.repos.customers.all()}
        services = {service.id: service.name for service in self.repos.services.all()}
        return [
            {
                "id": appointment.id,
                "start": appointment.start,
                "customer": customers.get(appointment.customer_id, "?"),
                "service": services.get(appointment.service_id, "?"),
                "status": appointment.status,
                "paid_amount": appointment.paid_amount,
            }
            for appointment in self.repos.appointments.all()
        ]

    @_serialized
    def book_appointment(
        self,
        *,
        customer_id: str,
        service_id: str,
        start: dt.datetime,
        animal_id: str | None = None,
        full_name: str = "",
        phone: str = "",
        email: str = "",
    ) -> Appointment:
        """Book ``service_id`` at ``start`` for ``customer_id``.

        An unknown customer id is registered on the spot with the supplied
        contact details. The store serves one appointment at a time, so any
        overlap with an existing appointment is rejected.
        """

        customer_id = (customer_id or "").strip()
        if not customer_id:
            raise ValidationError("Customer ID is required")
        if start.tzinfo is not None:
            raise ValidationError("Start must be a local date/time without a UTC offset")
        service = self.get_service(service_id)
        end = start + dt.timedelta(minutes=service.duration_minutes)
        appointments = self.repos.appointments.all()
        if any(existing.overlaps(start, end) for existing in appointments):
            raise ValidationError("Time overlaps existing appointment.")

        customers = self.repos.customers.all()
        if not any(customer.id == customer_id for customer in customers):
            customers.append(Customer(id=customer_id, full_name=full_name, phone=phone, email=email))
            self._save(self.repos.customers, customers, f"Customer {customer_id}")

        appointment = Appointment(
            customer_id=customer_id,
            service_id=service.id,
            start=start,
            end=end,
            animal_id=animal_id or None,
        )
        appointments.append(appointment)
        self._save(self.repos.appointments, appointments, f"Appointment {appointment.id}")
        logger.info("Booked %s for %s at %s", service.name, customer_id, start.isoformat())
        return appointment

    @_serialized
    def complete_appointment(self, appointment_id: str, *, paid_amount: float) -> Appointment:
        """Mark an appointment done and record what was collected.

        ``paid_amount`` is not compared with the service's base price, so
        discounts and overrides are allowed.
        """

        self._require_non_negative(paid_amount=paid_amount)
        appointments = self.repos.appointments.all()
        for appointment in appointments:
            if appointment.id == appointment_id:
                break
        else:
            raise ValidationError("Appointment not found")
        if appointment.status == DONE:
            raise ValidationError("Appointment already completed")
        if self.repos.services.by_id(appointment.service_id) is None:
            raise ValidationError("Service missing")
        appointment.status = DONE
        appointment.paid_amount = paid_amount
        self._save(self.repos.appointments, appointments, f"Appointment {appointment.id}")
        return appointment

    # ------------------------------------------------------------------
    # Staff & time clock
    # ------------------------------------------------------------------
    def list_employees(self) -> list[Employee]:
        return self.repos.employees.all()

    def get_employee(self, employee_id: str) -> Employee:
        employee = self.repos.employees.by_id(employee_id)
        if employee is None:
            raise ValidationError("Employee not found")
        return employee

    def employee_roster(self) -> list[dict]:
        return [
            {
                "employee": employee,
                "clocked_in": self.repos.time_entries.open_shift_for(employee.id) is not None,
            }
            for employee in self.repos.employees.all()
        ]

    @_serialized
    def add_employee(self, *, name: str, hourly_rate: float = 0.0) -> Employee:
        if not (name or "").strip():
            raise ValidationError("Employee name is required")
        self._require_non_negative(hourly_rate=hourly_rate)
        employee = Employee(name=name, hourly_rate=hourly_rate, active=True)
        employees = self.repos.employees.all()
        employees.append(employee)
        self._save(self.repos.employees, employees, f"Employee {employee.id}")
        return employee

    @_serialized
    def update_employee(
        self,
        employee_id: str,
        *,
        name: str | None = None,
        hourly_rate: float | None = None,
    ) -> Employee:
        self._require_non_negative(hourly_rate=hourly_rate)
        employees = self.repos.employees.all()
        for employee in employees:
            if employee.id == employee_id:
                break
        else:
            raise ValidationError("Employee not found")
        if name is not None:
            employee.name = name
        if hourly_rate is not None:
            employee.hourly_rate = hourly_rate
        self._save(self.repos.employees, employees, f"Employee {employee.id}")
        return employee

    @_serialized
    def toggle_employee_active(self, employee_id: str) -> Employee:
        employees = self.repos.employees.all()
        for employee in employees:
            if employee.id == employee_id:
                break
        else:
            raise ValidationError("Employee not found")
        employee.active = not employee.active
        self._save(self.repos.employees, employees, f"Employee {employee.id}")
        return employee

    @_serialized
    def clock_in(self, employee_id: str) -> TimeEntry:
        employee = self.get_employee(employee_id)
        if not employee.active:
            raise ValidationError("Employee is inactive.")
        if self.repos.time_entries.open_shift_for(employee.id) is not None:
            raise ValidationError("Employee already clocked in.")
        entry = TimeEntry(employee_id=employee.id, clock_in=self.now())
        entries = self.repos.time_entries.all()
        entries.append(entry)
        self._save(self.repos.time_entries, entries, f"Clock-in {entry.id}")
        logger.info("%s clocked in", employee.name)
        return entry

    @_serialized
    def clock_out(self, employee_id: str) -> TimeEntry:
        """Close the open shift, freezing hours and pay at the current rate."""

        employee = self.get_employee(employee_id)
        open_shift = self.repos.time_entries.open_shift_for(employee.id)
        if open_shift is None:
            raise ValidationError("Employee is not clocked in.")
        clock_out = self.now()
        hours = elapsed_hours(open_shift.clock_in, clock_out)
        pay = round(hours * employee.hourly_rate, 2)

        entries = self.repos.time_entries.all()
        for entry in entries:
            if entry.id == open_shift.id:
                entry.clock_out = clock_out
                entry.hours = hours
                entry.pay = pay
                open_shift = entry
        self._save(self.repos.time_entries, entries, f"Clock-out {open_shift.id}")
        logger.info("%s clocked out: %.2f hours, pay %.2f", employee.name, hours, pay)
        return open_shift

    # ------------------------------------------------------------------
    # Sales & reporting
    # ------------------------------------------------------------------
    def list_sales(self) -> list[Sale]:
        return self.repos.sales.all()

    def get_sale(self, sale_id: str) -> Sale:
        sale = self.repos.sales.by_id(sale_id)
        if sale is None:
            raise ValidationError("Sale not found")
        return sale

    def sales_summary(self) -> dict:
        sales = self.repos.sales.all()
        return {
            "total": round(sum(sale.total for sale in sales), 2),
            "count": len(sales),
        }

    def payroll_summary(self) -> dict:
        employees = self.repos.employees.all()
        hours = sum(self.repos.time_entries.sum_hours(employee.id) for employee in employees)
        pay = sum(self.repos.time_entries.sum_pay(employee.id) for employee in employees)
        return {"hours": round(hours, 2), "pay": round(pay, 2)}

    def reports(self) -> dict:
        sales = self.sales_summary()
        payroll = self.payroll_summary()
        return {
            "lifetime_sales": sales["total"],
            "receipts": sales["count"],
            "employee_hours": payroll["hours"],
            "employee_pay": payroll["pay"],
        }


__all__ = ["FarmStoreSystem", "ValidationError", "compute_totals", "TAX_RATE"]
