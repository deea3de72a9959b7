"""Typed read/write access to the record files.

A repository always reads and writes its whole file. Callers load the full
collection with :meth:`FlatFileRepository.all`, change it in memory and hand
the complete collection back to :meth:`FlatFileRepository.save_all`.
"""

from __future__ import annotations

from typing import Generic, Iterable, Iterator, Sequence, TypeVar

from . import database as db
from .codec import (
    blank_if_none,
    decode_lines,
    encode_lines,
    format_bool,
    format_datetime,
    format_float,
    none_if_blank,
    parse_bool,
    parse_datetime,
    parse_float,
    parse_int,
)
from .models import (
    Animal,
    Appointment,
    Customer,
    Employee,
    InventoryItem,
    Sale,
    Service,
    TimeEntry,
)

T = TypeVar("T")


class FlatFileRepository(Generic[T]):
    """Maps the rows of one record file to entities of one type.

    Abstract: subclasses set ``file_name`` and implement ``_from_row`` and
    ``_to_row``.
    """

    file_name: str = ""

    def __init__(self, store: db.RecordFileStore) -> None:
        self.store = store

    @property
    def columns(self) -> tuple[str, ...]:
        return db.SCHEMA[self.file_name]

    @property
    def header(self) -> str:
        return db.header_line(self.columns)

    def _from_row(self, row: Sequence[str]) -> T | None:
        raise NotImplementedError

    def _to_row(self, entity: T) -> list[str]:
        raise NotImplementedError

    def seed(self) -> bool:
        return self.store.ensure_seeded(
            self.file_name, self.header, db.SEED_ROWS.get(self.file_name, ())
        )

    def all(self) -> list[T]:
        """Return every entity in file order.

        Rows with fewer fields than the header, or that cannot be mapped, are
        skipped.
        """

        entities: list[T] = []
        width = len(self.columns)
        for row in self.store.read_all(self.file_name):
            if len(row) < width:
                continue
            entity = self._from_row(row)
            if entity is not None:
                entities.append(entity)
        return entities

    def save_all(self, entities: Iterable[T]) -> bool:
        """Replace the file with ``entities``; ``False`` if the write failed."""

        rows = [self._to_row(entity) for entity in entities]
        return self.store.write_all(self.file_name, self.header, rows)

    def by_id(self, entity_id: str) -> T | None:
        for entity in self.all():
            if entity.id == entity_id:
                return entity
        return None


class InventoryRepository(FlatFileRepository[InventoryItem]):
    file_name = db.INVENTORY

    def _from_row(self, row: Sequence[str]) -> InventoryItem:
        return InventoryItem(
            id=row[0],
            sku=row[1],
            name=row[2],
            category=row[3],
            unit_price=parse_float(row[4]),
            qty_on_hand=parse_int(row[5]),
            taxable=parse_bool(row[6]),
        )

    def _to_row(self, item: InventoryItem) -> list[str]:
        return [
            item.id,
            item.sku,
            item.name,
            item.category,
            format_float(item.unit_price),
            str(item.qty_on_hand),
            format_bool(item.taxable),
        ]

    def by_sku(self, sku: str) -> InventoryItem | None:
        wanted = (sku or "").strip().lower()
        for item in self.all():
            if item.sku.strip().lower() == wanted:
                return item
        return None


class AnimalRepository(FlatFileRepository[Animal]):
    file_name = db.ANIMALS

    def _from_row(self, row: Sequence[str]) -> Animal:
        return Animal(
            id=row[0],
            species=row[1],
            breed=row[2],
            sex=row[3],
            age_months=parse_int(row[4]),
            microchip_id=none_if_blank(row[5]),
            price=parse_float(row[6]),
            on_hold=parse_bool(row[7]),
            supplier_name=row[8],
            notes=row[9],
            sold=parse_bool(row[10]),
        )

    def _to_row(self, animal: Animal) -> list[str]:
        return [
            animal.id,
            animal.species,
            animal.breed,
            animal.sex,
            str(animal.age_months),
            blank_if_none(animal.microchip_id),
            format_float(animal.price),
            format_bool(animal.on_hold),
            animal.supplier_name,
            animal.notes,
            format_bool(animal.sold),
        ]


class CustomerRepository(FlatFileRepository[Customer]):
    file_name = db.CUSTOMERS

    def _from_row(self, row: Sequence[str]) -> Customer:
        return Customer(id=row[0], full_name=row[1], phone=row[2], email=row[3])

    def _to_row(self, customer: Customer) -> list[str]:
        return [customer.id, customer.full_name, customer.phone, customer.email]


class ServiceRepository(FlatFileRepository[Service]):
    file_name = db.SERVICES

    def _from_row(self, row: Sequence[str]) -> Service:
        return Service(
            id=row[0],
            name=row[1],
            description=row[2],
            base_price=parse_float(row[3]),
            duration_minutes=parse_int(row[4]),
        )

    def _to_row(self, service: Service) -> list[str]:
        return [
            service.id,
            service.name,
            service.description,
            format_float(service.base_price),
            str(service.duration_minutes),
        ]


class AppointmentRepository(FlatFileRepository[Appointment]):
    file_name = db.APPOINTMENTS

    def _from_row(self, row: Sequence[str]) -> Appointment | None:
        start = parse_datetime(row[4])
        end = parse_datetime(row[5])
        if start is None or end is None:
            return None
        return Appointment(
            id=row[0],
            customer_id=row[1],
            animal_id=none_if_blank(row[2]),
            service_id=row[3],
            start=start,
            end=end,
            status=row[6],
            paid_amount=parse_float(row[7]),
        )

    def _to_row(self, appointment: Appointment) -> list[str]:
        return [
            appointment.id,
            appointment.customer_id,
            blank_if_none(appointment.animal_id),
            appointment.service_id,
            format_datetime(appointment.start),
            format_datetime(appointment.end),
            appointment.status,
            format_float(appointment.paid_amount),
        ]


class SaleRepository(FlatFileRepository[Sale]):
    file_name = db.SALES

    def _from_row(self, row: Sequence[str]) -> Sale | None:
        date_time = parse_datetime(row[1])
        if date_time is None:
            return None
        return Sale(
            id=row[0],
            date_time=date_time,
            customer_id=none_if_blank(row[2]),
            sub_total=parse_float(row[3]),
            tax=parse_float(row[4]),
            total=parse_float(row[5]),
            paid_cash=parse_float(row[6]),
            paid_card=parse_float(row[7]),
            lines=decode_lines(row[8]),
        )

    def _to_row(self, sale: Sale) -> list[str]:
        return [
            sale.id,
            format_datetime(sale.date_time),
            blank_if_none(sale.customer_id),
            format_float(sale.sub_total),
            format_float(sale.tax),
            format_float(sale.total),
            format_float(sale.paid_cash),
            format_float(sale.paid_card),
            encode_lines(sale.lines),
        ]


class EmployeeRepository(FlatFileRepository[Employee]):
    file_name = db.EMPLOYEES

    def _from_row(self, row: Sequence[str]) -> Employee:
        return Employee(
            id=row[0],
            name=row[1],
            hourly_rate=parse_float(row[2]),
            active=parse_bool(row[3]),
        )

    def _to_row(self, employee: Employee) -> list[str]:
        return [
            employee.id,
            employee.name,
            format_float(employee.hourly_rate),
            format_bool(employee.active),
        ]


class TimeEntryRepository(FlatFileRepository[TimeEntry]):
    file_name = db.TIMECLOCK

    def _from_row(self, row: Sequence[str]) -> TimeEntry | None:
        clock_in = parse_datetime(row[2])
        if clock_in is None:
            return None
        return TimeEntry(
            id=row[0],
            employee_id=row[1],
            clock_in=clock_in,
            clock_out=parse_datetime(row[3]),
            hours=parse_float(row[4]),
            pay=parse_float(row[5]),
        )

    def _to_row(self, entry: TimeEntry) -> list[str]:
        return [
            entry.id,
            entry.employee_id,
            format_datetime(entry.clock_in),
            format_datetime(entry.clock_out),
            format_float(entry.hours),
            format_float(entry.pay),
        ]

    def for_employee(self, employee_id: str) -> list[TimeEntry]:
        return [entry for entry in self.all() if entry.employee_id == employee_id]

    def open_shift_for(self, employee_id: str) -> TimeEntry | None:
        for entry in self.for_employee(employee_id):
            if entry.is_open:
                return entry
        return None

    def sum_hours(self, employee_id: str) -> float:
        return sum(entry.hours for entry in self.for_employee(employee_id))

    def sum_pay(self, employee_id: str) -> float:
        return sum(entry.pay for entry in self.for_employee(employee_id))


class Repositories:
    """All repositories sharing one store."""

    def __init__(self, store: db.RecordFileStore) -> None:
        self.store = store
        self.inventory = InventoryRepository(store)
        self.animals = AnimalRepository(store)
        self.customers = CustomerRepository(store)
        self.services = ServiceRepository(store)
        self.appointments = AppointmentRepository(store)
        self.sales = SaleRepository(store)
        self.employees = EmployeeRepository(store)
        self.time_entries = TimeEntryRepository(store)

    def __iter__(self) -> Iterator[FlatFileRepository]:
        return iter(
            (
                self.inventory,
                self.animals,
                self.customers,
                self.services,
                self.appointments,
                self.sales,
                self.employees,
                self.time_entries,
            )
        )

    def seed_all(self) -> list[str]:
        """Seed every file; return the names of the files that were written."""

        return [repo.file_name for repo in self if repo.seed()]
