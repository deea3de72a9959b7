"""Entities stored by the farm store."""

from __future__ import annotations

import datetime as dt
import secrets
from dataclasses import dataclass, field

BOOKED = "BOOKED"
DONE = "DONE"

ITEM = "ITEM"
ANIMAL = "ANIMAL"
SERVICE = "SERVICE"


def new_id(prefix: str) -> str:
    """Return an identifier such as ``I-3fa85f64``."""

    return f"{prefix}-{secrets.token_hex(4)}"


def _id_factory(prefix: str):
    return lambda: new_id(prefix)


@dataclass
class InventoryItem:
    sku: str
    name: str
    category: str = ""
    unit_price: float = 0.0
    qty_on_hand: int = 0
    taxable: bool = True
    id: str = field(default_factory=_id_factory("I"))


@dataclass
class Animal:
    species: str
    breed: str = ""
    sex: str = ""
    age_months: int = 0
    microchip_id: str | None = None
    price: float = 0.0
    on_hold: bool = False
    supplier_name: str = ""
    notes: str = ""
    sold: bool = False
    id: str = field(default_factory=_id_factory("A"))


@dataclass
class Customer:
    full_name: str
    phone: str = ""
    email: str = ""
    id: str = field(default_factory=_id_factory("C"))


@dataclass
class Service:
    name: str
    description: str = ""
    base_price: float = 0.0
    duration_minutes: int = 0
    id: str = field(default_factory=_id_factory("S"))


@dataclass
class Appointment:
    customer_id: str
    service_id: str
    start: dt.datetime
    end: dt.datetime
    animal_id: str | None = None
    status: str = BOOKED
    paid_amount: float = 0.0
    id: str = field(default_factory=_id_factory("AP"))

    def overlaps(self, start: dt.datetime, end: dt.datetime) -> bool:
        """Half-open interval test; touching end points do not overlap."""

        return self.start < end and start < self.end


@dataclass
class SaleLine:
    item_type: str
    ref_id: str
    description: str
    qty: int
    unit_price: float
    taxable: bool
    line_total: float

    @classmethod
    def for_item(cls, item: InventoryItem, qty: int) -> "SaleLine":
        return cls(
            item_type=ITEM,
            ref_id=item.id,
            description=item.name,
            qty=qty,
            unit_price=item.unit_price,
            taxable=item.taxable,
            line_total=qty * item.unit_price,
        )

    @classmethod
    def for_animal(cls, animal: Animal) -> "SaleLine":
        # Live animals are never taxed.
        return cls(
            item_type=ANIMAL,
            ref_id=animal.id,
            description=f"{animal.species} ({animal.breed})",
            qty=1,
            unit_price=animal.price,
            taxable=False,
            line_total=animal.price,
        )


@dataclass
class Sale:
    date_time: dt.datetime = field(default_factory=dt.datetime.now)
    customer_id: str | None = None
    lines: list[SaleLine] = field(default_factory=list)
    sub_total: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    paid_cash: float = 0.0
    paid_card: float = 0.0
    id: str = field(default_factory=_id_factory("R"))


@dataclass
class Employee:
    name: str
    hourly_rate: float = 0.0
    active: bool = True
    id: str = field(default_factory=_id_factory("E"))


@dataclass
class TimeEntry:
    employee_id: str
    clock_in: dt.datetime
    clock_out: dt.datetime | None = None
    hours: float = 0.0
    pay: float = 0.0
    id: str = field(default_factory=_id_factory("TC"))

    @property
    def is_open(self) -> bool:
        return self.clock_out is None
