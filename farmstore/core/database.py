"""Flat-file storage for the farm store.

Each entity type lives in its own file inside one data directory: a header
line followed by one encoded record per line. There is no locking and no
journal; one process is expected to own a data directory at a time.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .codec import decode_row, encode_row
from .logging_setup import log_failure

Reporter = Callable[[str, BaseException], None]

INVENTORY = "inventory.csv"
ANIMALS = "animals.csv"
CUSTOMERS = "customers.csv"
SERVICES = "services.csv"
APPOINTMENTS = "appointments.csv"
SALES = "sales.csv"
EMPLOYEES = "employees.csv"
TIMECLOCK = "timeclock.csv"

SCHEMA: dict[str, tuple[str, ...]] = {
    INVENTORY: ("id", "sku", "name", "category", "unitPrice", "qtyOnHand", "taxable"),
    ANIMALS: (
        "id",
        "species",
        "breed",
        "sex",
        "ageMonths",
        "microchipId",
        "price",
        "onHold",
        "supplierName",
        "notes",
        "sold",
    ),
    CUSTOMERS: ("id", "fullName", "phone", "email"),
    SERVICES: ("id", "name", "description", "basePrice", "durationMinutes"),
    APPOINTMENTS: (
        "id",
        "customerId",
        "animalId",
        "serviceId",
        "start",
        "end",
        "status",
        "paidAmount",
    ),
    SALES: (
        "id",
        "dateTime",
        "customerId",
        "subTotal",
        "tax",
        "total",
        "paidCash",
        "paidCard",
        "linesJson",
    ),
    EMPLOYEES: ("id", "name", "hourlyRate", "active"),
    TIMECLOCK: ("id", "employeeId", "clockIn", "clockOut", "hours", "pay"),
}

SEED_ROWS: dict[str, tuple[tuple[str, ...], ...]] = {
    INVENTORY: (
        ("I1", "DOGFOOD-20", "Dog Kibble 20lb", "Food", "29.99", "12", "true"),
        ("I2", "CATTOY-FEATHER", "Feather Toy", "Toys", "6.49", "25", "true"),
    ),
    ANIMALS: (
        ("A1", "Chicken", "Silkie", "F", "6", "", "15.00", "false", "Local Breeder", "Healthy", "false"),
        ("A2", "Rabbit", "Mini Rex", "M", "4", "", "45.00", "false", "Local Breeder", "Calm", "false"),
    ),
    CUSTOMERS: (
        ("C1", "Jane Doe", "910-555-0001", "jane@example.com"),
        ("C2", "Bob Smith", "910-555-0002", "bob@example.com"),
    ),
    SERVICES: (
        ("S1", "Nail Trim", "Basic nail trim for small animals", "12.00", "15"),
        ("S2", "Wellness Check", "General check-up", "35.00", "30"),
    ),
    APPOINTMENTS: (),
    SALES: (),
    EMPLOYEES: (
        ("E1", "Alice Johnson", "15.50", "true"),
        ("E2", "Marco Diaz", "14.00", "true"),
    ),
    TIMECLOCK: (),
}


def header_line(columns: Sequence[str]) -> str:
    return ",".join(columns)


class RecordFileStore:
    """Read and rewrite whole record files inside one data directory.

    I/O errors never escape: they are handed to ``reporter`` and the call
    degrades (reads yield no rows, writes return ``False``).
    """

    def __init__(self, directory: str | Path, reporter: Reporter | None = None) -> None:
        self.directory = Path(directory)
        self.reporter: Reporter = reporter or log_failure

    def path(self, name: str) -> Path:
        return self.directory / name

    def exists(self, name: str) -> bool:
        return self.path(name).exists()

    def _ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _has_data(self, name: str) -> bool:
        with open(self.path(name), "r", encoding="utf-8", errors="replace", newline="") as handle:
            next(handle, None)
            return any(line.strip() for line in handle)

    def ensure_seeded(
        self,
        name: str,
        header: str,
        seed_rows: Iterable[Sequence[str | None]] = (),
    ) -> bool:
        """Create ``name`` with ``header`` and ``seed_rows`` unless it holds data.

        Returns ``True`` when the file was (re)written.
        """

        try:
            if self.exists(name) and self._has_data(name):
                return False
        except OSError as exc:
            # Unreadable is not the same as empty; leave the file alone.
            self.reporter(f"checking {name}", exc)
            return False
        return self.write_all(name, header, seed_rows)

    def read_all(self, name: str) -> list[list[str]]:
        """Return every data row of ``name``, decoded, header and blanks skipped."""

        rows: list[list[str]] = []
        path = self.path(name)
        try:
            if not path.exists():
                return rows
            with open(path, "r", encoding="utf-8", errors="replace", newline="") as handle:
                next(handle, None)
                for line in handle:
                    line = line.rstrip("\r\n")
                    if not line.strip():
                        continue
                    rows.append(decode_row(line))
        except OSError as exc:
            self.reporter(f"reading {name}", exc)
            return []
        return rows

    def write_all(
        self,
        name: str,
        header: str,
        rows: Iterable[Sequence[str | None]],
    ) -> bool:
        """Replace ``name`` with ``header`` followed by ``rows``.

        The content goes to a temporary sibling first and is moved over the
        target, so an interrupted write leaves the previous file in place.
        """

        temp_name: str | None = None
        try:
            self._ensure_directory()
            fd, temp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(header + "\n")
                for row in rows:
                    handle.write(encode_row(row) + "\n")
            os.replace(temp_name, self.path(name))
            temp_name = None
            return True
        except OSError as exc:
            self.reporter(f"writing {name}", exc)
            return False
        finally:
            if temp_name is not None:
                self._discard(temp_name)

    def _discard(self, temp_name: str) -> None:
        try:
            os.remove(temp_name)
        except FileNotFoundError:
            return
        except OSError as exc:
            self.reporter(f"removing {temp_name}", exc)
