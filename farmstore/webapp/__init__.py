"""Flask application exposing the farm store operations as JSON."""

from __future__ import annotations

import dataclasses
import datetime as dt
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, redirect, request, url_for
from werkzeug.exceptions import HTTPException

from farmstore.core.config import Config
from farmstore.core.logging_setup import configure_logging, log_failure
from farmstore.core.system import FarmStoreSystem, ValidationError


def to_json(value: Any) -> Any:
    """Convert entities, datetimes and containers into JSON friendly values."""

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {key: to_json(item) for key, item in dataclasses.asdict(value).items()}
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


def _payload() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _text(payload: dict, key: str, default: str | None = None) -> str | None:
    value = payload.get(key)
    if value is None:
        return default
    return str(value).strip()


def _number(payload: dict, key: str, cast: Callable[[Any], Any], default: Any = None) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {key}") from None


def _flag(payload: dict, key: str, default: bool | None = None) -> bool | None:
    value = payload.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _timestamp(payload: dict, key: str) -> dt.datetime:
    value = _text(payload, key)
    if not value:
        raise ValidationError(f"{key} is required")
    try:
        stamp = dt.datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date/time for {key}") from None
    if stamp.tzinfo is not None:
        raise ValidationError(f"{key} must be a local date/time without a UTC offset")
    return stamp


def create_app(
    data_dir: str | Path | None = None,
    config: Config | None = None,
    now: Callable[[], dt.datetime] | None = None,
) -> Flask:
    """Create and configure the Flask application."""

    config = config or Config()
    store_config = config.store_config
    data_dir = Path(data_dir or store_config["data_dir"])
    configure_logging(data_dir, config.log_config)

    app = Flask(__name__)
    app.config["DATA_DIR"] = str(data_dir)

    system = FarmStoreSystem(data_dir, tax_rate=store_config["tax_rate"], now=now)
    app.extensions["farmstore"] = system

    @app.errorhandler(ValidationError)
    def validation_failed(exc: ValidationError) -> Any:
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(Exception)
    def unexpected_failure(exc: Exception) -> Any:
        if isinstance(exc, HTTPException):
            return exc
        log_failure(f"handling {request.method} {request.path}", exc)
        log_file = data_dir / config.log_config["file"]
        return (
            jsonify(
                {
                    "error": (
                        f"Sorry, something went wrong while handling {request.path}. "
                        f"Details were saved to {log_file}"
                    )
                }
            ),
            500,
        )

    @app.get("/")
    def index() -> Any:
        return redirect(url_for("reports"))

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------
    @app.get("/inventory")
    def inventory() -> Any:
        return jsonify(to_json(system.list_inventory()))

    @app.post("/inventory")
    def add_inventory_item() -> Any:
        payload = _payload()
        item = system.add_inventory_item(
            sku=_text(payload, "sku", ""),
            name=_text(payload, "name", ""),
            category=_text(payload, "category", ""),
            unit_price=_number(payload, "unit_price", float, 0.0),
            qty_on_hand=_number(payload, "qty_on_hand", int, 0),
            taxable=_flag(payload, "taxable", True),
        )
        return jsonify(to_json(item)), 201

    @app.post("/inventory/<item_id>")
    def update_inventory_item(item_id: str) -> Any:
        payload = _payload()
        item = system.update_inventory_item(
            item_id,
            name=_text(payload, "name"),
            category=_text(payload, "category"),
            unit_price=_number(payload, "unit_price", float),
            qty_on_hand=_number(payload, "qty_on_hand", int),
            taxable=_flag(payload, "taxable"),
        )
        return jsonify(to_json(item))

    @app.delete("/inventory/<item_id>")
    def delete_inventory_item(item_id: str) -> Any:
        return jsonify(to_json(system.delete_inventory_item(item_id)))

    @app.post("/sales/items")
    def sell_item() -> Any:
        payload = _payload()
        sale = system.sell_item(
            sku=_text(payload, "sku", ""),
            qty=_number(payload, "qty", int, 0),
            tender=_text(payload, "tender", "cash"),
            customer_id=_text(payload, "customer_id") or None,
        )
        return jsonify(to_json(sale)), 201

    # ------------------------------------------------------------------
    # Animals
    # ------------------------------------------------------------------
    @app.get("/animals")
    def animals() -> Any:
        return jsonify(to_json(system.list_animals()))

    @app.post("/animals")
    def add_animal() -> Any:
        payload = _payload()
        animal = system.add_animal(
            species=_text(payload, "species", ""),
            breed=_text(payload, "breed", ""),
            sex=_text(payload, "sex", ""),
            age_months=_number(payload, "age_months", int, 0),
            price=_number(payload, "price", float, 0.0),
            supplier_name=_text(payload, "supplier_name", ""),
            microchip_id=_text(payload, "microchip_id"),
            notes=_text(payload, "notes", ""),
        )
        return jsonify(to_json(animal)), 201

    @app.post("/animals/<animal_id>")
    def update_animal(animal_id: str) -> Any:
        payload = _payload()
        animal = system.update_animal(
            animal_id,
            breed=_text(payload, "breed"),
            price=_number(payload, "price", float),
            on_hold=_flag(payload, "on_hold"),
            notes=_text(payload, "notes"),
            microchip_id=_text(payload, "microchip_id"),
        )
        return jsonify(to_json(animal))

    @app.post("/animals/<animal_id>/sell")
    def sell_animal(animal_id: str) -> Any:
        payload = _payload()
        sale = system.sell_animal(
            animal_id,
            tender=_text(payload, "tender", "card"),
            customer_id=_text(payload, "customer_id") or None,
        )
        return jsonify(to_json(sale)), 201

    # ------------------------------------------------------------------
    # Services & appointments
    # ------------------------------------------------------------------
    @app.get("/customers")
    def customers() -> Any:
        return jsonify(to_json(system.list_customers()))

    @app.get("/services")
    def services() -> Any:
        return jsonify(to_json(system.list_services()))

    @app.post("/services")
    def add_service() -> Any:
        payload = _payload()
        service = system.add_service(
            name=_text(payload, "name", ""),
            description=_text(payload, "description", ""),
            base_price=_number(payload, "base_price", float, 0.0),
            duration_minutes=_number(payload, "duration_minutes", int, 0),
        )
        return jsonify(to_json(service)), 201

    @app.get("/appointments")
    def appointments() -> Any:
        return jsonify(to_json(system.appointment_board()))

    @app.post("/appointments")
    def book_appointment() -> Any:
        payload = _payload()
        appointment = system.book_appointment(
            customer_id=_text(payload, "customer_id", ""),
            service_id=_text(payload, "service_id", ""),
            start=_timestamp(payload, "start"),
            animal_id=_text(payload, "animal_id") or None,
            full_name=_text(payload, "full_name", ""),
            phone=_text(payload, "phone", ""),
            email=_text(payload, "email", ""),
        )
        return jsonify(to_json(appointment)), 201

    @app.post("/appointments/<appointment_id>/complete")
    def complete_appointment(appointment_id: str) -> Any:
        payload = _payload()
        paid_amount = _number(payload, "paid_amount", float)
        if paid_amount is None:
            # Defaults to the base price of the booked service.
            appointment = system.get_appointment(appointment_id)
            paid_amount = system.get_service(appointment.service_id).base_price
        appointment = system.complete_appointment(appointment_id, paid_amount=paid_amount)
        return jsonify(to_json(appointment))

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------
    @app.get("/employees")
    def employees() -> Any:
        return jsonify(to_json(system.employee_roster()))

    @app.post("/employees")
    def add_employee() -> Any:
        payload = _payload()
        employee = system.add_employee(
            name=_text(payload, "name", ""),
            hourly_rate=_number(payload, "hourly_rate", float, 0.0),
        )
        return jsonify(to_json(employee)), 201

    @app.post("/employees/<employee_id>")
    def update_employee(employee_id: str) -> Any:
        payload = _payload()
        employee = system.update_employee(
            employee_id,
            name=_text(payload, "name"),
            hourly_rate=_number(payload, "hourly_rate", float),
        )
        return jsonify(to_json(employee))

    @app.post("/employees/<employee_id>/toggle")
    def toggle_employee(employee_id: str) -> Any:
        return jsonify(to_json(system.toggle_employee_active(employee_id)))

    @app.post("/employees/<employee_id>/clock-in")
    def clock_in(employee_id: str) -> Any:
        return jsonify(to_json(system.clock_in(employee_id))), 201

    @app.post("/employees/<employee_id>/clock-out")
    def clock_out(employee_id: str) -> Any:
        return jsonify(to_json(system.clock_out(employee_id)))

    # ------------------------------------------------------------------
    # Sales & reports
    # ------------------------------------------------------------------
    @app.get("/sales")
    def sales() -> Any:
        return jsonify(to_json(system.list_sales()))

    @app.get("/sales/<sale_id>")
    def sale_detail(sale_id: str) -> Any:
        return jsonify(to_json(system.get_sale(sale_id)))

    @app.get("/reports")
    def reports() -> Any:
        return jsonify(system.reports())

    return app


__all__ = ["create_app", "to_json"]
