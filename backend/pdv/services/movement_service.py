# Overview: Append-only movement log and the manual stock adjustment path.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Employee, ProductVariant, StockMovement
from ..models.ledger import (
    DIRECTION_IN,
    DIRECTION_OUT,
    DIRECTION_TRANSFER,
    LOCATION_STORE,
    MOVEMENT_KINDS,
    MOVEMENT_LOSS,
    MOVEMENT_SALE,
    MOVEMENT_STOCK_IN,
    MOVEMENT_STOCK_OUT,
    MOVEMENT_TRANSFER,
    STOCK_LOCATIONS,
)
from ..validation import ValidationError, VariantNotFoundError, EmployeeNotActiveError
from .concurrency import run_in_write_transaction
from .employee_service import CAPABILITY_ADJUST_STOCK, ActingEmployee, require_capability
from .repository import active_query, get_active_variant
from .stock_service import StockLevel, apply_delta
"""
Movement log invariants (authoritative)

- Append-only: rows are inserted, never updated (soft-delete columns aside)
  and never removed. Model events enforce it.
- append_movement records what happened; it does NOT check stock. The stock
  check belongs to stock_service.apply_delta, called in the same transaction.
- Every movement carries the signed store/warehouse effect actually applied,
  so history can be replayed per location.
"""


# Manual adjustment kinds accepted from the inventory-correction screen
MANUAL_MOVEMENT_KINDS = (
    MOVEMENT_STOCK_IN,
    MOVEMENT_STOCK_OUT,
    MOVEMENT_TRANSFER,
    MOVEMENT_LOSS,
    MOVEMENT_SALE,
)

_OUTBOUND_KINDS = (MOVEMENT_STOCK_OUT, MOVEMENT_LOSS, MOVEMENT_SALE)


def append_movement(
    *,
    variant_id: int,
    employee_id: int,
    kind: str,
    direction: str,
    quantity: int,
    store_delta: int = 0,
    warehouse_delta: int = 0,
    origin: str | None = None,
    destination: str | None = None,
    sale_id: int | None = None,
    unit_price_cents: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Append one immutable movement.

    Only checks that the variant and employee rows exist. Flushes so the id is
    assigned; the caller owns the transaction.
    """
    if kind not in MOVEMENT_KINDS:
        raise ValidationError(f"Unknown movement kind: {kind}", details={"kind": kind})

    if db.session.get(ProductVariant, variant_id) is None:
        raise VariantNotFoundError(
            f"Product variant {variant_id} not found",
            details={"variant_id": variant_id},
        )
    if db.session.get(Employee, employee_id) is None:
        raise EmployeeNotActiveError(
            f"Employee {employee_id} not found",
            details={"employee_id": employee_id},
        )

    movement = StockMovement(
        variant_id=variant_id,
        employee_id=employee_id,
        kind=kind,
        direction=direction,
        quantity=quantity,
        store_delta=store_delta,
        warehouse_delta=warehouse_delta,
        origin=origin,
        destination=destination,
        sale_id=sale_id,
        unit_price_cents=unit_price_cents,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(
    *,
    variant_id: int | None = None,
    sale_id: int | None = None,
    kind: str | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    query = active_query(StockMovement)
    if variant_id is not None:
        query = query.filter(StockMovement.variant_id == variant_id)
    if sale_id is not None:
        query = query.filter(StockMovement.sale_id == sale_id)
    if kind is not None:
        query = query.filter(StockMovement.kind == kind)

    return query.order_by(
        StockMovement.created_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()


def _location_delta(location: str, quantity: int) -> tuple[int, int]:
    if location == LOCATION_STORE:
        return quantity, 0
    return 0, quantity


def plan_manual_adjustment(
    kind: str,
    quantity: int,
    origin: str | None,
    destination: str | None,
) -> tuple[str, int, int, str | None, str | None]:
    """
    Translate a manual movement request into signed location deltas.

    Returns (direction, store_delta, warehouse_delta, origin, destination).
    - entrada: +quantity at destination (default loja)
    - saida / perda / venda: -quantity at origin (default loja)
    - transferencia: -quantity at origin, +quantity at destination; both
      required and distinct
    """
    if kind not in MANUAL_MOVEMENT_KINDS:
        raise ValidationError(
            f"tipo must be one of: {', '.join(MANUAL_MOVEMENT_KINDS)}",
            details={"tipo": kind},
        )
    if quantity <= 0:
        raise ValidationError("quantidade must be a positive integer", details={"quantidade": quantity})

    for field, value in (("origem", origin), ("destino", destination)):
        if value is not None and value not in STOCK_LOCATIONS:
            raise ValidationError(
                f"{field} must be one of: {', '.join(STOCK_LOCATIONS)}",
                details={field: value},
            )

    if kind == MOVEMENT_STOCK_IN:
        destination = destination or LOCATION_STORE
        store_delta, warehouse_delta = _location_delta(destination, quantity)
        return DIRECTION_IN, store_delta, warehouse_delta, None, destination

    if kind in _OUTBOUND_KINDS:
        origin = origin or LOCATION_STORE
        store_delta, warehouse_delta = _location_delta(origin, -quantity)
        return DIRECTION_OUT, store_delta, warehouse_delta, origin, None

    # transferencia
    if origin is None or destination is None:
        raise ValidationError("transferencia requires both origem and destino")
    if origin == destination:
        raise ValidationError(
            "origem and destino must differ for transferencia",
            details={"origem": origin, "destino": destination},
        )
    if origin == LOCATION_STORE:
        return DIRECTION_TRANSFER, -quantity, quantity, origin, destination
    return DIRECTION_TRANSFER, quantity, -quantity, origin, destination


def adjust_stock(
    *,
    actor: ActingEmployee,
    variant_id: int,
    kind: str,
    quantity: int,
    origin: str | None = None,
    destination: str | None = None,
    note: str | None = None,
) -> tuple[StockMovement, StockLevel]:
    """
    Manual inventory correction outside the sale flow.

    Applies the same atomic delta primitive as transactions and appends one
    movement, in one DB transaction. Restricted to owners and managers.
    """
    require_capability(actor, CAPABILITY_ADJUST_STOCK)
    direction, store_delta, warehouse_delta, origin, destination = plan_manual_adjustment(
        kind, quantity, origin, destination
    )

    def _op():
        get_active_variant(variant_id, lock=True)
        level = apply_delta(variant_id, store_delta, warehouse_delta)
        movement = append_movement(
            variant_id=variant_id,
            employee_id=actor.id,
            kind=kind,
            direction=direction,
            quantity=quantity,
            store_delta=store_delta,
            warehouse_delta=warehouse_delta,
            origin=origin,
            destination=destination,
            note=note,
        )
        return movement, level

    movement, level = run_in_write_transaction(_op)

    current_app.logger.info(
        "Stock adjusted: variant=%s kind=%s qty=%s by employee=%s -> store=%s warehouse=%s",
        variant_id, kind, quantity, actor.id, level.store, level.warehouse,
    )
    return movement, level
