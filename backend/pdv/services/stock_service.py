# Overview: Stock quantity store; per-variant store/warehouse counts and the atomic delta primitive.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import ProductVariant
from ..validation import InsufficientStockError, VariantNotFoundError
from .repository import not_deleted
"""
Stock invariants (authoritative)

- store_quantity >= 0 and warehouse_quantity >= 0 after every committed operation.
- The only writer of the two quantity columns is apply_delta.
- apply_delta is ONE conditional UPDATE: the non-negativity check and the write
  happen in the same statement, so it is linearizable per variant. Never read
  the quantities in Python, compute, and write them back.
- get_quantities is a snapshot; under concurrency it is advisory unless the row
  is locked in the current transaction.
"""


@dataclass(frozen=True)
class StockLevel:
    store: int
    warehouse: int

    @property
    def total(self) -> int:
        return self.store + self.warehouse

    def to_dict(self) -> dict:
        return {
            "store_quantity": self.store,
            "warehouse_quantity": self.warehouse,
            "total_quantity": self.total,
        }


_variants = ProductVariant.__table__


def _read_row(variant_id: int, *, lock: bool = False):
    stmt = select(
        ProductVariant.reference,
        ProductVariant.store_quantity,
        ProductVariant.warehouse_quantity,
    ).where(ProductVariant.id == variant_id, not_deleted(ProductVariant))
    if lock:
        stmt = stmt.with_for_update()
    row = db.session.execute(stmt).first()
    if row is None:
        raise VariantNotFoundError(
            f"Product variant {variant_id} not found",
            details={"variant_id": variant_id},
        )
    return row


def get_quantities(variant_id: int, *, lock: bool = False) -> StockLevel:
    """
    Current store/warehouse quantities of a live variant.

    lock=True takes a row lock (SELECT ... FOR UPDATE) for the rest of the
    current transaction; SQLite ignores it.
    """
    row = _read_row(variant_id, lock=lock)
    return StockLevel(store=row.store_quantity, warehouse=row.warehouse_quantity)


def lock_variant(variant_id: int) -> StockLevel:
    """Row-lock a live variant for the rest of the transaction and return its quantities."""
    return get_quantities(variant_id, lock=True)


def _expire_cached_variant(variant_id: int) -> None:
    key = Session.identity_key(ProductVariant, variant_id)
    cached = db.session.identity_map.get(key)
    if cached is not None:
        db.session.expire(cached, ["store_quantity", "warehouse_quantity", "version_id", "updated_at"])


def apply_delta(variant_id: int, store_delta: int, warehouse_delta: int) -> StockLevel:
    """
    Atomically add both deltas to a live variant.

    Raises InsufficientStockError, without changing anything, if either
    resulting quantity would be negative; VariantNotFoundError if the variant
    is missing or soft-deleted. Does not commit.
    """
    stmt = (
        update(_variants)
        .where(
            _variants.c.id == variant_id,
            _variants.c.deleted_at.is_(None),
            _variants.c.store_quantity + store_delta >= 0,
            _variants.c.warehouse_quantity + warehouse_delta >= 0,
        )
        .values(
            store_quantity=_variants.c.store_quantity + store_delta,
            warehouse_quantity=_variants.c.warehouse_quantity + warehouse_delta,
            version_id=_variants.c.version_id + 1,
        )
    )
    result = db.session.execute(stmt)
    _expire_cached_variant(variant_id)

    if result.rowcount != 1:
        # Either the variant is gone (raises here) or the guard rejected the delta
        row = _read_row(variant_id)
        raise InsufficientStockError(
            f"Insufficient stock for variant {row.reference}. "
            f"Available: store {row.store_quantity}, warehouse {row.warehouse_quantity}",
            details={
                "variant_id": variant_id,
                "reference": row.reference,
                "store_quantity": row.store_quantity,
                "warehouse_quantity": row.warehouse_quantity,
                "available": row.store_quantity + row.warehouse_quantity,
                "store_delta": store_delta,
                "warehouse_delta": warehouse_delta,
            },
        )

    return get_quantities(variant_id)


def plan_store_first(level: StockLevel, quantity: int) -> tuple[int, int]:
    """
    Split an outgoing quantity across locations, store before warehouse.

    Returns (store_delta, warehouse_delta), both <= 0. The warehouse share may
    exceed what is on hand; apply_delta is what rejects that.
    """
    from_store = min(max(level.store, 0), quantity)
    from_warehouse = quantity - from_store
    return -from_store, -from_warehouse


def variant_summary(variant: ProductVariant) -> dict:
    level = get_quantities(variant.id)
    data = variant.to_dict()
    data.update(level.to_dict())
    return data
