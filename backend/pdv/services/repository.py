"""
Soft-delete boundary.

Every lookup of a soft-deletable row goes through here, so the
"deleted_at IS NULL" rule lives in exactly one place. Services receive either
a live row or a typed not-found error and never inspect deletion columns.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Employee, ProductVariant, Sale, SoftDeleteMixin
from ..time_utils import utcnow
from ..validation import SaleNotFoundError, VariantNotFoundError
from .concurrency import lock_for_update


def not_deleted(model):
    """SQL criterion selecting live rows of a soft-deletable model."""
    return model.deleted_at.is_(None)


def active_query(model):
    return db.session.query(model).filter(not_deleted(model))


def get_active(model, entity_id: int, *, lock: bool = False):
    query = active_query(model).filter(model.id == entity_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_active_variant(variant_id: int, *, lock: bool = False) -> ProductVariant:
    variant = get_active(ProductVariant, variant_id, lock=lock)
    if variant is None:
        raise VariantNotFoundError(
            f"Product variant {variant_id} not found",
            details={"variant_id": variant_id},
        )
    return variant


def get_active_employee(employee_id: int) -> Employee | None:
    return get_active(Employee, employee_id)


def get_active_sale(sale_id: int, *, transaction_type: str | None = None) -> Sale | None:
    query = active_query(Sale).filter(Sale.id == sale_id)
    if transaction_type is not None:
        query = query.filter(Sale.transaction_type == transaction_type)
    return query.first()


def require_active_sale(sale_id: int) -> Sale:
    sale = get_active_sale(sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def find_sale_by_invoice(invoice_number: str, *, transaction_type: str | None = None) -> Sale | None:
    query = active_query(Sale).filter(Sale.invoice_number == invoice_number)
    if transaction_type is not None:
        query = query.filter(Sale.transaction_type == transaction_type)
    return query.first()


def invoice_exists(invoice_number: str) -> bool:
    return db.session.query(
        active_query(Sale).filter(Sale.invoice_number == invoice_number).exists()
    ).scalar()


def soft_delete(entity: SoftDeleteMixin, *, deleted_by: int | None) -> SoftDeleteMixin:
    """Mark a row deleted. Flushes; the caller owns the commit."""
    if entity.is_deleted:
        return entity
    entity.deleted_at = utcnow()
    entity.deleted_by_employee_id = deleted_by
    db.session.flush()
    return entity
