# Overview: Read side of recorded sales: invoice lookup for returns, listing, soft delete.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Sale, StockMovement
from ..models.ledger import MOVEMENT_SALE, TRANSACTION_SALE
from ..validation import SaleNotFoundError
from .employee_service import CAPABILITY_DELETE_SALE, ActingEmployee, require_capability
from .repository import active_query, find_sale_by_invoice, not_deleted, require_active_sale, soft_delete
from .transaction_service import returned_quantities


def _line_from_movement(movement: StockMovement, returned: int) -> dict:
    variant = movement.variant
    product = variant.product if variant is not None else None
    unit_price = movement.unit_price_cents
    if unit_price is None and variant is not None:
        unit_price = variant.price_cents
    return {
        "id": movement.id,
        "variant_id": movement.variant_id,
        "quantidade": movement.quantity,
        "preco_unitario_cents": unit_price,
        "quantidade_devolvida": returned,
        "quantidade_disponivel_devolucao": max(movement.quantity - returned, 0),
        "variant": {
            "reference": variant.reference if variant else "",
            "color": variant.color if variant else None,
            "size": variant.size if variant else None,
            "product": {
                "name": product.name if product else "",
                "category": product.category if product else "",
            },
        },
    }


def lookup_by_invoice(invoice_number: str) -> dict:
    """
    Original VENDA header plus line items rebuilt from its sale movements.

    Used to start a return or exchange. Returned quantities are spread over the
    movements of each variant in order, so a variant sold on two lines shows
    what is still returnable on each.
    """
    sale = find_sale_by_invoice(invoice_number, transaction_type=TRANSACTION_SALE)
    if sale is None:
        raise SaleNotFoundError(
            f"No sale found for invoice {invoice_number}",
            details={"fatura_numero": invoice_number},
        )

    movements = active_query(StockMovement).filter(
        StockMovement.sale_id == sale.id,
        StockMovement.kind == MOVEMENT_SALE,
    ).order_by(StockMovement.id.asc()).all()

    remaining_returned = dict(returned_quantities(sale.id))
    items = []
    for movement in movements:
        already = min(remaining_returned.get(movement.variant_id, 0), movement.quantity)
        remaining_returned[movement.variant_id] = remaining_returned.get(movement.variant_id, 0) - already
        items.append(_line_from_movement(movement, already))

    header = sale.to_dict()
    header["employee"] = {"full_name": sale.employee.full_name if sale.employee else None}
    header["itens"] = items
    return header


def get_sale_detail(sale_id: int) -> dict:
    sale = require_active_sale(sale_id)
    movements = active_query(StockMovement).filter(
        StockMovement.sale_id == sale.id
    ).order_by(StockMovement.id.asc()).all()
    return {
        "sale": sale.to_dict(),
        "movements": [movement.to_dict() for movement in movements],
        "returns": [ret.to_dict() for ret in returns_for_sale(sale.id)],
    }


def list_sales(*, transaction_type: str | None = None, limit: int = 50) -> list[Sale]:
    query = active_query(Sale)
    if transaction_type is not None:
        query = query.filter(Sale.transaction_type == transaction_type)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def returns_for_sale(sale_id: int) -> list[Sale]:
    return db.session.query(Sale).filter(
        Sale.original_sale_id == sale_id,
        not_deleted(Sale),
    ).order_by(Sale.id.asc()).all()


def soft_delete_sale(sale_id: int, actor: ActingEmployee) -> Sale:
    """
    Hide a sale from every lookup and free its invoice number.

    Stock and movements are left untouched; reversing goods is a return.
    """
    require_capability(actor, CAPABILITY_DELETE_SALE)
    sale = require_active_sale(sale_id)
    soft_delete(sale, deleted_by=actor.id)
    db.session.commit()

    current_app.logger.info(
        "Sale soft-deleted: sale_id=%s invoice=%s by employee=%s",
        sale.id, sale.invoice_number, actor.id,
    )
    return sale
