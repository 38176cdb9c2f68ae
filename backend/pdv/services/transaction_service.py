"""
Sale / return / exchange transaction processor.

One call records one commercial transaction: it validates the whole batch of
line items, creates the Sale row, applies every stock delta and appends every
movement inside a single DB transaction. Either all of it commits or none of
it does.

STATES:
    Validating -> ReservationCheck -> Applying -> Committed
    (any failure before Committed -> Rejected, with the session rolled back)

SALE (VENDA):
1. Invoice number must not exist among live sales.
2. Acting employee must exist and be active.
3. Advisory stock pre-check on locked rows (store + warehouse >= requested).
4. Totals: subtotal, half-up discount, net total.
5. Sale row, then per line a store-first atomic decrement and one movement.

RETURN / EXCHANGE (DEVOLUCAO / TROCA):
1. Original sale must be a live VENDA.
2. Returned quantity per variant <= sold - already returned.
3. Negative total; stock goes back to LOJA (default), ESTOQUE, or leaves the
   business (FORNECEDOR, no local increment).
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, StockMovement
from ..models.ledger import (
    DESTINATION_STORE,
    DESTINATION_SUPPLIER,
    DESTINATION_WAREHOUSE,
    DIRECTION_IN,
    DIRECTION_OUT,
    LOCATION_STORE,
    LOCATION_SUPPLIER,
    LOCATION_WAREHOUSE,
    MOVEMENT_EXCHANGE,
    MOVEMENT_RETURN,
    MOVEMENT_RETURN_TO_SUPPLIER,
    MOVEMENT_SALE,
    RETURN_DESTINATIONS,
    RETURN_MOVEMENT_KINDS,
    TRANSACTION_EXCHANGE,
    TRANSACTION_RETURN,
    TRANSACTION_SALE,
    TRANSACTION_TYPES,
)
from ..time_utils import utcnow
from ..validation import (
    MAX_LINE_QUANTITY,
    MAX_PRICE_CENTS,
    DuplicateInvoiceError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidLineItemsError,
    OriginalSaleNotFoundError,
    ReturnQuantityExceededError,
    ValidationError,
)
from .concurrency import run_in_write_transaction
from .employee_service import CAPABILITY_RECORD_TRANSACTION, ActingEmployee, require_capability, resolve_acting_employee
from .movement_service import append_movement
from .repository import get_active_sale, get_active_variant, invoice_exists, not_deleted
from .stock_service import apply_delta, lock_variant, plan_store_first


SUCCESS_MESSAGES = {
    TRANSACTION_SALE: "Venda registrada com sucesso",
    TRANSACTION_RETURN: "Devolução registrada com sucesso",
    TRANSACTION_EXCHANGE: "Troca registrada com sucesso",
}


@dataclass(frozen=True)
class LineItem:
    variant_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class TransactionRequest:
    invoice_number: str
    employee_id: int
    transaction_type: str
    items: tuple[LineItem, ...]
    # None on a return/exchange means "inherit the original sale's discount"
    discount_bps: int | None = 0
    original_sale_id: int | None = None
    return_destination: str | None = None


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    discount_cents: int
    total_cents: int


@dataclass(frozen=True)
class TransactionResult:
    sale_id: int
    invoice_number: str
    transaction_type: str
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    message: str

    def to_dict(self) -> dict:
        return {
            "success": True,
            "sale_id": self.sale_id,
            "invoice_number": self.invoice_number,
            "transaction_type": self.transaction_type,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "message": self.message,
        }


# =============================================================================
# TOTALS
# =============================================================================

def compute_totals(items, discount_bps: int) -> Totals:
    """
    subtotal = sum(quantity * unit_price)
    discount = subtotal * pct / 100, rounded half-up to the cent
    total    = subtotal - discount
    """
    if discount_bps < 0 or discount_bps > 10_000:
        raise InvalidDiscountError(
            "Discount must be between 0 and 100 percent",
            details={"discount_percent": discount_bps / 100},
        )
    subtotal = sum(item.line_total_cents for item in items)
    discount = (subtotal * discount_bps + 5_000) // 10_000
    return Totals(subtotal_cents=subtotal, discount_cents=discount, total_cents=subtotal - discount)


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_request(request: TransactionRequest) -> None:
    if not request.invoice_number or not request.invoice_number.strip():
        raise ValidationError("fatura_numero is required")

    if request.transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"tipo_transacao must be one of: {', '.join(TRANSACTION_TYPES)}",
            details={"tipo_transacao": request.transaction_type},
        )

    if not request.items:
        raise InvalidLineItemsError("Transaction must contain at least one line item")

    bad_items = []
    for index, item in enumerate(request.items):
        if item.quantity <= 0 or item.quantity > MAX_LINE_QUANTITY:
            bad_items.append({"index": index, "variant_id": item.variant_id, "quantidade": item.quantity})
        elif item.unit_price_cents < 0 or item.unit_price_cents > MAX_PRICE_CENTS:
            bad_items.append({"index": index, "variant_id": item.variant_id, "preco_unitario_cents": item.unit_price_cents})
    if bad_items:
        raise InvalidLineItemsError(
            "Line items must have a positive quantity and a non-negative price",
            details={"items": bad_items},
        )

    if request.transaction_type == TRANSACTION_SALE:
        if request.original_sale_id is not None:
            raise ValidationError("original_sale_id is only valid for DEVOLUCAO or TROCA")
        if request.discount_bps is None:
            raise InvalidDiscountError("desconto_percentual is required for VENDA")
    else:
        if request.original_sale_id is None:
            raise ValidationError(
                "original_sale_id is required for DEVOLUCAO or TROCA",
                details={"tipo_transacao": request.transaction_type},
            )
        if request.return_destination is not None and request.return_destination not in RETURN_DESTINATIONS:
            raise ValidationError(
                f"destino_devolucao must be one of: {', '.join(RETURN_DESTINATIONS)}",
                details={"destino_devolucao": request.return_destination},
            )


def _quantities_by_variant(items) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item.variant_id] = totals.get(item.variant_id, 0) + item.quantity
    return totals


def _ensure_invoice_available(invoice_number: str) -> None:
    if invoice_exists(invoice_number):
        raise DuplicateInvoiceError(
            f"Invoice number {invoice_number} already exists",
            details={"fatura_numero": invoice_number},
        )


def _lock_and_check_stock(items) -> None:
    """
    Lock every variant row (ascending id, so concurrent batches cannot
    deadlock) and reject the batch if any variant is short.

    Advisory under concurrency on engines without row locks; apply_delta is the
    authoritative guard.
    """
    requested = _quantities_by_variant(items)
    insufficient = []
    for variant_id in sorted(requested):
        variant = get_active_variant(variant_id)
        level = lock_variant(variant_id)
        if level.total < requested[variant_id]:
            insufficient.append({
                "variant_id": variant_id,
                "reference": variant.reference,
                "available": level.total,
                "store_quantity": level.store,
                "warehouse_quantity": level.warehouse,
                "requested": requested[variant_id],
            })

    if insufficient:
        first = insufficient[0]
        raise InsufficientStockError(
            f"Insufficient stock for {first['reference']}. "
            f"Available: {first['available']}, requested: {first['requested']}",
            details={"items": insufficient},
        )


def _create_sale(request: TransactionRequest, actor: ActingEmployee, totals: Totals, discount_bps: int) -> Sale:
    sale = Sale(
        invoice_number=request.invoice_number,
        employee_id=actor.id,
        transaction_type=request.transaction_type,
        discount_bps=discount_bps,
        subtotal_cents=totals.subtotal_cents,
        discount_cents=totals.discount_cents,
        total_cents=totals.total_cents,
        original_sale_id=request.original_sale_id,
        return_destination=request.return_destination,
        created_at=utcnow(),
    )
    db.session.add(sale)
    try:
        db.session.flush()
    except IntegrityError:
        # Lost a race on the partial unique index
        raise DuplicateInvoiceError(
            f"Invoice number {request.invoice_number} already exists",
            details={"fatura_numero": request.invoice_number},
        )
    return sale


def _result(sale: Sale) -> TransactionResult:
    return TransactionResult(
        sale_id=sale.id,
        invoice_number=sale.invoice_number,
        transaction_type=sale.transaction_type,
        subtotal_cents=sale.subtotal_cents,
        discount_cents=sale.discount_cents,
        total_cents=sale.total_cents,
        message=SUCCESS_MESSAGES[sale.transaction_type],
    )


# =============================================================================
# SALE
# =============================================================================

def _origin_for(store_delta: int, warehouse_delta: int) -> str:
    if warehouse_delta == 0:
        return LOCATION_STORE
    if store_delta == 0:
        return LOCATION_WAREHOUSE
    return f"{LOCATION_STORE}+{LOCATION_WAREHOUSE}"


def _process_sale_locked(request: TransactionRequest) -> TransactionResult:
    _ensure_invoice_available(request.invoice_number)
    actor = resolve_acting_employee(request.employee_id)
    require_capability(actor, CAPABILITY_RECORD_TRANSACTION)

    _lock_and_check_stock(request.items)

    totals = compute_totals(request.items, request.discount_bps)
    sale = _create_sale(request, actor, totals, request.discount_bps)

    for item in request.items:
        level = lock_variant(item.variant_id)
        store_delta, warehouse_delta = plan_store_first(level, item.quantity)
        apply_delta(item.variant_id, store_delta, warehouse_delta)
        append_movement(
            variant_id=item.variant_id,
            employee_id=actor.id,
            kind=MOVEMENT_SALE,
            direction=DIRECTION_OUT,
            quantity=item.quantity,
            store_delta=store_delta,
            warehouse_delta=warehouse_delta,
            origin=_origin_for(store_delta, warehouse_delta),
            sale_id=sale.id,
            unit_price_cents=item.unit_price_cents,
            note=f"Venda - Fatura: {request.invoice_number}",
        )

    return _result(sale)


# =============================================================================
# RETURN / EXCHANGE
# =============================================================================

def sold_quantities(sale_id: int) -> dict[int, int]:
    """Quantity per variant sold on a sale, from its sale movements."""
    rows = db.session.query(
        StockMovement.variant_id,
        func.sum(StockMovement.quantity),
    ).filter(
        StockMovement.sale_id == sale_id,
        StockMovement.kind == MOVEMENT_SALE,
        not_deleted(StockMovement),
    ).group_by(StockMovement.variant_id).all()
    return {variant_id: int(qty) for variant_id, qty in rows}


def returned_quantities(original_sale_id: int) -> dict[int, int]:
    """
    Quantity per variant already returned or exchanged against a sale.

    Counted from the movements; returns with a soft-deleted header still count.
    """
    rows = db.session.query(
        StockMovement.variant_id,
        func.sum(StockMovement.quantity),
    ).join(
        Sale, Sale.id == StockMovement.sale_id
    ).filter(
        Sale.original_sale_id == original_sale_id,
        not_deleted(StockMovement),
        StockMovement.kind.in_(RETURN_MOVEMENT_KINDS),
    ).group_by(StockMovement.variant_id).all()
    return {variant_id: int(qty) for variant_id, qty in rows}


def _check_returnable(original: Sale, items) -> None:
    sold = sold_quantities(original.id)
    returned = returned_quantities(original.id)

    exceeded = []
    for variant_id, qty in _quantities_by_variant(items).items():
        returnable = sold.get(variant_id, 0) - returned.get(variant_id, 0)
        if qty > returnable:
            exceeded.append({
                "variant_id": variant_id,
                "sold": sold.get(variant_id, 0),
                "already_returned": returned.get(variant_id, 0),
                "requested": qty,
            })

    if exceeded:
        raise ReturnQuantityExceededError(
            f"Return exceeds quantity sold on invoice {original.invoice_number}",
            details={"original_invoice": original.invoice_number, "items": exceeded},
        )


def _return_plan(destination: str, quantity: int) -> tuple[int, int, str]:
    """(store_delta, warehouse_delta, destination location) for one returned line."""
    if destination == DESTINATION_SUPPLIER:
        return 0, 0, LOCATION_SUPPLIER
    if destination == DESTINATION_WAREHOUSE:
        return 0, quantity, LOCATION_WAREHOUSE
    return quantity, 0, LOCATION_STORE


def _return_movement_kind(transaction_type: str, destination: str) -> str:
    if destination == DESTINATION_SUPPLIER:
        return MOVEMENT_RETURN_TO_SUPPLIER
    if transaction_type == TRANSACTION_EXCHANGE:
        return MOVEMENT_EXCHANGE
    return MOVEMENT_RETURN


def _process_return_locked(request: TransactionRequest) -> TransactionResult:
    original = get_active_sale(request.original_sale_id, transaction_type=TRANSACTION_SALE)
    if original is None:
        raise OriginalSaleNotFoundError(
            f"Original sale {request.original_sale_id} not found",
            details={"original_sale_id": request.original_sale_id},
        )

    _ensure_invoice_available(request.invoice_number)
    actor = resolve_acting_employee(request.employee_id)
    require_capability(actor, CAPABILITY_RECORD_TRANSACTION)

    for variant_id in sorted(_quantities_by_variant(request.items)):
        get_active_variant(variant_id)
        lock_variant(variant_id)

    _check_returnable(original, request.items)

    discount_bps = original.discount_bps if request.discount_bps is None else request.discount_bps
    totals = compute_totals(request.items, discount_bps)
    negated = Totals(
        subtotal_cents=-totals.subtotal_cents,
        discount_cents=-totals.discount_cents,
        total_cents=-totals.total_cents,
    )

    destination = request.return_destination or DESTINATION_STORE
    request = replace(request, discount_bps=discount_bps, return_destination=destination)
    sale = _create_sale(request, actor, negated, discount_bps)

    kind = _return_movement_kind(request.transaction_type, destination)
    for item in request.items:
        store_delta, warehouse_delta, location = _return_plan(destination, item.quantity)
        apply_delta(item.variant_id, store_delta, warehouse_delta)
        append_movement(
            variant_id=item.variant_id,
            employee_id=actor.id,
            kind=kind,
            direction=DIRECTION_IN,
            quantity=item.quantity,
            store_delta=store_delta,
            warehouse_delta=warehouse_delta,
            destination=location,
            sale_id=sale.id,
            unit_price_cents=item.unit_price_cents,
            note=(
                f"{request.transaction_type} - Fatura: {request.invoice_number} "
                f"- Original: {original.invoice_number}"
            ),
        )

    return _result(sale)


# =============================================================================
# ENTRY POINT
# =============================================================================

def process_transaction(request: TransactionRequest) -> TransactionResult:
    """
    Record a SALE, RETURN or EXCHANGE atomically.

    Raises a LedgerError subclass on any business-rule rejection; nothing is
    persisted in that case. Lock conflicts are retried; everything else
    propagates.
    """
    _validate_request(request)

    if request.transaction_type == TRANSACTION_SALE:
        handler = _process_sale_locked
    else:
        handler = _process_return_locked

    result = run_in_write_transaction(lambda: handler(request))

    current_app.logger.info(
        "Transaction committed: type=%s invoice=%s sale_id=%s total_cents=%s employee=%s items=%s",
        result.transaction_type, result.invoice_number, result.sale_id,
        result.total_cents, request.employee_id, len(request.items),
    )
    return result
