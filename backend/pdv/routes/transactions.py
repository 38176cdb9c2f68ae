# Overview: Flask API route for recording sales, returns and exchanges.

# backend/pdv/routes/transactions.py
"""
Transaction submission.

One POST records one whole transaction. The request body uses the POS
front end's field names:

{
    "fatura_numero": "F-000123",
    "desconto_percentual": 10,
    "employee_id": 1,
    "tipo_transacao": "VENDA" | "DEVOLUCAO" | "TROCA",
    "itens": [{"variant_id": 5, "quantidade": 2, "preco_unitario": 49.90}],
    "original_sale_id": 12,            (DEVOLUCAO / TROCA only)
    "destino_devolucao": "LOJA"        (LOJA | ESTOQUE | FORNECEDOR)
}

Responses:
    201: {"success": true, "sale_id", "message", "total_cents", ...}
    4xx: {"error", "details"} for business-rule rejections
    500: {"error": "Internal server error"} for infrastructure faults
"""

from flask import Blueprint, request, jsonify, current_app

from ..models.ledger import RETURN_DESTINATIONS, TRANSACTION_SALE, TRANSACTION_TYPES
from ..services import transaction_service
from ..services.transaction_service import LineItem, TransactionRequest
from ..validation import (
    MAX_LINE_QUANTITY,
    InvalidLineItemsError,
    LedgerError,
    ValidationError,
    parse_choice,
    parse_discount_bps,
    parse_int,
    parse_money_cents,
    parse_text,
)


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _parse_items(raw) -> tuple[LineItem, ...]:
    if not isinstance(raw, list) or not raw:
        raise InvalidLineItemsError("itens must be a non-empty list")

    items = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise InvalidLineItemsError(f"itens[{index}] must be an object", details={"index": index})
        try:
            items.append(LineItem(
                variant_id=parse_int(entry.get("variant_id"), f"itens[{index}].variant_id", minimum=1),
                quantity=parse_int(
                    entry.get("quantidade"), f"itens[{index}].quantidade",
                    minimum=1, maximum=MAX_LINE_QUANTITY,
                ),
                unit_price_cents=parse_money_cents(entry.get("preco_unitario"), f"itens[{index}].preco_unitario"),
            ))
        except ValidationError as e:
            raise InvalidLineItemsError(e.message, details={"index": index, **e.details})
    return tuple(items)


def parse_transaction_payload(data: dict) -> TransactionRequest:
    transaction_type = parse_choice(
        data.get("tipo_transacao"), "tipo_transacao", TRANSACTION_TYPES, default=TRANSACTION_SALE
    )

    raw_discount = data.get("desconto_percentual")
    if raw_discount is None:
        # Returns inherit the original sale's discount when none is given
        discount_bps = 0 if transaction_type == TRANSACTION_SALE else None
    else:
        discount_bps = parse_discount_bps(raw_discount)

    original_sale_id = data.get("original_sale_id")
    if original_sale_id is not None:
        original_sale_id = parse_int(original_sale_id, "original_sale_id", minimum=1)

    return_destination = data.get("destino_devolucao")
    if return_destination is not None:
        return_destination = parse_choice(return_destination, "destino_devolucao", RETURN_DESTINATIONS)

    return TransactionRequest(
        invoice_number=parse_text(data.get("fatura_numero"), "fatura_numero", max_length=64, required=True),
        employee_id=parse_int(data.get("employee_id"), "employee_id", minimum=1),
        transaction_type=transaction_type,
        items=_parse_items(data.get("itens")),
        discount_bps=discount_bps,
        original_sale_id=original_sale_id,
        return_destination=return_destination,
    )


@transactions_bp.post("")
def register_transaction_route():
    """
    Record a sale, return or exchange atomically.

    Nothing is persisted when the response is an error.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "JSON object body required"}), 400

    try:
        transaction_request = parse_transaction_payload(data)
        result = transaction_service.process_transaction(transaction_request)
        return jsonify(result.to_dict()), 201

    except LedgerError as e:
        current_app.logger.warning(
            "Transaction rejected (%s): %s invoice=%s",
            e.__class__.__name__, e.message, data.get("fatura_numero"),
        )
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register transaction")
        return jsonify({"error": "Internal server error"}), 500
