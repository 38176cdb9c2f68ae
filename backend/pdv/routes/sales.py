# Overview: Flask API routes for reading and soft-deleting recorded sales.

# backend/pdv/routes/sales.py
"""Sales lookup API (invoice search feeds the return/exchange flow)"""

from flask import Blueprint, request, jsonify, current_app

from ..models.ledger import TRANSACTION_TYPES
from ..services import sales_service
from ..services.employee_service import resolve_acting_employee
from ..validation import LedgerError, parse_choice, parse_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("/by-invoice/<path:invoice_number>")
def lookup_by_invoice_route(invoice_number: str):
    """
    Find a live VENDA by invoice number with its returnable line items.

    404 when no live sale carries that invoice number.
    """
    try:
        sale = sales_service.lookup_by_invoice(invoice_number)
        return jsonify({"sale": sale}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to look up invoice")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale_detail(sale_id)), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    """
    List live sales, newest first.

    Query params:
        tipo_transacao: VENDA | DEVOLUCAO | TROCA (optional)
        limit: 1-500 (default 50)
    """
    try:
        transaction_type = request.args.get("tipo_transacao")
        if transaction_type is not None:
            transaction_type = parse_choice(transaction_type, "tipo_transacao", TRANSACTION_TYPES)
        limit = parse_int(request.args.get("limit", "50"), "limit", minimum=1, maximum=500)

        sales = sales_service.list_sales(transaction_type=transaction_type, limit=limit)
        return jsonify({"sales": [sale.to_dict() for sale in sales], "count": len(sales)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """
    Soft-delete a sale.

    Body: {"employee_id": int}. Owners and managers only. Stock is not touched.
    """
    data = request.get_json(silent=True) or {}
    try:
        actor = resolve_acting_employee(parse_int(data.get("employee_id"), "employee_id", minimum=1))
        sale = sales_service.soft_delete_sale(sale_id, actor)
        return jsonify({"success": True, "sale": sale.to_dict()}), 200

    except LedgerError as e:
        current_app.logger.warning("Sale delete rejected: sale_id=%s %s", sale_id, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
