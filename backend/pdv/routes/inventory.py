# Overview: Flask API routes for stock quantities and the movement log.

# backend/pdv/routes/inventory.py
from flask import Blueprint, request, jsonify, current_app

from ..models.ledger import MOVEMENT_KINDS, STOCK_LOCATIONS
from ..services import movement_service
from ..services.employee_service import resolve_acting_employee
from ..services.repository import get_active_variant
from ..services.stock_service import variant_summary
from ..validation import (
    MAX_LINE_QUANTITY,
    LedgerError,
    parse_choice,
    parse_int,
    parse_text,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/variants/<int:variant_id>")
def get_variant_route(variant_id: int):
    """Variant with its current store/warehouse quantities."""
    try:
        variant = get_active_variant(variant_id)
        return jsonify({"variant": variant_summary(variant)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get variant")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/movements")
def create_movement_route():
    """
    Manual stock adjustment.

    Body:
    {
        "employee_id": 1,
        "variant_id": 5,
        "tipo": "entrada" | "saida" | "transferencia" | "perda" | "venda",
        "quantidade": 3,
        "origem": "loja" | "estoque",     (optional)
        "destino": "loja" | "estoque",    (optional)
        "observacoes": "..."              (optional)
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "JSON object body required"}), 400

    try:
        actor = resolve_acting_employee(parse_int(data.get("employee_id"), "employee_id", minimum=1))
        origin = data.get("origem")
        if origin is not None:
            origin = parse_choice(origin, "origem", STOCK_LOCATIONS)
        destination = data.get("destino")
        if destination is not None:
            destination = parse_choice(destination, "destino", STOCK_LOCATIONS)

        movement, level = movement_service.adjust_stock(
            actor=actor,
            variant_id=parse_int(data.get("variant_id"), "variant_id", minimum=1),
            kind=parse_choice(data.get("tipo"), "tipo", movement_service.MANUAL_MOVEMENT_KINDS),
            quantity=parse_int(data.get("quantidade"), "quantidade", minimum=1, maximum=MAX_LINE_QUANTITY),
            origin=origin,
            destination=destination,
            note=parse_text(data.get("observacoes"), "observacoes", max_length=255),
        )
        return jsonify({
            "success": True,
            "message": "Movimentação registrada com sucesso",
            "movement": movement.to_dict(),
            "stock": level.to_dict(),
        }), 201

    except LedgerError as e:
        current_app.logger.warning("Stock adjustment rejected: %s", e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/movements")
def list_movements_route():
    """
    Movement history, newest first.

    Query params: variant_id, sale_id, tipo, limit (default 100).
    """
    try:
        variant_id = request.args.get("variant_id")
        sale_id = request.args.get("sale_id")
        kind = request.args.get("tipo")
        max_limit = current_app.config.get("MOVEMENT_LIST_MAX_LIMIT", 500)

        movements = movement_service.list_movements(
            variant_id=parse_int(variant_id, "variant_id", minimum=1) if variant_id is not None else None,
            sale_id=parse_int(sale_id, "sale_id", minimum=1) if sale_id is not None else None,
            kind=parse_choice(kind, "tipo", MOVEMENT_KINDS) if kind is not None else None,
            limit=parse_int(request.args.get("limit", "100"), "limit", minimum=1, maximum=max_limit),
        )
        return jsonify({
            "movements": [movement.to_dict() for movement in movements],
            "count": len(movements),
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500
