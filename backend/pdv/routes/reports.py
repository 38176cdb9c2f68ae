# Overview: Flask API route for dashboard KPIs.

# backend/pdv/routes/reports.py
from flask import Blueprint, request, jsonify, current_app

from ..services import reporting_service
from ..time_utils import parse_iso_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/kpis")
def kpis_route():
    """
    Dashboard KPIs.

    Query params:
        date: YYYY-MM-DD (optional, defaults to today UTC)
    """
    try:
        day = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    try:
        return jsonify(reporting_service.dashboard_kpis(day)), 200
    except Exception:
        current_app.logger.exception("Failed to compute KPIs")
        return jsonify({"error": "Internal server error"}), 500
