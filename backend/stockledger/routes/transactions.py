# Overview: Flask API routes for ledger transactions; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_tenant, require_user
from ..services import ledger_service

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_user
@require_tenant
def list_transactions_route():
    """
    Ledger entries for the caller's organization, newest first.

    Query params:
    - product_id: int (optional)
    - limit: int (optional, 1..1000)
    """
    product_id = request.args.get("product_id", type=int)
    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = max(1, min(limit, 1000))

    try:
        items = ledger_service.list_transactions(g.org_id, limit=limit, product_id=product_id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Could not load transactions"}), 503
    return jsonify({"items": items, "count": len(items)}), 200


@transactions_bp.post("")
@require_user
@require_tenant
def create_transaction_route():
    """
    Record a purchase or sale.

    Body: {"product_id": int, "type": "purchase"|"sale", "quantity": int, "unit_price": number?}
    """
    payload = request.get_json(silent=True) or {}
    product_id = payload.get("product_id")
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return jsonify({"status": "validation_error", "error": "product_id must be an integer"}), 400

    outcome = ledger_service.record_transaction(
        org_id=g.org_id,
        product_id=product_id,
        transaction_type=payload.get("type"),
        quantity=payload.get("quantity"),
        unit_price=payload.get("unit_price"),
        user_id=g.user_id,
        caller_key=g.caller_key,
    )
    return jsonify(outcome.to_dict()), outcome.http_status(success=201)


@transactions_bp.get("/reconcile")
@require_user
@require_tenant
def reconcile_route():
    try:
        report = ledger_service.reconcile_stock(g.org_id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to reconcile stock")
        return jsonify({"error": "Could not reconcile stock"}), 503
    return jsonify(report), 200
