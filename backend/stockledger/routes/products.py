# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's organization.
The org_id is derived from g.org_id (set by @require_user).
"""
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_tenant, require_user
from ..services import products_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_user
@require_tenant
def list_products():
    try:
        items = products_service.list_products(g.org_id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Could not load products"}), 503
    return jsonify({"items": items, "count": len(items)}), 200


@products_bp.post("")
@require_user
@require_tenant
def create_product_route():
    """
    Create a product and its initial purchase entry.

    201 on success; 201 with "warning" when the history entry failed.
    """
    payload = request.get_json(silent=True) or {}
    outcome = products_service.add_product(
        org_id=g.org_id,
        payload=payload,
        user_id=g.user_id,
        caller_key=g.caller_key,
    )
    return jsonify(outcome.to_dict()), outcome.http_status(success=201)


@products_bp.delete("/<int:product_id>")
@require_user
@require_tenant
def delete_product_route(product_id: int):
    outcome = products_service.delete_product(
        org_id=g.org_id,
        product_id=product_id,
        caller_key=g.caller_key,
    )
    return jsonify(outcome.to_dict()), outcome.http_status()
