# Overview: Flask API routes for the caller's organization; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_tenant, require_user
from ..services.tenant_service import (
    TENANT_RESOLVED,
    can_manage_organization,
    check_limits,
    is_owner,
    update_organization,
)

organization_bp = Blueprint("organization", __name__, url_prefix="/api/organization")


@organization_bp.get("")
@require_user
def current_organization():
    """
    Current user's organization.

    "No organization" is a valid state (new account): 200 with organization=null.
    """
    tenant = g.tenant
    if tenant.status != TENANT_RESOLVED:
        return jsonify({"organization": None, "role": None}), 200

    role = tenant.role_of(g.user_id)
    return jsonify({
        "organization": tenant.organization.to_dict(),
        "role": role,
        "can_manage": can_manage_organization(role),
        "is_owner": is_owner(role),
    }), 200


@organization_bp.get("/members")
@require_user
@require_tenant
def organization_members():
    return jsonify({"items": [m.to_dict() for m in g.tenant.members]}), 200


@organization_bp.get("/limits")
@require_user
@require_tenant
def organization_limits():
    return jsonify(check_limits(g.tenant.organization)), 200


@organization_bp.patch("")
@require_user
@require_tenant
def update_organization_route():
    """
    Update the caller's organization (owner/admin).

    Body: {"name": str?, "plan": "free"|"premium"|"enterprise"?}
    """
    payload = request.get_json(silent=True) or {}
    outcome = update_organization(
        organization_id=g.org_id,
        role=g.tenant.role_of(g.user_id),
        updates=payload,
        caller_key=g.caller_key,
    )
    return jsonify(outcome.to_dict()), outcome.http_status()
