# Overview: Request decorators establishing user identity and tenant context.

from functools import wraps
from flask import request, jsonify, g

from .services.tenant_service import TENANT_FAILED, TENANT_RESOLVED, resolve_organization

USER_HEADER = "X-User-Id"
SESSION_HEADER = "X-Session-Id"


def require_user(f):
    """
    Require a user identity and resolve its tenant.

    Identity is asserted by the upstream gateway in the X-User-Id header.
    Sets the following Flask g attributes:
    - g.user_id: external user identity
    - g.caller_key: duplicate-submission key (X-Session-Id, else user id)
    - g.tenant: TenantResolution (status may be "no_tenant")
    - g.org_id: resolved organization id or None

    Returns 401 without an identity, 503 if resolution failed after retries.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get(USER_HEADER) or "").strip()
        if not user_id:
            return jsonify({"error": "Authentication required"}), 401

        resolution = resolve_organization(user_id)
        if resolution.status == TENANT_FAILED:
            return jsonify({"error": resolution.error or "Could not load organization information"}), 503

        g.user_id = user_id
        g.caller_key = (request.headers.get(SESSION_HEADER) or "").strip() or user_id
        g.tenant = resolution
        g.org_id = resolution.org_id

        return f(*args, **kwargs)

    return decorated_function


def require_tenant(f):
    """
    Require a resolved organization. Must follow @require_user.

    Returns 403 when the user has no organization yet.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant = getattr(g, "tenant", None)
        if tenant is None:
            return jsonify({"error": "Authentication required"}), 401
        if tenant.status != TENANT_RESOLVED:
            return jsonify({"error": "No organization for this user"}), 403
        return f(*args, **kwargs)

    return decorated_function
