"""
Tenant Service: resolve the acting user to exactly one organization.

Every request that reads or writes products/ledger entries is scoped to the
organization returned here. Resolution outcomes:

- resolved:  membership and organization found (members best-effort)
- no_tenant: no membership, or the organization row is gone. A valid steady
             state (e.g. a brand-new account); never retried.
- failed:    transient database errors outlasted the retry budget, or a
             non-transient database error occurred.

Only steps 1-2 (membership, organization) are retried, and only for
transient errors. The member list is best-effort and degrades to [].

USAGE:
    from stockledger.services.tenant_service import resolve_organization

    resolution = resolve_organization(user_id)
    if resolution.status == TENANT_RESOLVED:
        org_id = resolution.organization.id
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Organization, OrganizationMember, Product, StockTransaction
from ..models.tenancy import PLANS
from ..validation import QuotaExceededError, ValidationError
from .concurrency import SubmissionInProgressError, run_with_retry, submission_guard
from .outcomes import Outcome, busy, forbidden, infra_failure, not_found, rejected, success
from stockledger.time_utils import utcnow

logger = logging.getLogger(__name__)

TENANT_RESOLVED = "resolved"
TENANT_MISSING = "no_tenant"
TENANT_FAILED = "failed"

MANAGER_ROLES = {"owner", "admin"}


@dataclass
class TenantResolution:
    status: str
    organization: Organization | None = None
    members: list[OrganizationMember] = field(default_factory=list)
    attempts: int = 0
    error: str | None = None

    @property
    def org_id(self) -> int | None:
        return self.organization.id if self.organization is not None else None

    def role_of(self, user_id: str) -> str | None:
        return get_member_role(self.members, user_id)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "organization": self.organization.to_dict() if self.organization else None,
            "members": [m.to_dict() for m in self.members],
            "attempts": self.attempts,
            "error": self.error,
        }


def find_membership(user_id: str) -> OrganizationMember | None:
    return db.session.query(OrganizationMember).filter_by(user_id=user_id).first()


def find_organization(organization_id: int) -> Organization | None:
    return db.session.query(Organization).filter_by(id=organization_id).first()


def list_members(organization_id: int) -> list[OrganizationMember]:
    return (
        db.session.query(OrganizationMember)
        .filter_by(organization_id=organization_id)
        .order_by(OrganizationMember.joined_at.asc(), OrganizationMember.id.asc())
        .all()
    )


def resolve_organization(
    user_id: str,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    sleep=time.sleep,
) -> TenantResolution:
    """
    Resolve user_id to its organization with bounded retries.

    Args:
        user_id: External user identity
        attempts: Max attempts (defaults to TENANT_RESOLVE_ATTEMPTS)
        backoff_base: Seconds multiplied by attempt number between attempts
            (defaults to TENANT_RESOLVE_BACKOFF_SECONDS)
        sleep: Injectable sleep function

    Returns:
        TenantResolution (never raises for database errors)
    """
    if attempts is None:
        attempts = current_app.config.get("TENANT_RESOLVE_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TENANT_RESOLVE_BACKOFF_SECONDS", 0.5)

    tries = 0

    def _lookup() -> Organization | None:
        nonlocal tries
        tries += 1
        membership = find_membership(user_id)
        if membership is None:
            logger.info("No organization membership for user %s", user_id)
            return None
        organization = find_organization(membership.organization_id)
        if organization is None:
            logger.info(
                "Organization %s referenced by membership of user %s not found",
                membership.organization_id, user_id,
            )
        return organization

    try:
        organization = run_with_retry(_lookup, attempts=attempts, backoff_base=backoff_base, sleep=sleep)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Could not resolve organization for user %s after %s attempt(s): %s", user_id, tries, exc)
        return TenantResolution(
            status=TENANT_FAILED,
            attempts=tries,
            error="Could not load organization information",
        )

    if organization is None:
        return TenantResolution(status=TENANT_MISSING, attempts=tries)

    try:
        members = list_members(organization.id)
    except SQLAlchemyError as exc:
        # Member list is best-effort; the resolution itself stands
        db.session.rollback()
        logger.warning("Could not load members of organization %s: %s", organization.id, exc)
        members = []

    return TenantResolution(
        status=TENANT_RESOLVED,
        organization=organization,
        members=members,
        attempts=tries,
    )


def get_member_role(members: list[OrganizationMember], user_id: str) -> str | None:
    for member in members:
        if member.user_id == user_id:
            return member.role
    return None


def can_manage_organization(role: str | None) -> bool:
    return role in MANAGER_ROLES


def is_owner(role: str | None) -> bool:
    return role == "owner"


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def count_products(organization_id: int) -> int:
    return db.session.query(Product).filter_by(organization_id=organization_id).count()


def count_transactions_this_month(organization_id: int, now: datetime | None = None) -> int:
    now = now or utcnow()
    return (
        db.session.query(StockTransaction)
        .filter(
            StockTransaction.organization_id == organization_id,
            StockTransaction.created_at >= _month_start(now),
        )
        .count()
    )


def check_limits(organization: Organization, now: datetime | None = None) -> dict:
    """
    Plan limits and current usage for an organization.

    Transactions are counted for the current calendar month.
    """
    product_count = count_products(organization.id)
    transaction_count = count_transactions_this_month(organization.id, now)
    return {
        "plan": organization.plan,
        "max_products": organization.max_products,
        "max_transactions_per_month": organization.max_transactions_per_month,
        "product_count": product_count,
        "transactions_this_month": transaction_count,
        "can_add_products": product_count < organization.max_products,
        "can_add_transactions": transaction_count < organization.max_transactions_per_month,
    }


def require_product_capacity(organization: Organization) -> None:
    if count_products(organization.id) >= organization.max_products:
        raise QuotaExceededError(
            f"Product limit reached for the {organization.plan} plan ({organization.max_products})"
        )


def require_transaction_capacity(organization: Organization, now: datetime | None = None) -> None:
    if count_transactions_this_month(organization.id, now) >= organization.max_transactions_per_month:
        raise QuotaExceededError(
            f"Monthly transaction limit reached for the {organization.plan} plan "
            f"({organization.max_transactions_per_month})"
        )


def validate_organization_updates(updates) -> dict:
    """Normalize a PATCH body to the editable fields: name and plan."""
    if not isinstance(updates, dict):
        raise ValidationError("Invalid JSON payload")

    changes = {}
    if "name" in updates:
        name = str(updates.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        if len(name) > 255:
            raise ValidationError("name exceeds max length 255")
        changes["name"] = name
    if "plan" in updates:
        plan = str(updates.get("plan") or "").strip().lower()
        if plan not in PLANS:
            raise ValidationError(f"plan must be one of: {', '.join(PLANS)}")
        changes["plan"] = plan

    if not changes:
        raise ValidationError("Nothing to update: provide name and/or plan")
    return changes


def update_organization(
    *,
    organization_id: int,
    role: str | None,
    updates: dict,
    caller_key: str | None = None,
) -> Outcome:
    """
    Rename an organization or move it to another plan.

    Owners and admins only. A plan change re-derives max_products and
    max_transactions_per_month from PLAN_LIMITS; existing rows above the new
    limits are kept, only further additions are blocked.
    """
    if not can_manage_organization(role):
        return forbidden("Only owners and admins can update the organization")

    caller_key = caller_key or f"org:{organization_id}"
    try:
        with submission_guard.claim(caller_key, "update_organization"):
            return _update_organization(organization_id=organization_id, updates=updates)
    except SubmissionInProgressError as exc:
        logger.info("Rejected duplicate organization update from %s", caller_key)
        return busy(str(exc))


def _update_organization(*, organization_id: int, updates: dict) -> Outcome:
    try:
        changes = validate_organization_updates(updates)
    except ValidationError as exc:
        return rejected(str(exc))

    try:
        organization = find_organization(organization_id)
        if organization is None:
            return not_found("Organization not found")

        if "name" in changes:
            organization.name = changes["name"]
        if "plan" in changes and changes["plan"] != organization.plan:
            limits = current_app.config["PLAN_LIMITS"][changes["plan"]]
            organization.plan = changes["plan"]
            organization.max_products = limits["max_products"]
            organization.max_transactions_per_month = limits["max_transactions_per_month"]

        db.session.flush()
        organization_data = organization.to_dict()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to update organization %s", organization_id)
        return infra_failure("Could not update the organization")

    logger.info("Updated organization %s: %s", organization_id, ", ".join(sorted(changes)))
    return success({"organization": organization_data})
