# backend/stockledger/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are tenant-scoped.
- list_products filters by organization_id
- add_product creates the product inside the caller's organization
- delete_product only removes products of that organization

UNIT CONVERSION:
- "package" mode: quantity counts packages of package_size units.
  stock_quantity = quantity * package_size,
  purchase_price_per_unit = round(purchase_price / package_size).
- "unit" mode: quantity counts base units; prices are per unit.

LEDGER COMPANION WRITE:
Creating a product also appends an initial purchase entry for the full
stock at the per-unit cost. The product is committed first; if the entry
fails, the product stays and the caller gets a "warning" outcome.
"""
from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Organization, Product
from ..validation import QuotaExceededError, ValidationError, validate_new_product
from .concurrency import SubmissionInProgressError, pad_to_minimum, submission_guard
from .ledger_service import PURCHASE, append_ledger_entry
from .outcomes import Outcome, busy, infra_failure, not_found, rejected, succeeded_with_warning, success
from .tenant_service import require_product_capacity

logger = logging.getLogger(__name__)


def list_products(org_id: int) -> list[dict]:
    """Tenant-scoped product listing, newest first."""
    products = (
        db.session.query(Product)
        .filter(Product.organization_id == org_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )
    return [p.to_dict() for p in products]


def get_product(org_id: int, product_id: int) -> Product | None:
    return (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.organization_id == org_id)
        .first()
    )


def add_product(
    *,
    org_id: int,
    payload: dict,
    user_id: str | None = None,
    caller_key: str | None = None,
    sleep=time.sleep,
) -> Outcome:
    """
    Create a product and its initial purchase entry.

    Single-flight per caller; a successful call takes at least
    PRODUCT_SUBMIT_MIN_SECONDS.

    Returns:
        Outcome with data {"product": ..., "transaction": ... | None}
    """
    caller_key = caller_key or user_id or f"org:{org_id}"
    started = time.monotonic()
    try:
        with submission_guard.claim(caller_key, "add_product"):
            outcome = _add_product(org_id=org_id, payload=payload, user_id=user_id)
            if outcome.succeeded:
                pad_to_minimum(
                    started,
                    current_app.config.get("PRODUCT_SUBMIT_MIN_SECONDS", 1.0),
                    sleep=sleep,
                )
            return outcome
    except SubmissionInProgressError as exc:
        logger.info("Rejected duplicate product submission from %s", caller_key)
        return busy(str(exc))


def _add_product(*, org_id: int, payload: dict, user_id: str | None) -> Outcome:
    try:
        new_product = validate_new_product(
            payload,
            default_alert_threshold=current_app.config.get("DEFAULT_ALERT_THRESHOLD", 10),
            default_unit_label=current_app.config.get("DEFAULT_UNIT_LABEL", "unit"),
        )
    except ValidationError as exc:
        return rejected(str(exc))

    try:
        organization = db.session.query(Organization).filter_by(id=org_id).first()
        if organization is None:
            return not_found("Organization not found")

        try:
            require_product_capacity(organization)
        except QuotaExceededError as exc:
            return rejected(str(exc))

        product = Product(
            organization_id=org_id,
            created_by_user_id=user_id,
            name=new_product.name,
            unit_label=new_product.unit_label,
            units_per_package=new_product.units_per_package,
            purchase_price_per_unit=new_product.purchase_price_per_unit,
            selling_price_per_unit=new_product.selling_price_per_unit,
            alert_threshold=new_product.alert_threshold,
            stock_quantity=new_product.stock_quantity,
        )
        db.session.add(product)
        db.session.flush()
        # Serialized before commit: commit expires the row
        product_data = product.to_dict()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to create product %r in organization %s", new_product.name, org_id)
        return infra_failure("Could not create the product")

    try:
        entry = append_ledger_entry(
            org_id=org_id,
            product_id=product_data["id"],
            transaction_type=PURCHASE,
            quantity=new_product.stock_quantity,
            unit_price=new_product.purchase_price_per_unit,
            user_id=user_id,
        )
        entry_data = entry.to_dict()
        db.session.commit()
    except SQLAlchemyError:
        # Product stays; its stock is not yet backed by a ledger entry
        db.session.rollback()
        logger.warning(
            "Product %s created but its initial purchase entry could not be recorded",
            product_data["id"],
            exc_info=True,
        )
        return succeeded_with_warning(
            {"product": product_data, "transaction": None},
            "Product created but its purchase history could not be recorded",
        )

    logger.info(
        "Created product %s (%s %s) in organization %s",
        product_data["id"], new_product.stock_quantity, new_product.unit_label, org_id,
    )
    return success({"product": product_data, "transaction": entry_data})


def delete_product(*, org_id: int, product_id: int, caller_key: str | None = None) -> Outcome:
    """
    Hard-delete a product row.

    Ledger entries referencing it are left untouched (history, not a join target).
    """
    caller_key = caller_key or f"org:{org_id}"
    try:
        with submission_guard.claim(caller_key, "delete_product"):
            return _delete_product(org_id=org_id, product_id=product_id)
    except SubmissionInProgressError as exc:
        logger.info("Rejected duplicate delete submission from %s", caller_key)
        return busy(str(exc))


def _delete_product(*, org_id: int, product_id: int) -> Outcome:
    try:
        product = get_product(org_id, product_id)
        if product is None:
            return not_found("Product not found")
        db.session.delete(product)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to delete product %s", product_id)
        return infra_failure("Could not delete the product")

    logger.info("Deleted product %s from organization %s", product_id, org_id)
    return success({"deleted": product_id})
