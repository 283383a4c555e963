# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Invariants (authoritative)

- Append-only: StockTransaction rows are never updated or deleted.
- total_amount = quantity * unit_price, whole currency units.
- Every stock change is attributable to exactly one ledger entry:
    Product.stock_quantity == SUM(purchase.quantity) - SUM(sale.quantity)
- Stock never goes negative; a sale larger than stock is rejected whole
  (no partial fill, no backorder).
- The entry append and the stock update share one database transaction,
  so readers observe both or neither.
- Storage failures are surfaced, never retried automatically: a write whose
  outcome is unknown could duplicate a financial entry.
"""
from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Organization, Product, StockTransaction
from ..validation import (
    InsufficientStockError,
    QuotaExceededError,
    ValidationError,
    validate_quantity,
    validate_unit_price,
)
from .concurrency import SubmissionInProgressError, lock_for_update, pad_to_minimum, submission_guard
from .outcomes import Outcome, busy, infra_failure, not_found, rejected, success
from .tenant_service import require_transaction_capacity

logger = logging.getLogger(__name__)

PURCHASE = "purchase"
SALE = "sale"
TRANSACTION_TYPES = (PURCHASE, SALE)


def append_ledger_entry(
    *,
    org_id: int,
    product_id: int,
    transaction_type: str,
    quantity: int,
    unit_price: int,
    user_id: str | None = None,
) -> StockTransaction:
    """
    Append a ledger row without touching stock.

    Caller owns the commit. Used directly only for the initial purchase of a
    newly created product, whose stock was set at creation.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError("transaction_type must be 'purchase' or 'sale'")

    entry = StockTransaction(
        organization_id=org_id,
        product_id=product_id,
        user_id=user_id,
        transaction_type=transaction_type,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=quantity * unit_price,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def compute_new_stock(product: Product, transaction_type: str, quantity: int) -> int:
    """Stock after applying the entry; raises InsufficientStockError for oversell."""
    if transaction_type == PURCHASE:
        return product.stock_quantity + quantity
    if product.stock_quantity < quantity:
        raise InsufficientStockError(
            requested=quantity,
            available=product.stock_quantity,
            unit_label=product.unit_label,
        )
    return product.stock_quantity - quantity


def resolve_unit_price(product: Product, transaction_type: str, unit_price: int | None) -> int:
    if unit_price is not None:
        return unit_price
    if transaction_type == SALE:
        return product.selling_price_per_unit
    raise ValidationError("unit_price is required for purchases")


def record_transaction(
    *,
    org_id: int,
    product_id: int,
    transaction_type: str,
    quantity,
    unit_price=None,
    user_id: str | None = None,
    caller_key: str | None = None,
    sleep=time.sleep,
) -> Outcome:
    """
    Record a purchase or sale and apply it to the product's stock.

    Single-flight per caller; a successful call takes at least
    TRANSACTION_SUBMIT_MIN_SECONDS.

    Returns:
        Outcome with data {"transaction": ..., "product": ...} on success
    """
    caller_key = caller_key or user_id or f"org:{org_id}"
    started = time.monotonic()
    try:
        with submission_guard.claim(caller_key, "record_transaction"):
            outcome = _record_transaction(
                org_id=org_id,
                product_id=product_id,
                transaction_type=transaction_type,
                quantity=quantity,
                unit_price=unit_price,
                user_id=user_id,
            )
            if outcome.succeeded:
                pad_to_minimum(
                    started,
                    current_app.config.get("TRANSACTION_SUBMIT_MIN_SECONDS", 0.8),
                    sleep=sleep,
                )
            return outcome
    except SubmissionInProgressError as exc:
        logger.info("Rejected duplicate transaction submission from %s", caller_key)
        return busy(str(exc))


def _record_transaction(
    *,
    org_id: int,
    product_id: int,
    transaction_type: str,
    quantity,
    unit_price,
    user_id: str | None,
) -> Outcome:
    try:
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError("transaction_type must be 'purchase' or 'sale'")
        quantity = validate_quantity(quantity)
        unit_price = validate_unit_price(unit_price)
    except ValidationError as exc:
        return rejected(str(exc))

    try:
        organization = db.session.query(Organization).filter_by(id=org_id).first()
        if organization is None:
            return not_found("Organization not found")

        try:
            require_transaction_capacity(organization)
        except QuotaExceededError as exc:
            return rejected(str(exc))

        product = lock_for_update(
            db.session.query(Product).filter_by(id=product_id, organization_id=org_id)
        ).first()
        if product is None:
            db.session.rollback()
            return not_found("Product not found")

        try:
            price = resolve_unit_price(product, transaction_type, unit_price)
            new_stock = compute_new_stock(product, transaction_type, quantity)
        except ValidationError as exc:
            db.session.rollback()  # release the row lock
            logger.info("Rejected %s of %s for product %s: %s", transaction_type, quantity, product_id, exc)
            return rejected(str(exc))

        entry = append_ledger_entry(
            org_id=org_id,
            product_id=product.id,
            transaction_type=transaction_type,
            quantity=quantity,
            unit_price=price,
            user_id=user_id,
        )
        product.stock_quantity = new_stock
        db.session.flush()
        # Serialized before commit: commit expires both rows
        result = {"transaction": entry.to_dict(), "product": product.to_dict()}
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to record %s for product %s", transaction_type, product_id)
        return infra_failure("Could not record the transaction")

    logger.info(
        "Recorded %s of %s %s for product %s (stock now %s)",
        transaction_type, quantity, result["product"]["unit_label"], product_id, new_stock,
    )
    return success(result)


def list_transactions(org_id: int, limit: int | None = None, product_id: int | None = None) -> list[dict]:
    """
    Tenant-scoped ledger listing, newest first.

    Entries of deleted products are kept with product_name=None.
    """
    query = (
        db.session.query(StockTransaction, Product.name)
        .outerjoin(Product, Product.id == StockTransaction.product_id)
        .filter(StockTransaction.organization_id == org_id)
        .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
    )
    if product_id is not None:
        query = query.filter(StockTransaction.product_id == product_id)
    if limit is not None:
        query = query.limit(limit)

    items = []
    for entry, product_name in query.all():
        row = entry.to_dict()
        row["product_name"] = product_name
        items.append(row)
    return items


def ledger_quantities(org_id: int) -> dict[int, int]:
    """Net quantity per product_id derived from the ledger alone."""
    signed = case(
        (StockTransaction.transaction_type == PURCHASE, StockTransaction.quantity),
        else_=-StockTransaction.quantity,
    )
    rows = (
        db.session.query(StockTransaction.product_id, func.coalesce(func.sum(signed), 0))
        .filter(StockTransaction.organization_id == org_id)
        .group_by(StockTransaction.product_id)
        .all()
    )
    return {product_id: int(qty or 0) for product_id, qty in rows}


def reconcile_stock(org_id: int) -> dict:
    """
    Compare each product's stored stock_quantity with its ledger-derived quantity.

    Read-only. Drift appears when a companion ledger write failed after the
    product was created, or when concurrent sessions raced on the counter.
    """
    derived = ledger_quantities(org_id)
    products = (
        db.session.query(Product)
        .filter_by(organization_id=org_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    rows = []
    for product in products:
        ledger_qty = derived.get(product.id, 0)
        rows.append(
            {
                "product_id": product.id,
                "name": product.name,
                "stock_quantity": product.stock_quantity,
                "ledger_quantity": ledger_qty,
                "drift": product.stock_quantity - ledger_qty,
            }
        )

    inconsistent = [r for r in rows if r["drift"] != 0]
    if inconsistent:
        logger.warning("Stock drift detected for %s product(s) in organization %s", len(inconsistent), org_id)

    return {
        "organization_id": org_id,
        "products": rows,
        "inconsistent_count": len(inconsistent),
    }
