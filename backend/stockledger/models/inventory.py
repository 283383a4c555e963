from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data with a denormalized stock counter.

    MULTI-TENANT: Products are scoped to organizations via organization_id.

    stock_quantity is a running total kept in step with the ledger:
    it must equal SUM(purchase quantities) - SUM(sale quantities) over the
    product's StockTransaction rows and may never go negative.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_name", "organization_id", "name"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.String(64), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    unit_label = db.Column(db.String(64), nullable=False, default="unit")
    # NULL: product is only ever transacted in base units
    units_per_package = db.Column(db.Integer, nullable=True)

    # Whole currency units
    purchase_price_per_unit = db.Column(db.Integer, nullable=False)
    selling_price_per_unit = db.Column(db.Integer, nullable=False)

    alert_threshold = db.Column(db.Integer, nullable=False, default=10)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity} org_id={self.organization_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.alert_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "unit_label": self.unit_label,
            "units_per_package": self.units_per_package,
            "purchase_price_per_unit": self.purchase_price_per_unit,
            "selling_price_per_unit": self.selling_price_per_unit,
            "alert_threshold": self.alert_threshold,
            "stock_quantity": self.stock_quantity,
            "is_low_stock": self.is_low_stock,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Ledger entry: one purchase or sale of a product.

    Append-only: rows are never updated or deleted. product_id is a plain
    reference (no FK) so history survives product deletion.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stocktx_org_created", "organization_id", "created_at"),
        db.Index("ix_stocktx_org_product_type", "organization_id", "product_id", "transaction_type"),
        db.CheckConstraint("quantity > 0", name="ck_stocktx_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_stocktx_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    product_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.String(64), nullable=True)

    transaction_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return (
            f"<StockTransaction id={self.id} type={self.transaction_type} "
            f"product_id={self.product_id} qty={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "created_at": to_utc_z(self.created_at),
        }
