from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow

PLANS = ("free", "premium", "enterprise")
MEMBER_ROLES = ("owner", "admin", "member")


class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    All products and ledger entries belong to exactly one organization.
    Created by onboarding (CLI or external tooling); read-mostly here.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=True, unique=True, index=True)

    plan = db.Column(db.String(16), nullable=False, default="free")
    max_products = db.Column(db.Integer, nullable=False, default=50)
    max_transactions_per_month = db.Column(db.Integer, nullable=False, default=500)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r} plan={self.plan}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "plan": self.plan,
            "max_products": self.max_products,
            "max_transactions_per_month": self.max_transactions_per_month,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrganizationMember(db.Model):
    """
    Membership of an external user identity in an organization.

    A user belongs to at most one organization (unique user_id).
    """
    __tablename__ = "organization_members"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_organization_members_user"),
        db.Index("ix_organization_members_org", "organization_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    user_id = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="member")
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    organization = db.relationship("Organization", backref=db.backref("members", lazy=True))

    def __repr__(self) -> str:
        return f"<OrganizationMember user_id={self.user_id!r} org_id={self.organization_id} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": to_utc_z(self.joined_at),
        }
