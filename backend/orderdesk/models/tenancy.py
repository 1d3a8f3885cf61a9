from __future__ import annotations

from ..extensions import db
from orderdesk.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    Users, catalog, orders and returns all belong to exactly one organization.
    No data may cross organization boundaries.

    WEBHOOKS: External systems authenticate with a per-organization shared
    secret. Only its SHA-256 hash is stored (same scheme as session tokens),
    so a leaked database does not leak usable secrets.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    webhook_secret_hash = db.Column(db.String(64), nullable=True, unique=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "has_webhook_secret": self.webhook_secret_hash is not None,
            "created_at": to_utc_z(self.created_at),
        }
