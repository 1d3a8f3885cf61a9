# Overview: Organization (tenant) bootstrap used by the CLI and test fixtures.

"""
Tenant Service

MULTI-TENANT: Organizations are the isolation boundary. They are created by
operators (CLI), never through the public API.
"""

from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Organization


def create_organization(name: str, code: str | None = None) -> Organization:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Organization name is required")
    code = code.strip().upper() if code else None

    if code and db.session.query(Organization.id).filter_by(code=code).first():
        raise ConflictError(f"Organization with code '{code}' already exists")

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    current_app.logger.info("Organization %s created (code=%s)", org.id, code)
    return org


def get_organization(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


def list_organizations() -> list[Organization]:
    return db.session.query(Organization).order_by(Organization.id).all()
