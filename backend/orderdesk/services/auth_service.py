# Overview: Service-layer operations for auth; password hashing and credential checks.

"""
Authentication Service

WHY: Every order, return and edit is attributed to a user. Passwords are
hashed with bcrypt and checked for strength when set.

MULTI-TENANT: Users belong to exactly one organization. Email uniqueness is
tenant-scoped, so the same email may log in to two organizations; the
optional org_code narrows the lookup.

SECURITY NOTES:
- bcrypt cost factor from BCRYPT_ROUNDS (default 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens are managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Organization, User
from ..models.auth import ROLE_STAFF, VALID_ROLES
from orderdesk.time_utils import utcnow


def validate_password_strength(password: str) -> None:
    """Raise ValidationError listing every unmet password rule."""
    errors = []
    if not password or len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    password = password or ""
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")
    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        errors.append("Password must contain at least one special character")
    if errors:
        raise ValidationError("Password does not meet requirements", errors)


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash the password."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def create_user(
    org_id: int,
    email: str,
    name: str,
    password: str,
    role: str = ROLE_STAFF,
) -> User:
    """
    Create a user in an active organization.

    Raises:
        NotFoundError: Organization missing
        ValidationError: Bad role, blank name/email or weak password
        ConflictError: Email already used in this organization
    """
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    if not org.is_active:
        raise ValidationError("Organization is not active")

    email = normalize_email(email)
    name = (name or "").strip()
    role = (role or ROLE_STAFF).strip().upper()

    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not name:
        raise ValidationError("name is required")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}")

    existing = db.session.query(User.id).filter_by(org_id=org_id, email=email).first()
    if existing:
        raise ConflictError("Email already exists in this organization")

    user = User(
        org_id=org_id,
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("User %s created (org=%s role=%s)", user.id, org_id, role)
    return user


def authenticate(email: str, password: str, org_code: str | None = None) -> User | None:
    """
    Check credentials. Returns the User on success, None otherwise.

    Only active users of active organizations can log in. Updates
    last_login_at on success.
    """
    query = (
        db.session.query(User)
        .join(Organization, Organization.id == User.org_id)
        .filter(
            User.email == normalize_email(email),
            User.is_active.is_(True),
            Organization.is_active.is_(True),
        )
    )
    if org_code:
        query = query.filter(Organization.code == org_code.strip().upper())

    for user in query.order_by(User.id).all():
        if verify_password(password or "", user.password_hash):
            user.last_login_at = utcnow()
            db.session.commit()
            return user

    return None
