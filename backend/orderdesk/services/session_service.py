# Overview: Opaque bearer sessions with idle/absolute timeouts and tenant context.

"""
Session Token Management Service

WHY: Every authenticated request must resolve to one user in one
organization. Tokens are random, stored only as SHA-256 hashes and
time-limited.

MULTI-TENANT: org_id is copied from the user into the session at login and
never changes for the session lifetime.

SECURITY FEATURES:
- 32 bytes of entropy per token (secrets.token_hex)
- Absolute timeout (SESSION_TTL_HOURS) and idle timeout (SESSION_IDLE_HOURS)
- Sessions of deactivated users or organizations are revoked on sight
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..context import TenantContext
from ..errors import UnauthorizedError
from ..extensions import db
from ..models import Organization, SessionToken, User
from orderdesk.time_utils import as_naive_utc, older_than, utcnow


@dataclass
class SessionContext:
    """Validated session: the user, the session row and the tenant it is bound to."""
    user: User
    session: SessionToken
    org_id: int

    def to_tenant_context(self) -> TenantContext:
        return TenantContext(org_id=self.org_id, user_id=self.user.id, role=self.user.role)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 of the plaintext token.

    WHY not bcrypt: tokens are already high-entropy, a fast hash is enough.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_HOURS", 2))


def create_session(user: User) -> tuple[SessionToken, str]:
    """
    Create a session for an authenticated user.

    Returns (session_record, plaintext_token). Only the hash is stored.
    """
    org = db.session.get(Organization, user.org_id)
    if not org or not org.is_active:
        raise UnauthorizedError("Organization is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        org_id=user.org_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its SessionContext.

    Returns None when the token is unknown, revoked, expired or idle, or
    when the user or organization has been deactivated. Touches
    last_used_at on success.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    now = utcnow()

    if as_naive_utc(session.expires_at) < now:
        return None

    if older_than(session.last_used_at, _idle_timeout(), now):
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    org = session.organization
    if not org or not org.is_active:
        _revoke(session, "Organization deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, org_id=session.org_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session. Returns False when the token was not active."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.commit()
    return len(sessions)
