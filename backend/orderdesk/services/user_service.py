# Overview: Tenant-scoped user management (list, create, update, deactivate).

from __future__ import annotations

from flask import current_app

from ..context import TenantContext
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_OWNER, VALID_ROLES
from . import auth_service, session_service


def list_users(ctx: TenantContext, include_inactive: bool = False) -> list[User]:
    query = db.session.query(User).filter_by(org_id=ctx.org_id)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name, User.id).all()


def get_user(ctx: TenantContext, user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id, org_id=ctx.org_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _check_role_assignment(ctx: TenantContext, role: str) -> None:
    # Only owners hand out the owner role
    if role == ROLE_OWNER and ctx.role != ROLE_OWNER:
        raise ForbiddenError("Only owners can assign the OWNER role")


def create_user(ctx: TenantContext, email: str, name: str, password: str, role: str | None = None) -> User:
    role = (role or "STAFF").strip().upper()
    _check_role_assignment(ctx, role)
    return auth_service.create_user(ctx.org_id, email=email, name=name, password=password, role=role)


def update_user(
    ctx: TenantContext,
    user_id: int,
    *,
    name: str | None = None,
    role: str | None = None,
    password: str | None = None,
    is_active: bool | None = None,
) -> User:
    """
    Partial update. Changing the password or deactivating the user revokes
    every open session of that user.
    """
    user = get_user(ctx, user_id)
    revoke_reason = None

    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("name cannot be blank")
        user.name = name

    if role is not None:
        role = role.strip().upper()
        if role not in VALID_ROLES:
            raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}")
        _check_role_assignment(ctx, role)
        if user.role == ROLE_OWNER and role != ROLE_OWNER:
            _check_role_assignment(ctx, ROLE_OWNER)
        user.role = role

    if password is not None:
        user.password_hash = auth_service.hash_password(password)
        revoke_reason = "Password changed"

    if is_active is not None:
        if not is_active and user.id == ctx.user_id:
            raise ValidationError("You cannot deactivate your own account")
        user.is_active = is_active
        if not is_active:
            revoke_reason = "User account deactivated"

    db.session.commit()

    if revoke_reason:
        session_service.revoke_all_user_sessions(user.id, reason=revoke_reason)

    current_app.logger.info("User %s updated (org=%s)", user.id, ctx.org_id)
    return user


def deactivate_user(ctx: TenantContext, user_id: int) -> User:
    return update_user(ctx, user_id, is_active=False)
