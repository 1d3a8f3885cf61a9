# Overview: Flask API routes for user management; managers only.

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..errors import ValidationError
from ..models.auth import MANAGER_ROLES
from ..responses import json_body, ok
from ..services import user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_roles(*MANAGER_ROLES)
def list_users_route(ctx):
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    users = user_service.list_users(ctx, include_inactive=include_inactive)
    return ok([u.to_dict() for u in users])


@users_bp.get("/<int:user_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def get_user_route(ctx, user_id: int):
    return ok(user_service.get_user(ctx, user_id).to_dict())


@users_bp.post("")
@require_auth
@require_roles(*MANAGER_ROLES)
def create_user_route(ctx):
    data = json_body()
    user = user_service.create_user(
        ctx,
        email=data.get("email"),
        name=data.get("name"),
        password=data.get("password"),
        role=data.get("role"),
    )
    return ok(user.to_dict(), status=201, message="User created")


@users_bp.patch("/<int:user_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def update_user_route(ctx, user_id: int):
    data = json_body()
    is_active = data.get("is_active")
    if is_active is not None and not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")
    user = user_service.update_user(
        ctx,
        user_id,
        name=data.get("name"),
        role=data.get("role"),
        password=data.get("password"),
        is_active=is_active,
    )
    return ok(user.to_dict(), message="User updated")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_roles(*MANAGER_ROLES)
def deactivate_user_route(ctx, user_id: int):
    user = user_service.deactivate_user(ctx, user_id)
    return ok(user.to_dict(), message="User deactivated")
