# Overview: Flask API routes for auth operations; login, logout and the current user.

# backend/orderdesk/routes/auth.py
"""
Authentication API routes

Users are created by managers (/api/users) or the CLI; there is no
self-registration.
"""

from flask import Blueprint, current_app, g

from ..decorators import bearer_token, require_auth
from ..errors import UnauthorizedError, ValidationError
from ..responses import json_body, ok
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password (optionally org_code) and open a session.

    The plaintext token is returned once; send it as Authorization: Bearer.
    """
    data = json_body()
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        raise ValidationError("email and password required")

    user = auth_service.authenticate(email, password, org_code=data.get("org_code") or data.get("orgCode"))
    if not user:
        current_app.logger.warning("Failed login for %s", email)
        raise UnauthorizedError("Invalid credentials")

    session, token = session_service.create_session(user)
    return ok({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "user": user.to_dict(),
    }, message="Login successful")


@auth_bp.post("/logout")
@require_auth
def logout_route(ctx):
    session_service.revoke_session(bearer_token(), reason="User logout")
    return ok(None, message="Logged out")


@auth_bp.get("/me")
@require_auth
def me_route(ctx):
    return ok(g.current_user.to_dict())
