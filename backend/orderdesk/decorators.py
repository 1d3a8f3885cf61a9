# Overview: Request decorators that resolve the caller and inject an explicit TenantContext.

"""
Authentication decorators.

Each decorator resolves who is calling and passes a TenantContext as the
first positional argument of the view, so services never read tenant
state from globals:

    @bp.post("/orders")
    @require_auth
    def create_order_route(ctx): ...

- require_auth: Authorization: Bearer <token> (staff sessions)
- require_roles(*roles): stacked under require_auth
- require_webhook_secret: x-webhook-secret header (external channels)
- require_callback_secret: optional x-callback-secret for payment callbacks

Failures raise UnauthorizedError/ForbiddenError; the handlers in
create_app() render them as the JSON error envelope.
"""

from functools import wraps

import hmac
from flask import current_app, g, request

from .errors import ForbiddenError, UnauthorizedError
from .services import session_service, webhook_service


WEBHOOK_SECRET_HEADER = "x-webhook-secret"
CALLBACK_SECRET_HEADER = "x-callback-secret"


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session and inject its TenantContext.

    Also sets g.current_user for response helpers that need the user row.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise UnauthorizedError("Authentication required")

        session_ctx = session_service.validate_session(token)
        if not session_ctx:
            raise UnauthorizedError("Invalid or expired token")

        g.current_user = session_ctx.user
        return f(session_ctx.to_tenant_context(), *args, **kwargs)

    return decorated_function


def require_roles(*roles: str):
    """Restrict a require_auth view to the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(ctx, *args, **kwargs):
            if ctx.role not in roles:
                raise ForbiddenError(
                    "Permission denied",
                    details={"required_roles": list(roles)},
                )
            return f(ctx, *args, **kwargs)

        return decorated_function

    return decorator


def require_webhook_secret(f):
    """Resolve the organization from the shared webhook secret."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = webhook_service.resolve_organization(request.headers.get(WEBHOOK_SECRET_HEADER))
        return f(ctx, *args, **kwargs)

    return decorated_function


def require_callback_secret(f):
    """Enforce PAYMENT_CALLBACK_SECRET when it is configured."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("PAYMENT_CALLBACK_SECRET")
        if expected:
            presented = request.headers.get(CALLBACK_SECRET_HEADER) or ""
            if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
                raise UnauthorizedError("Invalid callback secret")
        return f(*args, **kwargs)

    return decorated_function
