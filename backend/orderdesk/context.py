# Overview: Explicit caller context threaded through every service call.

from __future__ import annotations

from dataclasses import dataclass

from .models.auth import MANAGER_ROLES


@dataclass(frozen=True)
class TenantContext:
    """
    Resolved caller: the tenant every read and write is scoped to, plus the
    acting user when the call came from a staff session.

    Webhook calls carry org_id only (user_id and role are None).
    """
    org_id: int
    user_id: int | None = None
    role: str | None = None

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES
