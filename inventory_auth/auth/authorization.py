"""Coarse role-based authorization."""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import Request

from inventory_auth.api.errors import ApiError, ApiErrorCode, unauthorized
from inventory_auth.auth.models import AuthIdentity, Role


def authorize_roles(identity: AuthIdentity | None, allowed: Iterable[Role]) -> AuthIdentity:
    """Return ``identity`` if its role is allowed; raise 401/403 otherwise."""
    if identity is None:
        raise unauthorized()
    if identity.role not in set(allowed):
        raise ApiError(
            status_code=403,
            error_code=ApiErrorCode.AUTH_FORBIDDEN,
            message="Forbidden",
        )
    return identity


def current_identity(request: Request) -> AuthIdentity | None:
    """Identity attached by the session middleware, if any."""
    identity = getattr(request.state, "identity", None)
    return identity if isinstance(identity, AuthIdentity) else None


def require_identity(request: Request) -> AuthIdentity:
    """FastAPI dependency for routes open to every signed-in role."""
    return authorize_roles(current_identity(request), Role)


def require_roles(*roles: Role) -> Callable[[Request], AuthIdentity]:
    """Build a FastAPI dependency admitting only ``roles``."""
    allowed = frozenset(roles)

    def dependency(request: Request) -> AuthIdentity:
        return authorize_roles(current_identity(request), allowed)

    dependency.__name__ = f"require_roles_{'_'.join(sorted(allowed)).lower()}"
    return dependency
