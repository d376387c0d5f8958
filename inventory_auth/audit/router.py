"""Read-only audit log endpoint for administrators."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from inventory_auth.api.contracts import ApiErrorResponse, AuditLogEntryResponse
from inventory_auth.audit.repository import AuditRepository
from inventory_auth.auth.authorization import require_roles
from inventory_auth.auth.models import Role
from inventory_auth.auth.repository import AuthRepository

MAX_AUDIT_PAGE = 200


def create_audit_router(audit_repo: AuditRepository, auth_repo: AuthRepository) -> APIRouter:
    router = APIRouter(tags=["audit"])

    @router.get(
        "/audit-logs",
        response_model=list[AuditLogEntryResponse],
        dependencies=[Depends(require_roles(Role.ADMIN))],
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )
    def list_audit_logs(
        target_type: str = Query(default="", alias="targetType"),
        actor_id: str = Query(default="", alias="actorId"),
        limit: int = Query(default=50, ge=1, le=MAX_AUDIT_PAGE, alias="limit"),
    ) -> list[AuditLogEntryResponse]:
        """Newest audit entries first, each with its actor resolved."""
        entries = audit_repo.list_entries(
            target_type=target_type.strip(), actor_id=actor_id.strip(), limit=limit
        )
        actor_ids = {entry.actor_id for entry in entries if entry.actor_id}
        actors = auth_repo.get_accounts_by_ids(sorted(actor_ids))
        return [
            AuditLogEntryResponse.from_entry(
                entry, actors.get(entry.actor_id) if entry.actor_id else None
            )
            for entry in entries
        ]

    return router
