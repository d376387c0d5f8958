"""FastAPI router for administrative user management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from inventory_auth.api.contracts import ApiErrorResponse, UserResponse
from inventory_auth.auth.authorization import current_identity, require_roles
from inventory_auth.auth.models import Role
from inventory_auth.users.models import CreateUserRequest, UpdateUserRequest
from inventory_auth.users.service import UserService


class UsersRouter:
    """Factory wrapper that builds the admin-only users router."""

    def __init__(self, service: UserService) -> None:
        self._service = service

    def build(self) -> APIRouter:
        router = APIRouter(
            prefix="/users",
            tags=["users"],
            dependencies=[Depends(require_roles(Role.ADMIN))],
            responses={
                401: {"model": ApiErrorResponse},
                403: {"model": ApiErrorResponse},
            },
        )

        def actor_id(request: Request) -> str | None:
            identity = current_identity(request)
            return identity.account_id if identity is not None else None

        @router.get("", response_model=list[UserResponse])
        def list_users(
            search: str = Query(default="", alias="search"),
            include_inactive: bool = Query(default=False, alias="includeInactive"),
        ) -> list[UserResponse]:
            """List accounts, active only unless asked otherwise."""
            accounts = self._service.list_users(
                search=search, include_inactive=include_inactive
            )
            return [UserResponse.from_account(account) for account in accounts]

        @router.get(
            "/{account_id}",
            response_model=UserResponse,
            responses={404: {"model": ApiErrorResponse}},
        )
        def get_user(account_id: str) -> UserResponse:
            return UserResponse.from_account(self._service.get_user(account_id))

        @router.post(
            "",
            status_code=201,
            response_model=UserResponse,
            responses={400: {"model": ApiErrorResponse}, 409: {"model": ApiErrorResponse}},
        )
        def create_user(req: CreateUserRequest, request: Request) -> UserResponse:
            """Create an account with the given role."""
            account = self._service.create_user(actor_id(request), req)
            return UserResponse.from_account(account)

        @router.put(
            "/{account_id}",
            response_model=UserResponse,
            responses={
                400: {"model": ApiErrorResponse},
                404: {"model": ApiErrorResponse},
                409: {"model": ApiErrorResponse},
            },
        )
        def update_user(
            account_id: str, req: UpdateUserRequest, request: Request
        ) -> UserResponse:
            """Apply a partial update; deactivation also ends the account's sessions."""
            account = self._service.update_user(actor_id(request), account_id, req)
            return UserResponse.from_account(account)

        @router.delete(
            "/{account_id}",
            status_code=204,
            response_class=Response,
            responses={400: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
        )
        def delete_user(account_id: str, request: Request) -> Response:
            self._service.delete_user(actor_id(request), account_id)
            return Response(status_code=204)

        return router


def create_users_router(service: UserService) -> APIRouter:
    return UsersRouter(service).build()
