from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, status

from servicedesk.api.errors import http_error
from servicedesk.api.schema import CamelModel
from servicedesk.core.errors import TicketServiceError
from servicedesk.dependencies.auth import AdminGuard
from servicedesk.dependencies.tickets import UserServiceDep
from servicedesk.users.models import User, UserRole

router = APIRouter(prefix="/api", tags=["users"])


class UserModel(CamelModel):
    id: str | None = None
    email: str
    name: str | None = None
    department: str | None = None
    role: str
    created_at: datetime | None = None

    @classmethod
    def from_entity(cls, user: User) -> "UserModel":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            department=user.department,
            role=user.role.value,
            created_at=user.created_at,
        )


class CurrentUserModel(CamelModel):
    user: UserModel


class UserListModel(CamelModel):
    users: list[UserModel]


class RoleUpdateRequest(CamelModel):
    email: str | None = None
    role: str | None = None
    name: str | None = None
    department: str | None = None


class RoleUpdatedModel(CamelModel):
    ok: bool = True
    user: UserModel


@router.get("/me", response_model=CurrentUserModel, summary="Resolve the caller's role")
async def get_me(service: UserServiceDep, email: str | None = None) -> CurrentUserModel:
    email = (email or "").strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email is required")
    try:
        user = await service.get_by_email(email)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    if user is None:
        # Unknown callers are treated as requesters until they submit a ticket.
        return CurrentUserModel(user=UserModel(id=None, email=email, role=UserRole.REQUESTER.value))
    return CurrentUserModel(user=UserModel.from_entity(user))


@router.get("/admin/users", response_model=UserListModel, dependencies=[AdminGuard])
async def search_users(service: UserServiceDep, query: str | None = None) -> UserListModel:
    try:
        users = await service.search(query)
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return UserListModel(users=[UserModel.from_entity(user) for user in users])


@router.patch("/admin/users/role", response_model=RoleUpdatedModel, dependencies=[AdminGuard])
async def update_user_role(payload: RoleUpdateRequest, service: UserServiceDep) -> RoleUpdatedModel:
    try:
        user = await service.upsert_role(
            payload.email or "",
            payload.role or "",
            name=payload.name,
            department=payload.department,
        )
    except TicketServiceError as exc:
        raise http_error(exc) from exc
    return RoleUpdatedModel(user=UserModel.from_entity(user))
