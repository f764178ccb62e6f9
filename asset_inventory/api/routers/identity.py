from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from asset_inventory.api.deps import CurrentActor, raise_http_error, require_perm
from asset_inventory.domain.errors import InventoryError
from asset_inventory.domain.models import (
    BootstrapAdminRequest,
    LoginRequest,
    SignupRequest,
    TokenResponse,
    User,
    UserRead,
    UserRoleUpdate,
)
from asset_inventory.domain.permissions import PERM_IDENTITY_ADMIN, PERM_PROFILE_READ
from asset_inventory.infra.audit import set_audit_context
from asset_inventory.infra.auth import create_access_token
from asset_inventory.services.identity_service import IdentityService

router = APIRouter()


def get_identity_service() -> IdentityService:
    return IdentityService()


Service = Annotated[IdentityService, Depends(get_identity_service)]


def _token_for(user: User) -> TokenResponse:
    token = create_access_token(user_id=user.id, email=user.email, role=user.role.value)
    return TokenResponse(access_token=token, role=user.role)


@router.post("/signup", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, service: Service) -> UserRead:
    try:
        user = service.signup(payload)
        return UserRead.model_validate(user)
    except InventoryError as exc:
        raise_http_error(exc)


@router.post("/bootstrap-admin", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, service: Service) -> UserRead:
    try:
        user = service.bootstrap_admin(payload)
        return UserRead.model_validate(user)
    except InventoryError as exc:
        raise_http_error(exc)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, service: Service) -> TokenResponse:
    set_audit_context(request, action="identity.login", detail={"what": {"email": payload.email.strip().lower()}})
    try:
        user = service.login(payload.email, payload.password)
    except InventoryError as exc:
        raise_http_error(exc)
    return _token_for(user)


@router.post("/token", response_model=TokenResponse)
def token(form: Annotated[OAuth2PasswordRequestForm, Depends()], service: Service) -> TokenResponse:
    try:
        user = service.login(form.username, form.password)
    except InventoryError as exc:
        raise_http_error(exc)
    return _token_for(user)


@router.get(
    "/me",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_PROFILE_READ))],
)
def me(actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_profile(actor.user_id))
    except InventoryError as exc:
        raise_http_error(exc)


@router.get(
    "/users",
    response_model=list[UserRead],
    dependencies=[Depends(require_perm(PERM_IDENTITY_ADMIN))],
)
def list_users(actor: CurrentActor, service: Service) -> list[UserRead]:
    try:
        return [UserRead.model_validate(item) for item in service.list_users(actor)]
    except InventoryError as exc:
        raise_http_error(exc)


@router.patch(
    "/users/{user_id}/role",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_IDENTITY_ADMIN))],
)
def update_user_role(
    user_id: str,
    payload: UserRoleUpdate,
    request: Request,
    actor: CurrentActor,
    service: Service,
) -> UserRead:
    set_audit_context(
        request,
        action="identity.user.role_update",
        resource=f"users/{user_id}",
        detail={"what": {"role": payload.role.value}},
    )
    try:
        user = service.update_role(actor, user_id, payload.role)
        return UserRead.model_validate(user)
    except InventoryError as exc:
        raise_http_error(exc)


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_IDENTITY_ADMIN))],
)
def delete_user(user_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_user(actor, user_id)
    except InventoryError as exc:
        raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
