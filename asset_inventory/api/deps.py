from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated, Any, NoReturn

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from asset_inventory.domain.errors import (
    AuthError,
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    InventoryError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from asset_inventory.domain.permissions import Actor
from asset_inventory.infra.auth import decode_access_token
from asset_inventory.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/token")

_STATUS_BY_ERROR: tuple[tuple[type[InventoryError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (ValidationError, 422),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except (jwt.PyJWTError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    return claims


def get_current_actor(
    request: Request,
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
) -> Actor:
    user_id = claims.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    try:
        user = IdentityService().get_profile(user_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
        ) from exc
    # The stored role wins over the role baked into the token.
    request.state.claims = {**claims, "email": user.email, "role": user.role.value}
    return Actor(user_id=user.id, role=user.role, email=user.email)


def require_perm(permission: str) -> Callable[[Actor], Actor]:
    def _checker(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if not actor.can(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return actor

    return _checker


def raise_http_error(exc: InventoryError) -> NoReturn:
    if isinstance(exc, StorageError):
        logger.error("storage failure: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="The operation could not be completed. Please try again.",
        ) from exc
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    raise exc


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
