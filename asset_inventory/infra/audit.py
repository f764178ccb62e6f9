from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from asset_inventory.domain.models import AuditLog, now_utc
from asset_inventory.infra.db import get_engine

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
UNAUDITED_PATHS = frozenset({"/healthz", "/readyz"})
_CONTEXT_KEY = "audit_context"


def record_audit(entry: AuditLog) -> None:
    with Session(get_engine()) as session:
        session.add(entry)
        session.commit()


def audit_outcome(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in (401, 403, 404):
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "success"


def _merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        current = merged.get(key)
        merged[key] = _merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def _context(request: Request) -> dict[str, Any]:
    context = getattr(request.state, _CONTEXT_KEY, None)
    return dict(context) if isinstance(context, dict) else {}


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    """Attach a readable action/resource (and extra detail) to the audit row of this request."""
    context = _context(request)
    if action is not None:
        context["action"] = action
    if resource is not None:
        context["resource"] = resource
    if detail:
        context["detail"] = _merge(context.get("detail", {}), detail)
    setattr(request.state, _CONTEXT_KEY, context)


def _build_entry(request: Request, response: Response) -> AuditLog:
    context = _context(request)
    claims = getattr(request.state, "claims", None) or {}
    method = request.method
    path = request.url.path
    action = context.get("action") or f"{method}:{path}"
    resource = context.get("resource") or path
    route = request.scope.get("route")

    detail: dict[str, Any] = {
        "who": {"actor_id": claims.get("sub"), "email": claims.get("email"), "role": claims.get("role")},
        "when": {"request_ts": now_utc().isoformat()},
        "where": {
            "path": path,
            "route": getattr(route, "path", path),
            "client_ip": request.client.host if request.client is not None else None,
        },
        "what": {"action": action, "resource": resource, "method": method},
        "result": {"status_code": response.status_code, "outcome": audit_outcome(response.status_code)},
    }
    return AuditLog(
        actor_id=claims.get("sub"),
        action=action,
        resource=resource,
        method=method,
        status_code=response.status_code,
        detail=_merge(detail, context.get("detail", {})),
    )


class AuditMiddleware(BaseHTTPMiddleware):
    """Writes one audit row per mutating request once the response is known."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if request.method not in WRITE_METHODS or request.url.path in UNAUDITED_PATHS:
            return response
        entry = _build_entry(request, response)
        try:
            record_audit(entry)
        except SQLAlchemyError:
            logger.exception("audit log write failed", extra={"status_code": response.status_code})
        return response
