"""FastAPI dependencies for tenant resolution and database access."""

import logging
from typing import Generator

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.security import PLATFORM_ADMIN_ROLE, decode_tenant_token
from app.db.session import SessionLocal
from app.schemas.tenant import TenantContext

logger = logging.getLogger(__name__)


# Cookie and header names
COOKIE_NAME = "tenant_session"
AUTH_SCHEME = "bearer"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    Anything not committed by the handler is rolled back on close.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _read_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == AUTH_SCHEME and credentials.strip():
        return credentials.strip()
    return request.cookies.get(COOKIE_NAME)


def get_tenant_context(request: Request) -> TenantContext:
    """
    Resolve the tenant scope for the current request.

    The same handlers are mounted twice: under /api/... the tenant app
    comes from the token, under /api/apps/{app_id}/... it comes from
    the path and the token must not be bound to another app.

    Raises:
        HTTPException 401: Missing or invalid token
        HTTPException 403: Token bound to a different app
    """
    token = _read_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_tenant_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")

    try:
        client_id = int(payload["client_id"])
        user_id = int(payload["sub"]) if payload.get("sub") is not None else None
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    app_id = str(payload["app_id"])
    path_app_id = request.path_params.get("app_id")
    if path_app_id is not None and path_app_id != app_id:
        logger.warning(
            "Tenant token for app %s used on app %s (client %s)",
            app_id,
            path_app_id,
            client_id,
        )
        raise HTTPException(status_code=403, detail="App not accessible for this client")

    return TenantContext(
        client_id=client_id,
        app_id=app_id,
        user_id=user_id,
        apply_rls=payload.get("role") != PLATFORM_ADMIN_ROLE,
    )


def require_user(
    tenant: TenantContext = Depends(get_tenant_context),
) -> TenantContext:
    """
    Require a resolved end user on top of the tenant scope.

    Raises:
        HTTPException 401: Tenant token without a user
    """
    if not tenant.authenticated_user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return tenant
