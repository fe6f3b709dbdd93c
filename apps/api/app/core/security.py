"""Security utilities for signed tenant tokens."""

from datetime import datetime, timedelta, timezone

import jwt

from app.core.config import settings


# Role that switches off row-level tenant isolation (trusted operators only)
PLATFORM_ADMIN_ROLE = "platform_admin"


# =============================================================================
# Tenant Token (JWT in header or cookie)
# =============================================================================

def create_tenant_token(
    client_id: int,
    app_id: str,
    user_id: int | None = None,
    role: str = "member",
    expires_hours: int | None = None,
) -> str:
    """
    Create signed tenant JWT.

    Always signs with current secret (JWT_SECRET).
    Token carries the tenant pair, the optional end-user id and a role.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "client_id": client_id,
        "app_id": app_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=expires_hours or settings.JWT_EXPIRES_HOURS),
    }
    if user_id is not None:
        payload["sub"] = str(user_id)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_tenant_token(token: str) -> dict:
    """
    Decode and verify tenant JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=["HS256"],
                options={"require": ["exp", "client_id", "app_id"]},
            )
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore
