"""
Bearer-token authentication for the HTTP API.

Tokens are HS256 JWTs carrying the user id (``sub``), the agency the user is
acting in, their role within it and a super admin flag. Each request turns
the token into an ``AgencyContext`` that the services check permissions
against.
"""

import datetime as dt
import logging
from typing import Any, Dict, Optional

import jwt as pyjwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from agency_billing.config.settings import AppSettings
from agency_billing.models.enums import AgencyRole
from agency_billing.services.access import AgencyContext

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_access_token(
    settings: AppSettings,
    user_id: str,
    agency_id: Optional[str] = None,
    role: AgencyRole = AgencyRole.MEMBER,
    super_admin: bool = False,
    expires_in: Optional[dt.timedelta] = None,
) -> str:
    """
    Issue a signed access token.

    Args:
        settings: Supplies the secret, algorithm and default lifetime
        user_id: Acting user, stored as ``sub``
        agency_id: Agency the token is scoped to (None for super admin only)
        role: Role within the agency
        super_admin: Grants form template management
        expires_in: Lifetime override (defaults to ``jwt_expiry_hours``)

    Returns:
        Encoded JWT string
    """
    now = dt.datetime.now(dt.timezone.utc)
    lifetime = expires_in or dt.timedelta(hours=settings.jwt_expiry_hours)
    payload = {
        "sub": user_id,
        "agency_id": agency_id,
        "role": AgencyRole(role).value,
        "super_admin": super_admin,
        "iat": now,
        "exp": now + lifetime,
    }
    return pyjwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: AppSettings, token: str) -> Dict[str, Any]:
    """Decode and verify a token, raising 401 on any failure."""
    try:
        return pyjwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def context_from_payload(payload: Dict[str, Any]) -> AgencyContext:
    try:
        role = AgencyRole(payload.get("role", AgencyRole.MEMBER.value))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    return AgencyContext(
        agency_id=payload.get("agency_id"),
        user_id=user_id,
        role=role,
        is_super_admin=bool(payload.get("super_admin", False)),
    )


def get_current_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AgencyContext:
    """FastAPI dependency: the caller's ``AgencyContext``."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    settings = request.app.state.services.settings
    payload = decode_access_token(settings, credentials.credentials)
    return context_from_payload(payload)
