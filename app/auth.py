import logging
from typing import Optional

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import (
    ADMIN_EMAILS,
    AUTH_API_KEY,
    AUTH_TIMEOUT_SECONDS,
    AUTH_URL,
    REQUIRE_ACTIVE_SUBSCRIPTION,
)
from .models import Business, BusinessMember
from .shared.validators import validate_uuid

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

WRITE_ROLES = {"owner", "manager", "admin"}


class AuthUser(BaseModel):
    """Identity-platform user resolved from a bearer token"""

    id: str
    email: Optional[str] = None


async def fetch_auth_user(token: str) -> AuthUser:
    """Validate a bearer token against the hosted identity platform"""
    if not AUTH_URL:
        logger.error("❌ AUTH_URL not configured")
        raise HTTPException(status_code=500, detail="Identity platform not configured")

    headers = {"Authorization": f"Bearer {token}"}
    if AUTH_API_KEY:
        headers["apikey"] = AUTH_API_KEY

    try:
        async with httpx.AsyncClient(timeout=AUTH_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{AUTH_URL}/auth/v1/user", headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"❌ Identity platform request failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Unauthorized") from e

    if response.status_code != 200:
        logger.warning(f"⚠️ Token rejected by identity platform: HTTP {response.status_code}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = response.json()
    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        logger.error(f"❌ Identity response missing user id. Keys: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    return AuthUser(id=str(user_id), email=payload.get("email"))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """Get current user from the bearer token"""
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = await fetch_auth_user(credentials.credentials)
    logger.debug(f"✅ User authenticated: {user.id}")
    return user


def require_business_access(
    db: Session, user: AuthUser, business_id: str, write: bool = False
) -> str:
    """
    Check that the user owns or is a member of the business.

    Returns the caller's role. Raises 400 for a malformed id and 403 when the
    caller has no access, lacks a write role, or the subscription is inactive.
    """
    business_id = str(business_id or "").strip()
    if not validate_uuid(business_id):
        raise HTTPException(status_code=400, detail="businessId must be a valid UUID")

    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        logger.warning(f"⚠️ User {user.id} requested unknown business {business_id}")
        raise HTTPException(status_code=403, detail="Forbidden")

    role = None
    if business.owner_id == user.id:
        role = "owner"
    else:
        member = (
            db.query(BusinessMember)
            .filter(BusinessMember.business_id == business_id, BusinessMember.user_id == user.id)
            .first()
        )
        if member:
            role = (member.role or "").lower()

    if role is None:
        logger.warning(f"⚠️ User {user.id} is not a member of business {business_id}")
        raise HTTPException(status_code=403, detail="Forbidden")

    if write and role not in WRITE_ROLES:
        logger.warning(f"⚠️ User {user.id} has read-only role '{role}' on {business_id}")
        raise HTTPException(status_code=403, detail="Forbidden")

    if REQUIRE_ACTIVE_SUBSCRIPTION and not _is_admin(user):
        status = (business.subscription_status or "inactive").lower()
        if status != "active":
            raise HTTPException(status_code=403, detail="Subscription inactive")

    return role


def _is_admin(user: AuthUser) -> bool:
    return bool(user.email) and user.email.strip().lower() in ADMIN_EMAILS
