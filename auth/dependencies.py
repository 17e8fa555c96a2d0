"""
Authentication dependencies for FastAPI.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status, Security
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database.models import Account, AccountRole, AccountStatus
from auth.security import security_optional, decode_access_token
import config


def get_db_session():
    """Get database session (one per request, shared by every dependency)."""
    if not config.db:
        raise HTTPException(status_code=503, detail="Database not initialized")
    with config.db.get_session() as session:
        yield session


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the browser session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(config.ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security_optional),
    db: Session = Depends(get_db_session)
) -> Account:
    """
    Get current authenticated account from the JWT access token.

    Raises:
        HTTPException: 401 if the token is missing or invalid,
            403 if the account is not active
    """
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")

    account = db.query(Account).filter(Account.id == account_id).first()
    if account is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if account.status != AccountStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="account_not_active")

    return account


def require_role(allowed_roles: list[str]):
    """
    Dependency factory for role-based access control.

    Args:
        allowed_roles: List of allowed role values

    Returns:
        Dependency function
    """
    async def role_checker(
        current_user: Account = Depends(get_current_user)
    ) -> Account:
        if current_user.role.value not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(allowed_roles)}"
            )
        return current_user

    return role_checker


ADMIN_ROLES = [AccountRole.ADMIN.value, AccountRole.SUPER_ADMIN.value]
STAFF_ROLES = [AccountRole.STAFF.value] + ADMIN_ROLES

require_super_admin = require_role([AccountRole.SUPER_ADMIN.value])
require_admin = require_role(ADMIN_ROLES)
require_staff_or_above = require_role(STAFF_ROLES)
require_reservist = require_role([AccountRole.RESERVIST.value])
require_any_role = require_role([r.value for r in AccountRole])
