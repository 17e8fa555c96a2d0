"""
Authentication endpoints: login, self-registration, token refresh and logout.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from database.models import Account, AccountStatus
from auth.dependencies import get_current_user, get_db_session
from services.auth_service import AuthService
from services.audit_service import AuditService
from services.serializers import account_summary, account_to_dict
from core.exceptions import AuthenticationError
from core.logger import logger
import config


router = APIRouter(prefix="/api/auth", tags=["authentication"])


# Request Models
class LoginRequest(BaseModel):
    """Login request."""
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    """Reservist self-registration."""
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    phone: Optional[str] = None
    service_number: str
    company: Optional[str] = None
    rank: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    """Refresh token request."""
    refresh_token: str


def _token_payload(account: Account, access_token: str, refresh_token: str) -> dict:
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": account_summary(account),
    }


@router.post("/login")
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db_session)
):
    """
    Login with email + password.
    Only active accounts receive tokens; the session cookie is set for page navigation.
    """
    account = AuthService.authenticate(db, credentials.email, credentials.password)
    if not account:
        AuditService.log_from_request(
            db=db,
            request=request,
            action="login_failed",
            resource_type="account",
            details={"email": credentials.email}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if account.status != AccountStatus.ACTIVE:
        logger.warning(f"Login refused for {account.status.value} account: {account.email}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="account_not_active")

    access_token, refresh_token = AuthService.login(
        db,
        account,
        device_info=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None
    )

    AuditService.log_from_request(
        db=db,
        request=request,
        action="login",
        user_id=account.id,
        resource_type="account",
        resource_id=account.id
    )

    response.set_cookie(
        key=config.ACCESS_TOKEN_COOKIE,
        value=access_token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=config.ENVIRONMENT == "production",
    )
    return {"success": True, "data": _token_payload(account, access_token, refresh_token)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """
    Reservist self-registration.
    The account stays pending until an administrator approves it.
    """
    account = AuthService.register_reservist(
        db,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        service_number=body.service_number,
        company=body.company,
        rank=body.rank,
        middle_name=body.middle_name,
        phone=body.phone,
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="register",
        user_id=account.id,
        resource_type="account",
        resource_id=account.id
    )
    return {
        "success": True,
        "data": account_to_dict(account),
        "message": "Registration submitted. Your account is pending approval."
    }


@router.post("/refresh")
async def refresh_token(
    token_data: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """Refresh access token using refresh token."""
    try:
        account, access_token, new_refresh_token = AuthService.rotate_refresh_token(
            db,
            token_data.refresh_token,
            device_info=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None
        )
    except AuthenticationError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)

    return {"success": True, "data": _token_payload(account, access_token, new_refresh_token)}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    current_user: Account = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Logout: revoke every refresh token of the account and clear the session cookie."""
    revoked = AuthService.revoke_all_refresh_tokens(db, current_user.id)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="logout",
        user_id=current_user.id,
        resource_type="account",
        resource_id=current_user.id,
        details={"revoked_tokens": revoked}
    )
    response.delete_cookie(config.ACCESS_TOKEN_COOKIE)
    return {"success": True}


@router.get("/me")
async def get_current_user_info(
    current_user: Account = Depends(get_current_user)
):
    """Current account with profile and role details."""
    return {"success": True, "data": account_to_dict(current_user)}
