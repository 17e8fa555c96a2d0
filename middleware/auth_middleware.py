"""
Route redirection middleware for browser (non-API) paths.
Sends signed-out visitors to the sign-in page and keeps each role inside its own dashboard.
The API itself is guarded by the FastAPI dependencies in auth/dependencies.py.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from database.models import Account, AccountStatus
from auth.security import decode_access_token
from core.logger import logger
import config

# Paths never redirected
PASSTHROUGH_PREFIXES: List[str] = [
    "/api/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/uploads/",
]

ROLE_HOMES: Dict[str, str] = {
    "super_admin": "/super-admin",
    "admin": "/admin",
    "staff": "/staff",
    "reservist": "/reservist",
}

# Shared pages that need a session but belong to no single role
SHARED_PROTECTED: List[str] = ["/profile", "/settings"]

AUTH_PAGES: List[str] = ["/signin", "/register", "/"]


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def _dashboard_owner(path: str) -> Optional[str]:
    """Role whose dashboard contains this path, if any."""
    for role, home in ROLE_HOMES.items():
        if _matches(path, home):
            return role
    return None


class RoleRouteMiddleware(BaseHTTPMiddleware):
    """
    Redirect browser navigation according to the caller's session.

    - protected paths without a valid token go to /signin?redirectedFrom=<path>
    - accounts that are not active go to /signin?message=account_not_active
    - another role's dashboard, /signin, /register and / go to the caller's home
    """

    def __init__(self, app, passthrough_prefixes: List[str] = None):
        super().__init__(app)
        self.passthrough_prefixes = passthrough_prefixes or PASSTHROUGH_PREFIXES

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if request.method == "OPTIONS" or any(path.startswith(p) for p in self.passthrough_prefixes):
            return await call_next(request)

        owner = _dashboard_owner(path)
        protected = owner is not None or any(_matches(path, p) for p in SHARED_PROTECTED)
        auth_page = path in AUTH_PAGES

        if not protected and not auth_page:
            return await call_next(request)

        session = self._resolve_session(request)

        if session is None:
            if protected:
                logger.info(f"Redirecting unauthenticated request for {path} to sign-in")
                return RedirectResponse(
                    url=f"/signin?redirectedFrom={quote(path, safe='/')}",
                    status_code=307
                )
            return await call_next(request)

        role, account_status = session
        if account_status != AccountStatus.ACTIVE.value:
            if path == "/signin":
                return await call_next(request)
            logger.warning(f"Inactive account ({account_status}) redirected from {path}")
            return RedirectResponse(url="/signin?message=account_not_active", status_code=307)

        home = ROLE_HOMES.get(role, "/signin")
        if auth_page:
            return RedirectResponse(url=home, status_code=307)

        if owner is not None and owner != role:
            logger.warning(f"Role {role} attempted to open {path}; redirecting to {home}")
            return RedirectResponse(url=home, status_code=307)

        return await call_next(request)

    def _resolve_session(self, request: Request) -> Optional[Tuple[str, str]]:
        """(role, status) of the account behind the bearer header or session cookie."""
        token = None
        authorization = request.headers.get("authorization")
        if authorization and authorization.lower().startswith("bearer "):
            token = authorization[7:].strip()
        if not token:
            token = request.cookies.get(config.ACCESS_TOKEN_COOKIE)
        if not token:
            return None

        payload = decode_access_token(token)
        if payload is None or payload.get("sub") is None:
            return None

        try:
            account_id = int(payload["sub"])
        except (TypeError, ValueError):
            return None

        if config.db is None:
            return None

        with config.db.get_session() as db:
            account = db.query(Account).filter(Account.id == account_id).first()
            if account is None:
                return None
            return account.role.value, account.status.value
