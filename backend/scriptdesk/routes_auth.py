"""
Authentication routes.

Admin logs in with the configured ADMIN_EMAIL / ADMIN_PASSWORD, contractors
with their own account once it is approved. Tokens live in memory.
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import Contractor, ContractorStatus
from .schemas import AdminLogin, ContractorLogin, ContractorRead, LoginResponse
from .settings import get_settings

router = APIRouter(prefix="/api/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)

SessionDep = Annotated[AsyncSession, Depends(get_session)]

ROLE_ADMIN = "admin"
ROLE_CONTRACTOR = "contractor"


@dataclass
class Principal:
    role: str
    expires_at: datetime
    contractor_id: int | None = None
    name: str | None = None

    @property
    def actor(self) -> str:
        if self.role == ROLE_CONTRACTOR:
            return f"judge:{self.contractor_id}"
        return self.name or ROLE_ADMIN


# Simple in-memory token store
_tokens: dict[str, Principal] = {}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def hash_password(password: str) -> str:
    """bcrypt hash with a per-password salt, stored as text."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, stored: str | None) -> bool:
    if not stored:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # malformed hash or over-long password
        return False


def _generate_token() -> str:
    return secrets.token_urlsafe(32)


def _cleanup_expired_tokens():
    now = _utcnow()
    expired = [t for t, p in _tokens.items() if p.expires_at < now]
    for t in expired:
        del _tokens[t]


def issue_token(role: str, contractor_id: int | None = None, name: str | None = None) -> tuple[str, Principal]:
    _cleanup_expired_tokens()
    token = _generate_token()
    principal = Principal(
        role=role,
        expires_at=_utcnow() + timedelta(hours=get_settings().token_expiry_hours),
        contractor_id=contractor_id,
        name=name,
    )
    _tokens[token] = principal
    return token, principal


def _dev_mode() -> bool:
    return not get_settings().admin_password


def authenticate_admin(email: str | None, password: str) -> bool:
    settings = get_settings()
    if not settings.admin_password:
        # no password configured: dev mode
        return True
    if settings.admin_email and (email or "").strip().lower() != settings.admin_email.strip().lower():
        return False
    return secrets.compare_digest(_digest(password), _digest(settings.admin_password))


@router.post("/login", response_model=LoginResponse)
async def login(request: AdminLogin):
    """Admin login; returns a bearer token valid for TOKEN_EXPIRY_HOURS."""
    if not authenticate_admin(request.email, request.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token, principal = issue_token(ROLE_ADMIN, name=request.email or ROLE_ADMIN)
    return LoginResponse(token=token, role=ROLE_ADMIN, expires_at=principal.expires_at.isoformat())


@router.post("/contractor/login", response_model=LoginResponse)
async def contractor_login(request: ContractorLogin, session: SessionDep):
    email = request.email.strip().lower()
    res = await session.execute(select(Contractor).where(func.lower(Contractor.email) == email))
    contractor = res.scalars().first()
    if not contractor or not verify_password(request.password, contractor.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if contractor.status == ContractorStatus.pending.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account is pending approval")
    if contractor.status != ContractorStatus.approved.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account has been declined")

    token, principal = issue_token(ROLE_CONTRACTOR, contractor_id=contractor.id, name=contractor.name)
    return LoginResponse(
        token=token,
        role=ROLE_CONTRACTOR,
        expires_at=principal.expires_at.isoformat(),
        contractor=ContractorRead.model_validate(contractor),
    )


@router.post("/logout")
async def logout(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Invalidate current token."""
    if credentials and credentials.credentials in _tokens:
        del _tokens[credentials.credentials]
    return {"status": "logged out"}


def _principal(credentials: Optional[HTTPAuthorizationCredentials]) -> Principal:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    _cleanup_expired_tokens()
    principal = _tokens.get(credentials.credentials)
    if principal is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return principal


@router.get("/me")
async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    principal = _principal(credentials)
    return {
        "authenticated": True,
        "role": principal.role,
        "contractor_id": principal.contractor_id,
        "name": principal.name,
        "expires_at": principal.expires_at.isoformat(),
    }


def require_admin(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Principal:
    """Dependency for admin-only routes; open in dev mode."""
    if _dev_mode() and not credentials:
        return Principal(role=ROLE_ADMIN, expires_at=_utcnow() + timedelta(hours=1), name="dev")
    principal = _principal(credentials)
    if principal.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal


async def require_contractor(
    session: SessionDep,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Contractor:
    """Dependency resolving the logged in, still approved contractor."""
    principal = _principal(credentials)
    if principal.role != ROLE_CONTRACTOR:
        raise HTTPException(status_code=403, detail="Contractor access required")
    contractor = await session.get(Contractor, principal.contractor_id)
    if not contractor:
        raise HTTPException(status_code=401, detail="Account no longer exists")
    if contractor.status != ContractorStatus.approved.value:
        raise HTTPException(status_code=403, detail="Your account is not approved")
    return contractor


AdminDep = Annotated[Principal, Depends(require_admin)]
ContractorDep = Annotated[Contractor, Depends(require_contractor)]
