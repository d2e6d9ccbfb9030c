import logging

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.auth_safety import login_throttle
from app.core.rate_limit import limiter
from app.core.security import hash_password, issue_token, read_token, verify_password
from app.core.token_revocation import TokenBlocklist
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserOut,
)

router = APIRouter(tags=["auth"])
security_logger = logging.getLogger("huddle.security")


def _safe_client_ip(request: Request) -> str:
    if not request.client:
        return "unknown"
    return request.client.host or "unknown"


def _identifier(request: Request, email: str) -> str:
    return f"{_safe_client_ip(request)}:{email.lower().strip()}"


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        return None
    return auth_header[7:].strip() or None


def _issue_tokens(user: User) -> dict:
    return {
        "access_token": issue_token(user.id, "access"),
        "refresh_token": issue_token(user.id, "refresh"),
        "token_type": "bearer",
        "user": user,
    }


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(request: Request, payload: UserCreate, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User).where(or_(User.email == payload.email, User.username == payload.username))
    )
    existing = result.scalars().first()
    if existing:
        field = "Email" if existing.email == payload.email else "Username"
        raise HTTPException(status_code=409, detail=f"{field} already registered")

    user = User(
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    security_logger.info("auth_register ip=%s user_id=%s", _safe_client_ip(request), user.id)
    return _issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(request: Request, payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    ident = _identifier(request, payload.email)
    retry_after = login_throttle.retry_after(ident)
    if retry_after:
        security_logger.warning(
            "auth_login_locked ip=%s email=%s retry_after=%s",
            _safe_client_ip(request), payload.email, retry_after,
        )
        raise HTTPException(
            status_code=429,
            detail=f"Too many failed attempts. Try again in {retry_after} seconds.",
        )

    result = await db.execute(select(User).where(User.email == payload.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(payload.password, user.password_hash):
        locked_for = login_throttle.failed(ident)
        security_logger.warning(
            "auth_login_failed ip=%s email=%s locked=%s",
            _safe_client_ip(request), payload.email, bool(locked_for),
        )
        if locked_for:
            raise HTTPException(
                status_code=429,
                detail=f"Too many failed attempts. Try again in {locked_for} seconds.",
            )
        raise HTTPException(status_code=401, detail="Invalid credentials")

    login_throttle.succeeded(ident)
    security_logger.info("auth_login_success ip=%s user_id=%s", _safe_client_ip(request), user.id)
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit("20/minute")
async def refresh(request: Request, payload: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    blocklist = TokenBlocklist(db)
    try:
        user_id, decoded = read_token(payload.refresh_token, "refresh")
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if await blocklist.contains(decoded.get("jti")):
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    # Refresh tokens are single use
    await blocklist.purge_expired()
    await blocklist.revoke(decoded, user_id=user.id)
    await db.commit()
    return _issue_tokens(user)


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/logout")
@limiter.limit("30/minute")
async def logout(
    request: Request,
    payload: LogoutRequest,
    db: AsyncSession = Depends(get_db),
):
    blocklist = TokenBlocklist(db)
    await blocklist.purge_expired()

    revoked_for = None
    candidates = [(payload.refresh_token, "refresh"), (_extract_bearer_token(request), "access")]
    for raw, expected_type in candidates:
        if not raw:
            continue
        try:
            user_id, claims = read_token(raw, expected_type)
        except ValueError:
            continue
        await blocklist.revoke(claims, user_id=user_id)
        revoked_for = revoked_for or user_id

    await db.commit()
    if revoked_for is not None:
        security_logger.info("auth_logout ip=%s user_id=%s", _safe_client_ip(request), revoked_for)
    return {"message": "Logged out"}
