"""Password hashing, signed session tokens and free-text cleaning."""
import uuid
from datetime import datetime, timedelta, timezone

import bleach
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

TOKEN_LIFETIMES = {
    "access": lambda: settings.access_token_expire_minutes,
    "refresh": lambda: settings.refresh_token_expire_minutes,
}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_token(user_id: int, token_type: str) -> str:
    """Sign a token for ``user_id``. Every token carries its own ``jti`` so it can be revoked."""
    lifetime = timedelta(minutes=TOKEN_LIFETIMES[token_type]())
    claims = {
        "sub": str(user_id),
        "type": token_type,
        "exp": datetime.now(timezone.utc) + lifetime,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def read_token(token: str, token_type: str) -> tuple[int, dict]:
    """Verify ``token`` and return ``(user_id, claims)``.

    Raises ValueError for a bad signature, an expired token, the wrong
    token type or a missing or non-numeric subject.
    """
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if claims.get("type") != token_type:
        raise ValueError(f"Expected a {token_type} token")
    subject = claims.get("sub")
    if subject is None or not str(subject).isdigit():
        raise ValueError("Token has no usable subject")
    return int(subject), claims


def sanitize_input(text: str) -> str:
    """Strip any markup from user supplied text."""
    if not text:
        return text
    return bleach.clean(text, tags=[], strip=True)
