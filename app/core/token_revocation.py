"""Revoked-JWT bookkeeping backed by the auth_token_blocklist table."""
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.auth_token_blocklist import AuthTokenBlocklist


class TokenBlocklist:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def contains(self, jti: str | None) -> bool:
        if not jti:
            return False
        result = await self.db.execute(
            select(AuthTokenBlocklist.id).where(AuthTokenBlocklist.jti == jti)
        )
        return result.scalar_one_or_none() is not None

    async def revoke(self, claims: dict, user_id: int | None = None) -> bool:
        """Blocklist a decoded token. Returns False when it was already revoked."""
        jti = claims.get("jti")
        if not jti or await self.contains(jti):
            return False
        exp = claims.get("exp")
        self.db.add(
            AuthTokenBlocklist(
                jti=jti,
                token_type=claims.get("type", "access"),
                user_id=user_id,
                expires_at=datetime.utcfromtimestamp(float(exp)) if exp is not None else None,
            )
        )
        return True

    async def purge_expired(self) -> None:
        await self.db.execute(
            delete(AuthTokenBlocklist).where(AuthTokenBlocklist.expires_at < datetime.utcnow())
        )
