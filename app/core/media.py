"""
LiveKit room grants.

LiveKit access tokens are plain HS256 JWTs signed with the project's API
secret: ``iss`` is the API key, ``sub`` the participant identity and the
``video`` claim carries the room grant.
"""
from datetime import datetime, timedelta, timezone

from jose import jwt

from app.core.config import settings


def create_room_token(identity: str, name: str, room: str, *, can_publish: bool = True) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "iss": settings.livekit_api_key,
        "sub": identity,
        "name": name,
        "nbf": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.livekit_token_ttl_minutes)).timestamp()),
        "video": {
            "room": room,
            "roomJoin": True,
            "canPublish": can_publish,
            "canSubscribe": True,
            "canPublishData": True,
        },
    }
    return jwt.encode(claims, settings.livekit_api_secret, algorithm="HS256")


def decode_room_token(token: str) -> dict:
    return jwt.decode(
        token,
        settings.livekit_api_secret,
        algorithms=["HS256"],
        options={"verify_aud": False},
    )
