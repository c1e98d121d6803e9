import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Request, WebSocket
from jose import ExpiredSignatureError, JWTError, jwt

from .settings import settings

ACCESS = "access"
REFRESH = "refresh"


def create_token(user_id: uuid.UUID, token_type: str) -> str:
    if token_type == ACCESS:
        lifetime = timedelta(minutes=settings.ACCESS_EXPIRE_MINUTES)
    else:
        lifetime = timedelta(days=settings.REFRESH_EXPIRE_DAYS)
    return jwt.encode(
        {
            "sub": str(user_id),
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "exp": datetime.now(timezone.utc) + lifetime,
        },
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def decode_token(token: str, expected_type: str = ACCESS) -> uuid.UUID:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except ExpiredSignatureError:
        raise ValueError("Token expired")
    except JWTError:
        raise ValueError("Invalid token")

    if payload.get("type") != expected_type:
        raise ValueError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise ValueError("Token missing user ID")

    try:
        return uuid.UUID(user_id)
    except ValueError:
        raise ValueError("Invalid user ID format in token")


def extract_token(connection: Request | WebSocket) -> str | None:
    auth = connection.headers.get("Authorization")
    if auth and auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token

    if isinstance(connection, WebSocket):
        token = connection.query_params.get("token")
        if token:
            return token

    return connection.cookies.get("access_token")
