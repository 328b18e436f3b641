from datetime import UTC, datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from config import ApplicationConfig
from src.app.services.request_context import Identity


def generate_jwt(
    user_id: str,
    role: str,
    email: Optional[str] = None,
    expires_delta: timedelta = timedelta(minutes=15),
) -> str:
    """
    Generate JWT access token

    Args:
        user_id: Subject identifier
        role: Caller role (owner, admin, member)
        email: Optional email claim
        expires_delta: Token lifetime (default 15 minutes)

    Returns:
        JWT token string (HS256)
    """
    now = datetime.now(UTC)
    payload = {
        "user_id": str(user_id),
        "role": role,
        "exp": now + expires_delta,
        "iat": now,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, ApplicationConfig.JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> Optional[dict]:
    """
    Verify and decode JWT token

    Args:
        token: JWT token string

    Returns:
        Decoded payload dict or None if invalid
    """
    try:
        payload = jwt.decode(
            token, ApplicationConfig.JWT_SECRET, algorithms=["HS256"]
        )
        return payload
    except JWTError:
        return None


def identity_from_claims(payload: Optional[dict]) -> Optional[Identity]:
    if not payload or not payload.get("user_id"):
        return None
    return Identity(
        user_id=str(payload["user_id"]),
        email=payload.get("email"),
        role=payload.get("role"),
    )


def identity_from_authorization(header: Optional[str]) -> Optional[Identity]:
    """Decode an "Authorization: Bearer <jwt>" header, None if absent or invalid"""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return identity_from_claims(verify_jwt(token.strip()))
