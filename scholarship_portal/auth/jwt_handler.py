from datetime import datetime, timedelta, timezone

import jwt

from scholarship_portal.core import config

def create_access_token(claims: dict, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {**claims, "exp": issued_at + timedelta(minutes=expire_minutes), "iat": issued_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def verify_credential(token: str | None) -> str | None:
    """Return the email claim of a valid credential, or None."""
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        return None

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        return None
    return email
