from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from drive_api.core.config import settings


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a bearer token whose `sub` claim is the owner id.
    Session issuance belongs to the identity provider; this exists for
    trusted issuers sharing SECRET_KEY and for tests.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode = {"sub": str(subject), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """
    Return the owner id carried by the token, or None if the token is
    invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    sub = payload.get("sub")
    if not sub:
        return None
    return str(sub)
