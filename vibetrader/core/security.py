"""Identity-provider tokens.

Only the subject matters here: a verified token turns a caller into a
"user" identity for quota purposes. Anything unverifiable is treated as
anonymous, never as an error.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from vibetrader.core.config import get_settings

ALGORITHM = "HS256"


def issue_identity_token(user_id: str, exp_minutes: int = None) -> str:
    """Sign a token for user_id (used by dev tooling and tests)."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=exp_minutes or settings.jwt_exp_minutes),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def verified_subject(token: str) -> Optional[str]:
    """Subject of a valid token, or None if it fails signature/expiry/audience checks."""
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError:
        return None
    subject = claims.get("sub") or claims.get("user_id")
    return str(subject) if subject else None
