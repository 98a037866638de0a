"""Bearer tokens identifying the acting user.

Accounts and credentials are managed by the campus identity provider; this
service only issues and checks the signed tokens that carry a user's email.
"""
from datetime import timedelta
from typing import Any, Dict, Optional
from jose import JWTError, jwt
from app.core.config import settings
from app.core.time import utc_now


def _registered_claims() -> Dict[str, Any]:
    claims: Dict[str, Any] = {}
    if settings.JWT_ISSUER:
        claims["iss"] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        claims["aud"] = settings.JWT_AUDIENCE
    return claims


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """Sign a token for ``subject`` (the user's email)."""
    lifetime = timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": subject, "exp": utc_now() + lifetime}
    claims.update(_registered_claims())
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def token_subject(token: str) -> Optional[str]:
    """Email carried by a valid token, or None when it fails verification."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            issuer=settings.JWT_ISSUER or None,
            options={
                "verify_aud": bool(settings.JWT_AUDIENCE),
                "verify_iss": bool(settings.JWT_ISSUER),
            },
        )
    except JWTError:
        return None
    return payload.get("sub") or None
