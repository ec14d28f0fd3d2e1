import os
import time
from typing import Optional

import jwt


JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ISSUER = os.getenv("JWT_ISSUER", "holyverso")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "holyverso")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_LEEWAY_SEC = int(os.getenv("JWT_LEEWAY_SEC", "30"))
JWT_ACCESS_TTL_SEC = int(os.getenv("JWT_ACCESS_TTL_SEC", "3600"))

ACCESS_TOKEN_TYPE = "access"


def issue_access_token(user_id: str, ttl_sec: int = JWT_ACCESS_TTL_SEC) -> str:
    """Sign an access token for ``user_id``.

    Production tokens come from the account service; this is used by local
    tooling and tests that share the same secret.
    """
    now = int(time.time())
    claims = {
        "sub": user_id,
        "typ": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + ttl_sec,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def user_id_from_token(token: Optional[str]) -> Optional[str]:
    """Subject of a valid access token, or None for anything else."""
    if not token:
        return None
    try:
        claims = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            audience=JWT_AUDIENCE,
            leeway=JWT_LEEWAY_SEC,
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError:
        return None
    if claims.get("typ") != ACCESS_TOKEN_TYPE:
        return None
    return claims["sub"] or None
