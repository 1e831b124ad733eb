# supagrid/session/jwt.py
# Self-contained helpers for issuing/verifying grid access tokens.

from __future__ import annotations
import os, time
from typing import Any, Dict, List, Tuple
import jwt  # PyJWT

# ---- Config (all defined here) ---------------------------------------------

APP_JWT_SECRET = os.environ.get("APP_JWT_SECRET")
if not APP_JWT_SECRET:
    # Fail fast so you don't get mysterious 500s later
    raise RuntimeError("APP_JWT_SECRET must be set")

ISS = os.getenv("APP_JWT_ISS", "http://localhost:8000")
AUD = os.getenv("APP_JWT_AUD", "supagrid")

ACCESS_TTL = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"))  # 15m

# ---- Internals -------------------------------------------------------------


def _now_epoch() -> int:
    return int(time.time())


# ---- Public API ------------------------------------------------------------


def issue_access_token(
    user: Dict[str, Any], roles: List[str], *, ttl: int | None = None
) -> Tuple[str, int]:
    """
    Returns: (access_token, access_exp_epoch)
    The token carries sub/email/roles; roles gate read vs write endpoints.
    """
    iat = _now_epoch()
    access_exp = iat + (ACCESS_TTL if ttl is None else ttl)

    payload = {
        "iss": ISS,
        "aud": AUD,
        "iat": iat,
        "exp": access_exp,
        "sub": user["sub"],
        "email": user.get("email"),
        "roles": roles,
        "typ": "access",
    }
    return jwt.encode(payload, APP_JWT_SECRET, algorithm="HS256"), access_exp


def verify_access(token: str) -> Dict[str, Any]:
    payload = jwt.decode(
        token,
        APP_JWT_SECRET,
        algorithms=["HS256"],
        audience=AUD,
        issuer=ISS,
        options={"require": ["exp", "iat", "aud", "iss"]},
    )
    if payload.get("typ") != "access":
        raise jwt.InvalidTokenError("wrong token type")
    return payload
