import logging
from typing import Any, Dict, Iterable, List

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from ..session import verify_access

log = logging.getLogger("auth")

# Roles carried in the access token's "roles" claim.
READ_ROLE = "read:data"
WRITE_ROLE = "write:data"
ADMIN_ROLE = "admin"

_CHALLENGE = {"WWW-Authenticate": "Bearer"}

bearer = HTTPBearer(auto_error=False)


def require_auth(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> Dict[str, Any]:
    """Claims of a valid grid access token, or 401."""
    if creds is None or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing bearer token", headers=_CHALLENGE)
    try:
        return verify_access(creds.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired", headers=_CHALLENGE)
    except jwt.PyJWTError as e:
        log.warning("Rejected access token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token", headers=_CHALLENGE)


def _missing_roles(claims: Dict[str, Any], required: Iterable[str]) -> List[str]:
    have = claims.get("roles") or []
    if isinstance(have, str):
        have = have.split()
    return [r for r in required if r not in have]


def require_roles(*roles: str):
    """
    Dependency factory: the caller must hold every role listed.
    Responds 403 naming the roles that are missing.
    """
    def _dep(claims: Dict[str, Any] = Depends(require_auth)) -> Dict[str, Any]:
        missing = _missing_roles(claims, roles)
        if missing:
            log.warning("Denied %s: missing %s", claims.get("sub"), ", ".join(missing))
            raise HTTPException(
                status_code=403,
                detail=f"Forbidden: missing role {', '.join(missing)}",
            )
        return claims

    return _dep
