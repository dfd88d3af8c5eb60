"""
Keycloak bearer-token verification.

The realm's signing keys are fetched once and cached; a token signed
with an unknown key id triggers a refetch, rate limited, so key rotation
does not need a restart.
"""
import logging
import threading
import time

import requests
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError

from diary_schedule.core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer()

_jwks_lock = threading.Lock()
_jwks_cache: dict | None = None
_jwks_fetched_at = 0.0


def fetch_jwks() -> dict:
    response = requests.get(settings.KEYCLOAK_JWKS_URL, timeout=5)
    response.raise_for_status()
    return response.json()


def _find_key(kid: str) -> dict | None:
    for key in (_jwks_cache or {}).get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def get_signing_key(kid: str) -> dict | None:
    """
    Find the JWK for `kid`.

    An unknown key id refreshes the cached key set, at most once per
    `JWKS_MIN_REFRESH_SECONDS`.
    """
    global _jwks_cache, _jwks_fetched_at
    with _jwks_lock:
        key = _find_key(kid)
        if key is not None:
            return key

        now = time.monotonic()
        if _jwks_cache is not None and now - _jwks_fetched_at < settings.JWKS_MIN_REFRESH_SECONDS:
            return None

        _jwks_cache = fetch_jwks()
        _jwks_fetched_at = now
        return _find_key(kid)


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    token = credentials.credentials
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        jwk = get_signing_key(kid) if kid else None
        if not jwk:
            raise HTTPException(status_code=401, detail="Invalid token: unknown signing key")

        return jwt.decode(
            token,
            jwk,
            algorithms=[jwk.get("alg", "RS256")],
            issuer=settings.KEYCLOAK_ISSUER,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")
    except requests.RequestException as e:
        logger.error("Could not load Keycloak signing keys: %s", e)
        raise HTTPException(status_code=503, detail="Authentication service unavailable")
