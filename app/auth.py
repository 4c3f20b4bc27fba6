from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

import jwt
from fastapi import Depends, HTTPException, Request

from config.settings import Settings, get_settings


logger = logging.getLogger("second_sight.auth")

SESSION_COOKIE = "__session"


class AuthError(Exception):
    pass


class AuthConfigError(Exception):
    """Raised when no Clerk verification key is configured."""


def extract_session_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(SESSION_COOKIE) or None


class ClerkTokenVerifier:
    """Verifies Clerk session JWTs and returns the user id (``sub``)."""

    def __init__(
        self,
        jwt_key: Optional[str] = None,
        jwks_url: Optional[str] = None,
        authorized_parties: Optional[List[str]] = None,
        leeway: float = 5.0,
    ) -> None:
        self.jwt_key = jwt_key
        self.authorized_parties = authorized_parties or []
        self.leeway = leeway
        self._jwks = jwt.PyJWKClient(jwks_url) if jwks_url and not jwt_key else None

    def _signing_key(self, token: str):
        if self.jwt_key:
            return self.jwt_key
        if self._jwks is not None:
            return self._jwks.get_signing_key_from_jwt(token).key
        raise AuthConfigError("Missing CLERK_JWT_KEY or CLERK_JWKS_URL")

    def verify(self, token: str) -> str:
        try:
            claims = jwt.decode(
                token,
                self._signing_key(token),
                algorithms=["RS256"],
                leeway=self.leeway,
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as exc:
            raise AuthError(str(exc)) from exc

        azp = claims.get("azp")
        if self.authorized_parties and azp not in self.authorized_parties:
            raise AuthError(f"Unauthorized party: {azp}")
        return claims["sub"]


@lru_cache(maxsize=1)
def _cached_verifier(jwt_key: Optional[str], jwks_url: Optional[str], parties: tuple) -> ClerkTokenVerifier:
    return ClerkTokenVerifier(jwt_key=jwt_key, jwks_url=jwks_url, authorized_parties=list(parties))


def get_verifier(settings: Settings = Depends(get_settings)) -> ClerkTokenVerifier:
    return _cached_verifier(
        settings.clerk_jwt_key,
        settings.clerk_jwks_url,
        tuple(settings.clerk_authorized_parties),
    )


def require_user(request: Request, verifier: ClerkTokenVerifier = Depends(get_verifier)) -> str:
    token = extract_session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return verifier.verify(token)
    except AuthConfigError as exc:
        logger.error("Cannot verify session tokens: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))
    except AuthError as exc:
        logger.info("Rejected session token: %s", exc)
        raise HTTPException(status_code=401, detail="Unauthorized")
