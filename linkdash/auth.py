from __future__ import annotations

import secrets
import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

import jwt
from fastapi import Header, HTTPException, Request

from .utils import Clock, now_utc

ALGORITHM = "HS256"


class TokenError(Exception):
    pass


class TokenAuthority:
    """Trades the shared admin password for short-lived signed tokens.

    Revoked token ids are held in memory until their expiry passes.
    """

    def __init__(self, password: str, secret: str, ttl_minutes: int = 720, clock: Optional[Clock] = None) -> None:
        self.password = password
        self.secret = secret
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock or now_utc
        self._revoked: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def check_password(self, candidate: str) -> bool:
        return secrets.compare_digest(candidate.encode("utf-8"), self.password.encode("utf-8"))

    def issue(self) -> tuple[str, datetime]:
        now = self.clock()
        exp = now + self.ttl
        claims = {"sub": "admin", "jti": uuid.uuid4().hex, "iat": now, "exp": exp}
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM), exp

    def verify(self, token: str) -> dict:
        try:
            # expiry is checked against our clock below, not the wall clock
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "jti"]},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenError("invalid_token") from exc
        if claims["exp"] <= self.clock().timestamp():
            raise TokenError("token_expired")
        with self._lock:
            if claims["jti"] in self._revoked:
                raise TokenError("token_revoked")
        return claims

    def revoke(self, token: str) -> None:
        claims = self.verify(token)
        now = self.clock()
        with self._lock:
            self._revoked = {jti: exp for jti, exp in self._revoked.items() if exp > now}
            self._revoked[claims["jti"]] = datetime.fromtimestamp(claims["exp"], tz=now.tzinfo)


def bearer_token(authorization: Optional[str]) -> str:
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        raise HTTPException(status_code=401, detail="invalid_token")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise HTTPException(status_code=401, detail="invalid_token")
    return token


def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> str:
    token = bearer_token(authorization)
    try:
        request.app.state.auth.verify(token)
    except TokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return token
