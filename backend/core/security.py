# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification / policy   (passlib scrypt)
2. Session tokens                              (secrets + HMAC-SHA256 lookup key)
3. The per-request Principal                   (resolved once, typed)
4. FastAPI dependency guards                   (get_current_principal, require_admin)
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from passlib.hash import scrypt as _scrypt

from core.config import settings
from database import get_db

# ---------------------------------------------------------------------------
# 1.  scrypt – password hashing
# ---------------------------------------------------------------------------
# passlib generates a fresh 16-byte salt per hash() call and embeds it in the
# result: "$scrypt$ln=16,r=8,p=1$<salt>$<digest>".  verify() reads the cost
# parameters back out of the stored string, so raising the cost later does
# not break existing accounts.  Comparison is constant-time.
# ---------------------------------------------------------------------------


class PasswordHasher:
    """Hashing policy injected into :class:`auth.service.AuthService`."""

    def __init__(self, rounds: int = 16, min_length: int = 8):
        self.min_length = min_length
        self._handler = _scrypt.using(rounds=rounds)
        self._dummy_hash: Optional[str] = None

    def hash(self, plain: str) -> str:
        return self._handler.hash(plain)

    def verify(self, plain: str, stored_hash: Optional[str]) -> bool:
        """
        Return True if *plain* matches *stored_hash*.  A missing or malformed
        hash never matches.
        """
        if not stored_hash:
            return False
        try:
            return self._handler.verify(plain, stored_hash)
        except ValueError:
            # not a scrypt hash string
            return False

    def burn(self, plain: str) -> None:
        """
        Spend the same time as a real verification.  Used when there is no
        account to verify against so response latency does not reveal
        whether an email is registered.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_hex(16))
        self._handler.verify(plain, self._dummy_hash)

    def check_policy(self, plain: Optional[str]) -> Optional[str]:
        """
        Return an error string if the password does not meet the minimum
        policy, or None if it is acceptable.
        """
        if not plain or len(plain) < self.min_length:
            return f"Password must be at least {self.min_length} characters long"
        return None


def build_password_hasher() -> PasswordHasher:
    return PasswordHasher(
        rounds=settings.password_hash_rounds,
        min_length=settings.password_min_length,
    )


# ---------------------------------------------------------------------------
# 2.  Session tokens
# ---------------------------------------------------------------------------


def new_session_token() -> str:
    """256 bits of randomness, URL-safe so it can travel in a cookie."""
    return secrets.token_urlsafe(32)


def session_id_for(token: str) -> str:
    """Lookup key stored in ``sessions.sid``: HMAC-SHA256 of the token under SECRET_KEY."""
    return hmac.new(
        settings.secret_key.encode("utf-8"), token.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def get_session_token(request: Request) -> Optional[str]:
    """
    Session token presented by the caller: the session cookie first, then an
    ``Authorization: Bearer`` header for non-browser clients.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


# ---------------------------------------------------------------------------
# 3.  Principal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Principal:
    """Identity and role attached to a request after session resolution."""

    id: str
    email: str
    is_admin: bool


# ---------------------------------------------------------------------------
# 4.  FastAPI dependency guards
# ---------------------------------------------------------------------------


def get_auth_service(request: Request):
    """Dependency: the AuthService built once in main.py."""
    return request.app.state.auth_service


def get_principal(
    request: Request,
    db=Depends(get_db),
    service=Depends(get_auth_service),
) -> Optional[Principal]:
    """
    Dependency: resolve the caller's session once per request and attach the
    result to ``request.state.principal``.  Returns None when anonymous.
    """
    if hasattr(request.state, "principal"):
        return request.state.principal
    principal = service.resolve_session(db, get_session_token(request))
    request.state.principal = principal
    return principal


def get_current_principal(
    principal: Optional[Principal] = Depends(get_principal),
    service=Depends(get_auth_service),
) -> Principal:
    """Dependency: raises AuthenticationRequired (401) when anonymous."""
    return service.require_role(principal)


def require_admin(
    principal: Optional[Principal] = Depends(get_principal),
    service=Depends(get_auth_service),
) -> Principal:
    """
    Dependency: 401 when anonymous, 403 when logged in without the admin
    flag.
    """
    return service.require_role(principal, "admin")


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    Returns the IP address as a string (supports both IPv4 and IPv6).
    """
    # Check X-Forwarded-For header (common when behind proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    # Fall back to direct client address
    if request.client:
        return request.client.host

    return "unknown"
