"""
auth/sessions.py -- Signed, expiring session tokens carried in two cookies.

Security design decisions:
  Signing: python-jose HS256 (HMAC-SHA256 keyed with SECRET_KEY). The claims
       are {sub: user id, jti: random session id, iat, exp}.

  Two cookies: the compact JWS "header.payload.signature" is split at the
       last dot. "session" carries "header.payload", "session.sig" carries
       the signature. validate() glues them back together, so a client that
       edits either cookie (or swaps in another session's signature) fails
       the HMAC check.

  Verify-then-trust: jose checks the signature before it reads exp, so a
       forged payload with a far-future expiry is rejected as a bad signature,
       never accepted as "not yet expired".

  Expiry: 30 days from issuance by default. The cookie max_age/expires match
       the exp claim so browser and server drop the session together.

  Failures: every decode problem (missing cookie, malformed payload, bad
       signature, expired, missing claim) raises NotLoggedIn. Callers never
       need to distinguish them and the client gets one generic 403.

Layer rule: no imports from api/ or core/. fastapi/starlette request and
response objects are only touched by the cookie helpers at the bottom.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.exceptions import NotLoggedIn

logger = logging.getLogger("konfetka.auth.sessions")

SESSION_COOKIE = "session"
SIGNATURE_COOKIE = "session.sig"
DEFAULT_MAX_AGE = timedelta(days=30)

_ALGORITHM = "HS256"

_DECODE_OPTIONS = {
    "require_exp": True,
    "require_iat": True,
    "require_sub": True,
    "require_jti": True,
}


@dataclass(frozen=True)
class SessionToken:
    """The client-held half of a session: cookie values as sent over the wire."""

    payload: str
    signature: str


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    user_id: str
    session_id: str
    issued_at: datetime
    expires_at: datetime


class SessionCodec:
    """Mints and validates session tokens with a server-held secret.

    Stateless: nothing is stored at mint time. Revocation lives in
    AuthService, which checks the session id against UserStore's denylist
    after validate() succeeds.
    """

    def __init__(self, secret_key: str, max_age: timedelta = DEFAULT_MAX_AGE) -> None:
        if not secret_key:
            raise ValueError("SessionCodec requires a non-empty secret key.")
        self._secret_key = secret_key
        self.max_age = max_age

    def mint(self, user_id: str, issued_at: datetime | None = None) -> tuple[SessionToken, SessionClaims]:
        """Create a signed session for user_id, expiring max_age after issued_at (default: now)."""
        # JWT timestamps are whole seconds; truncate up front so claims match the decoded token.
        issued = (issued_at or datetime.now(timezone.utc)).replace(microsecond=0)
        claims = SessionClaims(
            user_id=user_id,
            session_id=secrets.token_hex(16),
            issued_at=issued,
            expires_at=issued + self.max_age,
        )
        compact = jwt.encode(
            {
                "sub": claims.user_id,
                "jti": claims.session_id,
                "iat": claims.issued_at,
                "exp": claims.expires_at,
            },
            self._secret_key,
            algorithm=_ALGORITHM,
        )
        payload, _, signature = compact.rpartition(".")
        return SessionToken(payload=payload, signature=signature), claims

    def validate(self, token: SessionToken | None) -> SessionClaims:
        """Verify the signature, then the expiry. Returns the claims or raises NotLoggedIn."""
        if token is None or not token.payload or not token.signature:
            raise NotLoggedIn()
        try:
            data = jwt.decode(
                f"{token.payload}.{token.signature}",
                self._secret_key,
                algorithms=[_ALGORITHM],
                options=_DECODE_OPTIONS,
            )
            return SessionClaims(
                user_id=data["sub"],
                session_id=data["jti"],
                issued_at=datetime.fromtimestamp(data["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(data["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Rejected session token: %s", type(exc).__name__)
            raise NotLoggedIn() from exc


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def read_session_cookies(request) -> SessionToken | None:
    """Pull the two session cookies off a request. None if either is missing."""
    payload = request.cookies.get(SESSION_COOKIE)
    signature = request.cookies.get(SIGNATURE_COOKIE)
    if not payload or not signature:
        return None
    return SessionToken(payload=payload, signature=signature)


def set_session_cookies(response, token: SessionToken, claims: SessionClaims, secure: bool = False) -> None:
    """Write "session" and "session.sig" as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation for most cases).
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age / expires: both set to the token's exp so old browsers that ignore
        Max-Age still drop the cookie on time.
    """
    max_age = max(int((claims.expires_at - datetime.now(timezone.utc)).total_seconds()), 0)
    for name, value in ((SESSION_COOKIE, token.payload), (SIGNATURE_COOKIE, token.signature)):
        response.set_cookie(
            name,
            value=value,
            max_age=max_age,
            expires=claims.expires_at,
            path="/",
            httponly=True,
            samesite="lax",
            secure=secure,
        )


def clear_session_cookies(response, secure: bool = False) -> None:
    """Tell the client to forget both session cookies."""
    for name in (SESSION_COOKIE, SIGNATURE_COOKIE):
        response.delete_cookie(name, path="/", httponly=True, samesite="lax", secure=secure)
