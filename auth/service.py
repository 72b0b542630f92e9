"""
auth/service.py -- Login, logout and current-user resolution.

AuthService is the only place that combines the three auth building blocks:
UserStore (who exists), passwords (is the secret right) and SessionCodec (is
the cookie genuine). Routes and the access guard call it; they never
re-implement any of its checks inline.

Per-request state is derived from the session cookies alone:
  no token / invalid token / revoked token  -> unauthenticated (NotLoggedIn)
  valid, unrevoked token                     -> authenticated as claims.user_id

Timing equalization: login() always runs bcrypt, against a dummy hash when
the email is unknown, so response time does not reveal whether an account
exists. Together with the shared InvalidCredentials message this keeps
account enumeration off the table.

Every method here is synchronous and some run bcrypt (tens to hundreds of ms).
Route handlers that call login/register/change_password are plain `def` so
FastAPI executes them in its worker threadpool, never on the event loop.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.exceptions import InvalidCredentials, NotLoggedIn
from auth.models import User
from auth.passwords import hash_password, verify_password
from auth.sessions import SessionClaims, SessionCodec, SessionToken
from auth.store import UserStore

logger = logging.getLogger("konfetka.auth")


class AuthService:
    def __init__(self, store: UserStore, codec: SessionCodec) -> None:
        self.store = store
        self.codec = codec
        # Same cost factor as real hashes so both login failure paths take equally long.
        self._dummy_hash = hash_password("konfetka_timing_dummy", rounds=store.bcrypt_rounds)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> tuple[User, SessionToken, SessionClaims]:
        """Verify credentials and mint a fresh session.

        Raises InvalidCredentials for an unknown email and for a wrong
        password alike.
        """
        user = self.store.find_by_email(email)
        if user is None or user.password_hash is None:
            # Do NOT return before running bcrypt -- see module docstring.
            verify_password(password, self._dummy_hash)
            logger.info("Login failed: unknown account")
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.info("Login failed: wrong password for user %s", user.id)
            raise InvalidCredentials()

        token, claims = self.codec.mint(user.id)
        logger.info("Login succeeded for user %s (session %s)", user.id, claims.session_id[:8])
        return user, token, claims

    def authenticate(self, token: SessionToken | None) -> SessionClaims:
        """Validate a session token and make sure it was not logged out.

        Raises NotLoggedIn for missing, malformed, tampered, expired or
        revoked tokens.
        """
        claims = self.codec.validate(token)
        if self.store.is_session_revoked(claims.session_id):
            raise NotLoggedIn()
        return claims

    def logout(self, token: SessionToken | None) -> SessionClaims:
        """End an authenticated session.

        The session id goes on the denylist until the token's own expiry, so
        a copy of the cookies captured before logout stops working too.
        """
        claims = self.authenticate(token)
        self.store.revoke_session(claims.session_id, claims.expires_at)
        logger.info("Logout for user %s (session %s)", claims.user_id, claims.session_id[:8])
        return claims

    def current_user(self, token: SessionToken | None) -> User:
        """Resolve the account behind a session. A deleted account counts as logged out."""
        claims = self.authenticate(token)
        return self.user_for_claims(claims)

    def user_for_claims(self, claims: SessionClaims) -> User:
        user = self.store.find_by_id(claims.user_id)
        if user is None:
            raise NotLoggedIn()
        return user

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def register(self, email: str, full_name: str, password: str) -> User:
        """Create an account. DuplicateKey propagates if the email is taken."""
        user = self.store.save(User(email=email, full_name=full_name, password=password))
        logger.info("Registered user %s", user.id)
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """Re-check the current password, then store a hash of the new one.

        An account deleted after the request was authenticated has no row left
        to update; that caller is treated as logged out.
        """
        if user.password_hash is None or not verify_password(current_password, user.password_hash):
            raise InvalidCredentials()
        user.password = new_password
        try:
            self.store.save(user)
        except LookupError as exc:
            user.password = None
            raise NotLoggedIn() from exc
        logger.info("Password changed for user %s", user.id)
        return user

    def delete_account(self, user: User, claims: SessionClaims) -> None:
        self.store.delete(user.id)
        self.store.revoke_session(claims.session_id, claims.expires_at)
        logger.info("Deleted user %s", user.id)
