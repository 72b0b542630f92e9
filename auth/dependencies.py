"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access guard for protected routes. Both helpers read the "session" and
"session.sig" cookies, hand them to AuthService and either return the
verified identity or raise NotLoggedIn. The NotLoggedIn handler in
api/main.py turns that into 403 {"message": "Error: Not logged in"} before
the route body runs.

The resolved identity is also attached to request.state (session / user) so
middleware and handlers further down can read it without re-validating.

Layer rule: may import from fastapi (for Request); no imports from api/ or core/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.service import AuthService
from auth.sessions import SessionClaims, read_session_cookies


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session(request: Request) -> SessionClaims:
    """Require a valid, unrevoked session. Raises NotLoggedIn otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: SessionClaims = Depends(get_session)): ...
    """
    claims = get_auth_service(request).authenticate(read_session_cookies(request))
    request.state.session = claims
    return claims


def get_current_user(request: Request) -> User:
    """Require a valid session and return its User. Raises NotLoggedIn otherwise."""
    claims = get_session(request)
    user = get_auth_service(request).user_for_claims(claims)
    request.state.user = user
    return user
