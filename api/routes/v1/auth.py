"""
api/routes/v1/auth.py -- Session login/logout and current-user endpoints.

Routes:
  POST /api/v1/auth/login   -- password login; sets session + session.sig cookies
  GET  /api/v1/auth/logout  -- revokes the session, clears both cookies
  GET  /api/v1/auth/user    -- current user's public fields (requires session)

Security:
  AuthService.login() provides timing equalization -- use it, never inline
  find_by_email() + verify_password().
  Wrong email and wrong password produce the same 401 body.
  Cache-Control: no-store on login responses so proxies never cache Set-Cookie.

login() is a plain `def`: FastAPI runs it in the worker threadpool, which
keeps bcrypt off the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, MessageResponse, UserResponse
from auth.dependencies import get_auth_service, get_current_user
from auth.models import User
from auth.sessions import clear_session_cookies, read_session_cookies, set_session_cookies

# Auth policy:
# - POST /api/v1/auth/login:   public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/logout:  requires a valid session (403 otherwise)
# - GET  /api/v1/auth/user:    requires a valid session (get_current_user)
router = APIRouter()


@router.post("/auth/login", response_model=UserResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email ("username") and password; set the session cookies.

    InvalidCredentials from the service is rendered by the AuthError handler
    as 401 {"message": "Error: Wrong email or password"}.
    """
    user, token, claims = get_auth_service(request).login(body.username, body.password)
    resp = JSONResponse(status_code=200, content=UserResponse.from_user(user).model_dump())
    set_session_cookies(resp, token, claims, secure=request.app.state.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """End the current session. 403 if there is no valid session to end."""
    get_auth_service(request).logout(read_session_cookies(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out").model_dump())
    clear_session_cookies(resp, secure=request.app.state.secure_cookies)
    return resp


@router.get("/auth/user", response_model=UserResponse)
def current_user(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the public fields of the logged-in user."""
    return UserResponse.from_user(user)
