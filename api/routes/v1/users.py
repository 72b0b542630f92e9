"""
api/routes/v1/users.py -- Account registration and self-service endpoints.

Routes:
  POST   /api/v1/users               -- register a new account (public)
  PUT    /api/v1/users/me/password   -- change own password (requires session)
  DELETE /api/v1/users/me            -- delete own account, end session (requires session)

Registration does not log the user in; clients follow up with POST
/api/v1/auth/login. A taken email surfaces as DuplicateKey -> 409.

All handlers are plain `def` because they hash passwords or hit the DB.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import MessageResponse, PasswordChangeRequest, RegisterRequest, UserResponse
from auth.dependencies import get_auth_service, get_current_user
from auth.models import User
from auth.sessions import clear_session_cookies

# Auth policy:
# - POST   /api/v1/users:              public -- self-registration
# - PUT    /api/v1/users/me/password:  requires session (get_current_user)
# - DELETE /api/v1/users/me:           requires session (get_current_user)
router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a customer account."""
    user = get_auth_service(request).register(body.email, body.full_name, body.password)
    return UserResponse.from_user(user)


@router.put("/users/me/password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: PasswordChangeRequest,
    user: User = Depends(get_current_user),
) -> MessageResponse:
    """Replace the password after re-checking the current one (401 if wrong).

    Existing sessions stay valid; only the stored hash changes.
    """
    get_auth_service(request).change_password(user, body.current_password, body.new_password)
    return MessageResponse(message="Password updated")


@router.delete("/users/me", response_model=MessageResponse)
def delete_account(request: Request, user: User = Depends(get_current_user)) -> JSONResponse:
    """Delete the logged-in account and revoke the session used for the request."""
    get_auth_service(request).delete_account(user, request.state.session)
    resp = JSONResponse(content=MessageResponse(message="Account deleted").model_dump())
    clear_session_cookies(resp, secure=request.app.state.secure_cookies)
    return resp
