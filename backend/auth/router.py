# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – register, login, logout, current-user info, and the
self-service profile / password routes.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist,
  the password is wrong or the account is disabled.  This prevents
  user-enumeration and status-probing.
* change-password verifies the current password before looking at the new
  one, so a stolen (but not yet expired) session alone cannot reset it.
* The session cookie is HttpOnly; the token inside it is never stored
  server-side in the clear.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from database import get_db
from core.config import settings
from core.security import (
    Principal,
    get_auth_service,
    get_client_ip,
    get_current_principal,
    get_session_token,
)
from auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdateResponse,
    RegisterRequest,
    UpdateProfileRequest,
    UserProfile,
)

router = APIRouter(prefix="/api", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# POST /api/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=UserProfile, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Create an account and log it in straight away."""
    ip = get_client_ip(request)
    user = auth.register(
        db, body.email, body.password, body.first_name, body.last_name,
        request_ip=ip,
    )
    token = auth.start_session(
        db, user, request_ip=ip, user_agent=request.headers.get("User-Agent"),
    )
    _set_session_cookie(response, token)
    return user


# ---------------------------------------------------------------------------
# POST /api/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=UserProfile)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Authenticate and set the session cookie."""
    user, token = auth.authenticate(
        db, body.email, body.password,
        request_ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    _set_session_cookie(response, token)
    return user


# ---------------------------------------------------------------------------
# POST /api/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Invalidate the caller's session.  Safe to call repeatedly."""
    auth.logout(db, get_session_token(request), request_ip=get_client_ip(request))
    response.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message="Logged out successfully")


# ---------------------------------------------------------------------------
# GET /api/user
# ---------------------------------------------------------------------------


@router.get("/user", response_model=UserProfile)
def me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Return the authenticated user's public profile (no secrets)."""
    return auth.get_user(db, principal.id)


# ---------------------------------------------------------------------------
# PATCH /api/user/profile
# ---------------------------------------------------------------------------


@router.patch("/user/profile", response_model=ProfileUpdateResponse)
def update_profile(
    body: UpdateProfileRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """Update name and email.  Role and active flags cannot be set here."""
    user = auth.update_profile(
        db, principal, body.first_name, body.last_name, body.email,
        request_ip=get_client_ip(request),
    )
    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=UserProfile.model_validate(user),
    )


# ---------------------------------------------------------------------------
# PATCH /api/user/password
# ---------------------------------------------------------------------------


@router.patch("/user/password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    auth=Depends(get_auth_service),
):
    """
    Change the authenticated user's password.  Other live sessions of the
    same user are left alone.
    """
    auth.change_password(
        db, principal, body.current_password, body.new_password,
        request_ip=get_client_ip(request),
    )
    return MessageResponse(message="Password changed successfully")
