"""
Authentication API endpoints.

Login and registration accept form-encoded bodies and set the HTTP-only
session cookie. JSON clients get a JSON body; browsers posting a plain HTML
form (``Accept: text/html``) are redirected instead, with failures carried
in the ``error`` query parameter of the login page.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse

from backend.dependencies import get_config, get_identity_provider
from timetrack.auth.identity import LocalIdentityProvider
from timetrack.core.config import Config
from timetrack.core.models import UserAccount
from timetrack.utils.errors import ErrorCodes, IdentityError

logger = logging.getLogger("backend.auth")

router = APIRouter(prefix="/api", tags=["auth"])

# code -> (status, message)
LOGIN_ERRORS = {
    ErrorCodes.AUTH_USER_NOT_FOUND: (401, "Invalid credentials."),
    ErrorCodes.AUTH_WRONG_PASSWORD: (401, "Invalid credentials."),
    ErrorCodes.AUTH_INVALID_EMAIL: (400, "Invalid email address."),
    ErrorCodes.AUTH_USER_DISABLED: (403, "This account has been disabled."),
    ErrorCodes.AUTH_TOO_MANY_REQUESTS: (429, "Too many failed attempts. Please try again later."),
}
LOGIN_FAILED = (500, "Login failed. Please try again.")

REGISTER_ERRORS = {
    ErrorCodes.AUTH_EMAIL_ALREADY_IN_USE: (409, "An account with this email already exists."),
    ErrorCodes.AUTH_WEAK_PASSWORD: (400, None),  # use the validation message
    ErrorCodes.AUTH_INVALID_EMAIL: (400, "Invalid email address."),
    ErrorCodes.AUTH_OPERATION_NOT_ALLOWED: (500, "Email registration is not enabled."),
}
REGISTER_FAILED = (500, "Registration failed. Please try again.")


def wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def _set_session_cookie(response, request: Request, config: Config, token: str) -> None:
    response.set_cookie(
        key=config.get("session_cookie_name", default="auth-token"),
        value=token,
        max_age=int(config.get("token_ttl_seconds", default=3600)),
        path="/",
        httponly=True,
        secure=request.url.scheme == "https",
        samesite=config.get("session_cookie_samesite", default="lax"),
    )


def _user_payload(user: UserAccount) -> dict:
    return {"uid": user.uid, "email": user.email, "display_name": user.display_name}


def _success(request: Request, config: Config, token: str, user: UserAccount, status: int):
    if wants_html(request):
        response = RedirectResponse(url="/dashboard", status_code=302)
    else:
        response = JSONResponse(
            status_code=status, content={"success": True, "user": _user_payload(user)}
        )
    _set_session_cookie(response, request, config, token)
    return response


def _failure(request: Request, config: Config, status: int, message: str):
    if wants_html(request):
        login_path = config.get("login_path", default="/login")
        return RedirectResponse(url=f"{login_path}?error={quote(message)}", status_code=302)
    return JSONResponse(status_code=status, content={"error": message})


@router.post("/login")
async def login(
    request: Request,
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    identity: LocalIdentityProvider = Depends(get_identity_provider),
    config: Config = Depends(get_config),
):
    """Sign in with email and password."""
    if not email or not password:
        return _failure(request, config, 400, "Email and password are required")

    try:
        user = identity.sign_in(email, password)
    except IdentityError as e:
        logger.info("Login failed (%s)", e.code)
        status, message = LOGIN_ERRORS.get(e.code, LOGIN_FAILED)
        return _failure(request, config, status, message)

    token = identity.issue_id_token(user)
    logger.info("User %s signed in", user.uid)
    return _success(request, config, token, user, 200)


@router.post("/register")
async def register(
    request: Request,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    identity: LocalIdentityProvider = Depends(get_identity_provider),
    config: Config = Depends(get_config),
):
    """Create an account and sign it in."""
    if not email or not password or not name:
        return _failure(request, config, 400, "Name, email, and password are required")

    try:
        user = identity.create_user(email, password, name)
    except IdentityError as e:
        logger.info("Registration failed (%s)", e.code)
        status, message = REGISTER_ERRORS.get(e.code, REGISTER_FAILED)
        return _failure(request, config, status, message or e.message)

    token = identity.issue_id_token(user)
    return _success(request, config, token, user, 201)


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(config: Config = Depends(get_config)):
    """Clear the session cookie and go back to the home page."""
    response = RedirectResponse(url="/", status_code=302)
    response.delete_cookie(
        key=config.get("session_cookie_name", default="auth-token"),
        path="/",
        httponly=True,
        samesite=config.get("session_cookie_samesite", default="lax"),
    )
    return response
