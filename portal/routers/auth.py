"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Request, Response

from portal.dependencies import (
    CurrentAccount,
    clear_session_cookie,
    get_account_manager,
    get_client_address,
    get_current_account,
    get_session_token,
    set_session_cookie,
)
from portal.rate_limit import limiter
from portal.schemas.auth import (
    AccountResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OkResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from portal.services.accounts import AccountManager

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=RegisterResponse)
@limiter.limit("5/minute")
def register(
    request: Request,
    body: RegisterRequest,
    manager: AccountManager = Depends(get_account_manager),
) -> RegisterResponse:
    """Register a new account. A verification link is emailed."""
    result = manager.register(body.email, body.password, body.name)
    return RegisterResponse(id=result.account_id, email=result.email, message=result.message)


@router.get("/verify-email", response_model=MessageResponse)
def verify_email(token: str | None = None, manager: AccountManager = Depends(get_account_manager)) -> MessageResponse:
    """Confirm an email address with the token from the verification link."""
    return MessageResponse(message=manager.verify_email(token))


@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    manager: AccountManager = Depends(get_account_manager),
) -> LoginResponse:
    """Authenticate and receive a session cookie."""
    result = manager.login(body.email, body.password, get_client_address(request))
    set_session_cookie(response, result.session_token)
    account = result.account
    return LoginResponse(id=account.id, email=account.email, name=account.display_name)


@router.post("/logout", response_model=OkResponse)
def logout(
    request: Request,
    response: Response,
    manager: AccountManager = Depends(get_account_manager),
) -> OkResponse:
    """Destroy the current session, if any."""
    manager.logout(get_session_token(request))
    clear_session_cookie(response)
    return OkResponse()


@router.get("/me", response_model=AccountResponse)
def me(account: CurrentAccount = Depends(get_current_account)) -> AccountResponse:
    """Return the signed-in account."""
    return AccountResponse(
        id=account.account_id,
        email=account.email,
        name=account.display_name,
        is_admin=account.is_admin,
    )


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    manager: AccountManager = Depends(get_account_manager),
) -> MessageResponse:
    """Request a password reset link. The reply is the same whether or not the email exists."""
    return MessageResponse(message=manager.request_password_reset(body.email))


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    manager: AccountManager = Depends(get_account_manager),
) -> MessageResponse:
    """Set a new password using a valid reset token."""
    return MessageResponse(message=manager.reset_password(body.token, body.new_password))
