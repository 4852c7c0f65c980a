"""Request dependencies: service wiring, session cookie and access checks."""

from dataclasses import dataclass

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from portal.config import get_settings
from portal.database import get_db
from portal.errors import AuthorizationError
from portal.rate_limit import get_login_rate_limiter
from portal.services.accounts import AccountManager
from portal.services.files import FileService
from portal.services.mailer import get_mailer
from portal.services.sessions import SessionStore

SESSION_COOKIE_NAME = "ivory_session"


@dataclass
class CurrentAccount:
    """Authenticated account context."""

    account_id: int
    email: str
    display_name: str
    is_admin: bool


def get_account_manager(db: Session = Depends(get_db)) -> AccountManager:
    """Build the account manager for this request's database session."""
    return AccountManager(
        db=db,
        mailer=get_mailer(),
        sessions=SessionStore(db),
        login_limiter=get_login_rate_limiter(),
    )


def get_file_service(db: Session = Depends(get_db)) -> FileService:
    return FileService(db)


def get_session_token(request: Request) -> str | None:
    """Session token from the cookie, or a Bearer header for API clients."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_current_account(
    request: Request,
    manager: AccountManager = Depends(get_account_manager),
) -> CurrentAccount:
    """Resolve the session to an account. Raises AuthenticationError if there is none."""
    account = manager.current_account(get_session_token(request))
    return CurrentAccount(
        account_id=account.id,
        email=account.email,
        display_name=account.display_name,
        is_admin=account.is_admin,
    )


def require_admin(account: CurrentAccount = Depends(get_current_account)) -> CurrentAccount:
    """Require the admin flag, read fresh from the store on every request."""
    if not account.is_admin:
        raise AuthorizationError("Admin only")
    return account


def set_session_cookie(response: Response, token: str) -> None:
    """Set the session cookie."""
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
        max_age=settings.SESSION_MAX_AGE_HOURS * 60 * 60,
    )


def clear_session_cookie(response: Response) -> None:
    """Clear the session cookie."""
    response.delete_cookie(key=SESSION_COOKIE_NAME)
