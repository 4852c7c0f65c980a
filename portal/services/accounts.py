"""Account and token lifecycle.

``AccountManager`` owns every state transition of an account: registration,
email verification, login/logout, password reset and the admin actions
(promote/demote, delete). Its collaborators are passed in: a SQLAlchemy
session as the record store, a ``Mailer``, a ``SessionStore`` and the login
rate limiter.

Single-use tokens are consumed with one conditional UPDATE that checks and
clears the token in the same statement, so two concurrent requests holding
the same token can never both win.
"""

import logging
import secrets
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta

import bcrypt
from sqlalchemy import not_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portal.config import Settings, get_settings
from portal.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    EmailNotVerifiedError,
    InvalidTokenError,
    NotFoundError,
    RateLimitExceededError,
    StoreError,
    ValidationError,
)
from portal.models.account import Account
from portal.models.audit_log import AuditAction, AuditLogEntry
from portal.models.file_record import FileRecord
from portal.rate_limit import LoginRateLimiter, get_login_rate_limiter
from portal.services.audit import AUDIT_QUERY_LIMIT, AuditTrail
from portal.services.mailer import Mailer
from portal.services.sessions import SessionStore

logger = logging.getLogger("ivory_portal")

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

REGISTRATION_MESSAGE = "Registration successful. Check your email for a link to verify your account."
VERIFIED_MESSAGE = "Email verified. You can now log in."
RESET_REQUEST_MESSAGE = "If an account exists with that email, a password reset link has been sent."
RESET_COMPLETED_MESSAGE = "Your password has been reset. You can now log in."
INVALID_CREDENTIALS = "Invalid credentials"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


def _validate_new_password(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def _new_token() -> str:
    """256-bit opaque token, hex encoded."""
    return secrets.token_hex(32)


@dataclass
class RegistrationResult:
    """Outcome of a registration.

    ``verification_token`` stays server-side; it only leaves the process in
    the verification email.
    """

    account_id: int
    email: str
    message: str
    verification_token: str


@dataclass
class LoginResult:
    account: Account
    session_token: str


class AccountManager:
    """Handles account lifecycle, token flows and admin user management."""

    def __init__(
        self,
        db: Session,
        mailer: Mailer,
        sessions: SessionStore | None = None,
        login_limiter: LoginRateLimiter | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.db = db
        self.mailer = mailer
        self.sessions = sessions or SessionStore(db)
        self.login_limiter = login_limiter or get_login_rate_limiter()
        self.audit = AuditTrail(db)
        self.settings = settings
        self.base_url = settings.BASE_URL
        self.reset_token_ttl = timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES)

    @contextmanager
    def _store(self) -> Iterator[None]:
        """Map storage failures to StoreError, rolling back the transaction."""
        try:
            yield
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Store operation failed")
            raise StoreError("Internal server error") from None

    def _find_by_email(self, email: str) -> Account | None:
        return self.db.query(Account).filter(Account.email == email).first()

    def _require_admin(self, caller_id: int | None) -> Account:
        caller = self.db.get(Account, caller_id) if caller_id is not None else None
        if caller is None:
            raise AuthenticationError("Not authenticated")
        if not caller.is_admin:
            raise AuthorizationError("Admin only")
        return caller

    # -------- registration & verification --------

    def register(self, email: str | None, password: str | None, display_name: str | None = None) -> RegistrationResult:
        """Create an unverified account and send the verification link."""
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password required")
        if "@" not in email:
            raise ValidationError("Invalid email address")
        _validate_new_password(password)

        token = _new_token()
        account = Account(
            email=email,
            password_hash=hash_password(password),
            display_name=(display_name or "").strip() or "Client",
            is_admin=False,
            is_verified=False,
            verification_token=token,
        )
        with self._store():
            self.db.add(account)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise ConflictError("Email already registered") from None
            account_id = account.id

        link = f"{self.base_url}/api/v1/auth/verify-email?token={token}"
        self.mailer.send(
            email,
            "Verify your Ivory client portal account",
            "Welcome to the Ivory client portal.\n\n"
            f"Confirm your email address by opening this link:\n{link}\n\n"
            f"The link is valid for {self.settings.VERIFICATION_TOKEN_TTL_HOURS} hours.",
        )
        logger.info("Registered account %s", account_id)
        return RegistrationResult(
            account_id=account_id,
            email=email,
            message=REGISTRATION_MESSAGE,
            verification_token=token,
        )

    def verify_email(self, token: str | None) -> str:
        """Mark the account owning ``token`` as verified and consume the token."""
        if not token:
            raise ValidationError("Verification token required")

        with self._store():
            account = (
                self.db.query(Account)
                .filter(Account.verification_token == token, Account.is_verified.is_(False))
                .first()
            )
            if account is None:
                raise InvalidTokenError("Invalid or expired verification link")

            result = self.db.execute(
                update(Account)
                .where(
                    Account.id == account.id,
                    Account.verification_token == token,
                    Account.is_verified.is_(False),
                )
                .values(is_verified=True, verification_token=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise InvalidTokenError("Invalid or expired verification link")

            self.audit.record(
                AuditAction.EMAIL_VERIFIED,
                actor_id=account.id,
                resource_type="user",
                resource_id=account.id,
                detail=account.email,
            )
            self.db.commit()
        return VERIFIED_MESSAGE

    # -------- login & logout --------

    def login(self, email: str | None, password: str | None, client_address: str | None) -> LoginResult:
        """Authenticate and open a session. Every attempt counts against the limiter."""
        if not self.login_limiter.hit(client_address or "unknown"):
            logger.warning("Login rate limit exceeded for %s", client_address)
            raise RateLimitExceededError("Too many login attempts. Try again later.")

        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password required")

        with self._store():
            account = self._find_by_email(email)
            if account is None:
                raise AuthenticationError(INVALID_CREDENTIALS)
            if not account.is_verified:
                raise EmailNotVerifiedError("Email not verified. Check your inbox for the verification link.")
            if not check_password(password, account.password_hash):
                raise AuthenticationError(INVALID_CREDENTIALS)

            session_token = self.sessions.open(account)
            self.db.commit()
            self.db.refresh(account)

        logger.info("Login succeeded for account %s", account.id)
        return LoginResult(account=account, session_token=session_token)

    def logout(self, session_token: str | None) -> None:
        """Destroy the caller's session. Always succeeds."""
        with self._store():
            self.sessions.destroy(session_token)
            self.db.commit()

    def get_account(self, account_id: int | None) -> Account:
        """Load the signed-in account; a dangling session is treated as signed out."""
        with self._store():
            account = self.db.get(Account, account_id) if account_id is not None else None
        if account is None:
            raise AuthenticationError("Not authenticated")
        return account

    def current_account(self, session_token: str | None) -> Account:
        with self._store():
            account_id = self.sessions.resolve(session_token)
        return self.get_account(account_id)

    # -------- password reset --------

    def request_password_reset(self, email: str | None) -> str:
        """Issue a reset token and mail it. The reply never reveals whether the email exists."""
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email required")

        with self._store():
            account = self._find_by_email(email)
            if account is None:
                logger.info("Password reset requested for unknown email")
                return RESET_REQUEST_MESSAGE

            token = _new_token()
            account.password_reset_token = token
            account.password_reset_expires_at = datetime.utcnow() + self.reset_token_ttl
            self.audit.record(
                AuditAction.PASSWORD_RESET_REQUESTED,
                actor_id=account.id,
                resource_type="user",
                resource_id=account.id,
                detail=account.email,
            )
            to_email = account.email
            self.db.commit()

        minutes = int(self.reset_token_ttl.total_seconds() // 60)
        link = f"{self.base_url}/reset-password?token={token}"
        self.mailer.send(
            to_email,
            "Reset your Ivory client portal password",
            "We received a request to reset your password.\n\n"
            f"Choose a new password here:\n{link}\n\n"
            f"The link expires in {minutes} minutes. If you did not ask for this, ignore this email.",
        )
        return RESET_REQUEST_MESSAGE

    def reset_password(self, token: str | None, new_password: str | None) -> str:
        """Replace the password of the account owning a live reset token and consume the token."""
        if not token or not new_password:
            raise ValidationError("Token and new password required")
        _validate_new_password(new_password)

        with self._store():
            now = datetime.utcnow()
            account = (
                self.db.query(Account)
                .filter(Account.password_reset_token == token, Account.password_reset_expires_at > now)
                .first()
            )
            if account is None:
                raise InvalidTokenError("Invalid or expired reset link")

            new_hash = hash_password(new_password)
            result = self.db.execute(
                update(Account)
                .where(
                    Account.id == account.id,
                    Account.password_reset_token == token,
                    Account.password_reset_expires_at > now,
                )
                .values(password_hash=new_hash, password_reset_token=None, password_reset_expires_at=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise InvalidTokenError("Invalid or expired reset link")

            # Sessions opened with the old password are closed.
            self.sessions.destroy_all_for(account.id)
            self.audit.record(
                AuditAction.PASSWORD_RESET_COMPLETED,
                actor_id=account.id,
                resource_type="user",
                resource_id=account.id,
                detail=account.email,
            )
            self.db.commit()
        return RESET_COMPLETED_MESSAGE

    # -------- admin --------

    def list_accounts(self, caller_id: int | None) -> list[Account]:
        with self._store():
            self._require_admin(caller_id)
            return self.db.query(Account).order_by(Account.id).all()

    def toggle_admin(self, caller_id: int | None, target_id: int) -> Account:
        """Flip the target's admin flag. Admins cannot change their own flag."""
        with self._store():
            caller = self._require_admin(caller_id)
            if caller.id == target_id:
                raise ValidationError("You cannot change your own admin status")
            target = self.db.get(Account, target_id)
            if target is None:
                raise NotFoundError("User not found")

            self.db.execute(
                update(Account)
                .where(Account.id == target_id)
                .values(is_admin=not_(Account.is_admin))
                .execution_options(synchronize_session=False)
            )
            self.db.refresh(target)

            if target.is_admin:
                action, role = AuditAction.USER_PROMOTED, "admin"
            else:
                action, role = AuditAction.USER_DEMOTED, "client"
            self.audit.record(
                action,
                actor_id=caller.id,
                resource_type="user",
                resource_id=target.id,
                detail=f"{target.email} is now {role}",
            )
            self.db.commit()
            self.db.refresh(target)
        return target

    def delete_account(self, caller_id: int | None, target_id: int) -> None:
        """Remove the target account and its sessions. Admins cannot delete themselves."""
        with self._store():
            caller = self._require_admin(caller_id)
            if caller.id == target_id:
                raise ValidationError("You cannot delete your own account")
            target = self.db.get(Account, target_id)
            if target is None:
                raise NotFoundError("User not found")

            email = target.email
            self.sessions.destroy_all_for(target_id)
            self.db.query(FileRecord).filter(FileRecord.uploaded_by == target_id).update(
                {FileRecord.uploaded_by: None}, synchronize_session=False
            )
            self.db.delete(target)
            self.audit.record(
                AuditAction.USER_DELETED,
                actor_id=caller.id,
                resource_type="user",
                resource_id=target_id,
                detail=email,
            )
            self.db.commit()

    def list_audit_entries(self, caller_id: int | None, limit: int = AUDIT_QUERY_LIMIT) -> list[AuditLogEntry]:
        """Latest audit entries, newest first."""
        with self._store():
            self._require_admin(caller_id)
            return self.audit.latest(limit)

    # -------- startup --------

    def seed_default_accounts(self) -> list[Account]:
        """Create the pre-verified client and admin accounts when the store is empty."""
        with self._store():
            if self.db.query(Account.id).first() is not None:
                return []

            seeded = [
                Account(
                    email=self.settings.SEED_CLIENT_EMAIL,
                    password_hash=hash_password(self.settings.SEED_CLIENT_PASSWORD),
                    display_name="Default Client",
                    is_admin=False,
                    is_verified=True,
                ),
                Account(
                    email=self.settings.SEED_ADMIN_EMAIL,
                    password_hash=hash_password(self.settings.SEED_ADMIN_PASSWORD),
                    display_name="Administrator",
                    is_admin=True,
                    is_verified=True,
                ),
            ]
            self.db.add_all(seeded)
            self.db.commit()

        for account in seeded:
            logger.info("Seeded %s account: %s", "admin" if account.is_admin else "client", account.email)
        return seeded
