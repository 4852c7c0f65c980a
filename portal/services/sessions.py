"""Login session store.

A session is a ``portal_session`` row keyed by an opaque random id. The
browser holds a signed JWT whose ``sid`` claim names the row and whose
``sub`` claim is the account id; both must agree with the row for the
session to resolve. Deleting the row logs the session out even while the
cookie signature is still valid.
"""

import secrets
from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from portal.config import get_settings
from portal.models.account import Account
from portal.models.session import PortalSession


class SessionStore:
    """Creates, resolves and destroys login sessions."""

    def __init__(
        self,
        db: Session,
        secret_key: str | None = None,
        algorithm: str | None = None,
        max_age_hours: int | None = None,
    ) -> None:
        settings = get_settings()
        self.db = db
        self.secret_key = secret_key or settings.SESSION_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.max_age = timedelta(hours=max_age_hours or settings.SESSION_MAX_AGE_HOURS)

    def open(self, account: Account) -> str:
        """Persist a new session for ``account`` and return the signed cookie value.

        The caller commits.
        """
        now = datetime.utcnow()
        session_id = secrets.token_hex(32)
        self.db.add(
            PortalSession(
                id=session_id,
                account_id=account.id,
                created_at=now,
                expires_at=now + self.max_age,
            )
        )
        payload = {"sub": str(account.id), "sid": session_id, "exp": now + self.max_age}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a session token. Returns None if invalid."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

    def resolve(self, token: str | None) -> int | None:
        """Return the account id bound to ``token``, or None."""
        if not token:
            return None
        payload = self.decode(token)
        if not payload or "sid" not in payload or "sub" not in payload:
            return None

        row = self.db.get(PortalSession, payload["sid"])
        if row is None or str(row.account_id) != payload["sub"]:
            return None
        if row.expires_at <= datetime.utcnow():
            return None
        return row.account_id

    def destroy(self, token: str | None) -> None:
        """Delete the session named by ``token``. The caller commits."""
        if not token:
            return
        payload = self.decode(token)
        if not payload or "sid" not in payload:
            return
        self.db.query(PortalSession).filter(PortalSession.id == payload["sid"]).delete(synchronize_session=False)

    def destroy_all_for(self, account_id: int) -> None:
        self.db.query(PortalSession).filter(PortalSession.account_id == account_id).delete(synchronize_session=False)

    def purge_expired(self) -> int:
        """Delete expired session rows. Returns the number removed."""
        return (
            self.db.query(PortalSession)
            .filter(PortalSession.expires_at <= datetime.utcnow())
            .delete(synchronize_session=False)
        )
