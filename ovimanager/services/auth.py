"""
Authentication against the hosted auth service.

In remote mode a user signs in with e-mail and password and the session is
kept in the settings table so the next launch restores it. In local mode
nothing needs a login and the service reports ``AuthState.LOCAL``.

Usage:
    auth = AuthService(db, backend, remote)
    await auth.restore()
    if auth.state == AuthState.SIGNED_OUT:
        await auth.sign_in(email, password)
"""
import logging
import time
from enum import Enum
from typing import Optional

from config import BackendConfig, SETTING_SESSION
from database import Database
from events import AppEvent, event_bus
from i18n import t
from models.entities import Session
from services.remote_client import RemoteClient, RemoteError, RemoteRequestError

logger = logging.getLogger(__name__)

# GoTrue answers a wrong password with 400 invalid_grant
_INVALID_CREDENTIAL_CODES = {"invalid_grant", "invalid_credentials"}


class AuthState(Enum):
    """Current authentication state of the app."""
    LOCAL = "local"            # No remote store configured, no login needed
    SIGNED_OUT = "signed_out"  # Remote store configured, login required
    SIGNED_IN = "signed_in"


class AuthError(Exception):
    """Authentication-related error with a user-facing message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """E-mail/password pair rejected by the auth service."""
    pass


def _is_invalid_credentials(error: RemoteRequestError) -> bool:
    return error.code in _INVALID_CREDENTIAL_CODES or error.status_code in (400, 401)


class AuthService:
    """Signs users in and out and keeps the session token on the client."""

    def __init__(
        self,
        db: Database,
        backend: BackendConfig,
        remote: Optional[RemoteClient] = None,
    ) -> None:
        self._db = db
        self._backend = backend
        self._remote = remote
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> AuthState:
        if not self._backend.remote_enabled:
            return AuthState.LOCAL
        return AuthState.SIGNED_IN if self._session else AuthState.SIGNED_OUT

    @property
    def requires_login(self) -> bool:
        return self.state == AuthState.SIGNED_OUT

    def _activate(self, session: Session) -> None:
        self._session = session
        if self._remote is not None:
            self._remote.set_access_token(session.access_token)

    async def restore(self) -> Optional[Session]:
        """Load a stored session if it has not expired."""
        if not self._backend.remote_enabled:
            return None
        stored = await self._db.get_setting(SETTING_SESSION)
        if not stored:
            return None
        try:
            session = Session.from_dict(stored)
        except (KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable stored session: {e}")
            await self._db.delete_setting(SETTING_SESSION)
            return None
        if session.expires_at is not None and session.expires_at <= time.time():
            logger.info("Stored session expired")
            await self._db.delete_setting(SETTING_SESSION)
            return None
        self._activate(session)
        event_bus.emit(AppEvent.SESSION_STARTED, session)
        return session

    async def sign_in(self, email: str, password: str) -> Session:
        """Exchange the credential pair for a session.

        Raises:
            InvalidCredentialsError: Wrong e-mail or password.
            AuthError: Any other failure (service unreachable, bad answer,
                local mode).
        """
        if not self._backend.remote_enabled or self._remote is None:
            raise AuthError(t("login_failed"))
        try:
            payload = await self._remote.auth_sign_in(email.strip(), password)
        except RemoteRequestError as e:
            if _is_invalid_credentials(e):
                logger.info(f"Sign-in rejected for {email}")
                raise InvalidCredentialsError(t("invalid_credentials")) from e
            logger.error(f"Sign-in failed: {e}")
            raise AuthError(t("login_failed")) from e
        except RemoteError as e:
            logger.error(f"Sign-in failed: {e}")
            raise AuthError(t("login_failed")) from e

        token = payload.get("access_token")
        if not token:
            logger.error("Sign-in answer carried no access token")
            raise AuthError(t("login_failed"))

        user = payload.get("user") or {}
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in"):
            expires_at = int(time.time()) + int(payload["expires_in"])
        session = Session(
            access_token=token,
            refresh_token=payload.get("refresh_token") or "",
            user_id=user.get("id") or "",
            email=user.get("email") or email,
            expires_at=expires_at,
        )
        self._activate(session)
        await self._db.set_setting(SETTING_SESSION, session.to_dict())
        event_bus.emit(AppEvent.SESSION_STARTED, session)
        logger.info(f"Signed in as {session.email}")
        return session

    async def sign_out(self) -> None:
        """Forget the session and wipe every local table.

        The remote logout is best effort; local state is cleared even when
        the service cannot be reached.
        """
        if self._remote is not None and self._session is not None:
            try:
                await self._remote.auth_sign_out()
            except RemoteError as e:
                logger.warning(f"Remote sign-out failed, clearing local state anyway: {e}")
        self._session = None
        if self._remote is not None:
            self._remote.set_access_token(None)
        await self._db.clear_all()
        event_bus.emit(AppEvent.SESSION_ENDED)
        logger.info("Signed out, local data cleared")
