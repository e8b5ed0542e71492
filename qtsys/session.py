"""Thread-safe ownership of the current Questrade session.

All token state lives behind one lock. Exchanges run while the lock is held,
so when several threads find the access token expired at the same moment,
exactly one of them talks to the login host and the rest reuse its result.
That matters because each exchange burns the refresh token it was given.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import timedelta

from qtsys.data.auth import AuthError, Session, _utcnow, exchange_refresh_token

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the current Session and serializes token exchanges.

    Examples:
        >>> manager = SessionManager()
        >>> manager.authenticate(refresh_token, use_practice=True)
        >>> session = manager.ensure_valid()  # refreshes if expired
    """

    def __init__(
        self,
        timeout: float = 30.0,
        login_url: str | None = None,
        session: Session | None = None,
        expiry_leeway: timedelta = timedelta(seconds=30),
    ):
        """Initialize the manager.

        Args:
            timeout: Token exchange timeout in seconds
            login_url: Override for the profile login host
            session: Previously saved session to resume; refreshed on first use
                if its access token has expired
            expiry_leeway: Refresh this long before the local expiry time, which
                trails the provider's clock by the exchange latency
        """
        if expiry_leeway < timedelta(0):
            raise ValueError("expiry_leeway must not be negative")
        self.timeout = timeout
        self.login_url = login_url
        self.expiry_leeway = expiry_leeway
        self._lock = threading.Lock()
        self._session: Session | None = session
        self.exchange_count = 0

    @property
    def session(self) -> Session | None:
        with self._lock:
            return self._session

    def _exchange(self, refresh_token: str, use_practice: bool) -> Session:
        session = exchange_refresh_token(
            refresh_token,
            use_practice=use_practice,
            login_url=self.login_url,
            timeout=self.timeout,
        )
        self.exchange_count += 1
        return session

    def authenticate(self, refresh_token: str, use_practice: bool = False) -> Session:
        """Exchange `refresh_token` and replace any held session.

        On failure the previously held session, if any, is kept.
        """
        with self._lock:
            session = self._exchange(refresh_token, use_practice)
            self._session = session
            return session

    def ensure_valid(self) -> Session:
        """Return a session with an unexpired access token.

        Raises:
            AuthError: If never authenticated, or if the refresh exchange fails.
                A failed refresh drops the session since its refresh token may
                already have been consumed.
        """
        with self._lock:
            if self._session is None:
                raise AuthError("Not authenticated")
            if not self._session.is_expired(leeway=self.expiry_leeway):
                return self._session

            logger.info("Access token expired, refreshing session")
            try:
                self._session = self._exchange(
                    self._session.refresh_token, self._session.is_practice
                )
            except BaseException:
                # also on interrupts: the held refresh token may already be spent
                logger.warning("Session refresh failed, dropping session")
                self._session = None
                raise
            return self._session

    def invalidate(self, access_token: str | None = None) -> None:
        """Mark the access token expired so the next call refreshes it.

        When `access_token` is given, only a session still holding that token
        is invalidated; a session refreshed in the meantime is left alone.
        """
        with self._lock:
            if self._session is None:
                return
            if access_token is not None and self._session.access_token != access_token:
                return
            logger.warning("Access token rejected by server, marking session expired")
            self._session = replace(self._session, expires_at=_utcnow())

    def clear(self) -> None:
        with self._lock:
            self._session = None
