from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from qtsys.core.utils.env import load_env_file_if_present
from qtsys.endpoints import endpoint_profile

logger = logging.getLogger(__name__)

REFRESH_TOKEN_ENV = "QT_REFRESH_TOKEN"


class AuthError(RuntimeError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mask_token(token: str) -> str:
    """Shorten a token for log output."""
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-2:]}"


@dataclass(frozen=True)
class Session:
    """Authenticated state returned by one refresh-token exchange.

    `refresh_token` is the rotated token: the one used to create this session
    is dead once the exchange succeeds.
    """

    access_token: str
    refresh_token: str
    expires_at: datetime
    api_server: str
    is_practice: bool = False

    def is_expired(self, now: datetime | None = None, leeway: timedelta = timedelta(0)) -> bool:
        """True once `now + leeway` reaches the expiry time."""
        return (now or _utcnow()) + leeway >= self.expires_at

    def seconds_remaining(self, now: datetime | None = None) -> float:
        return (self.expires_at - (now or _utcnow())).total_seconds()

    @classmethod
    def from_token_response(
        cls, data: Any, is_practice: bool, now: datetime | None = None
    ) -> Session:
        """Build a session from the token endpoint JSON payload.

        Raises AuthError if a field is missing or unusable.
        """
        if not isinstance(data, dict):
            raise AuthError("Auth refresh succeeded but response is not a JSON object")

        missing = [
            key
            for key in ("access_token", "refresh_token", "expires_in", "api_server")
            if data.get(key) in (None, "")
        ]
        if missing:
            raise AuthError(
                f"Auth refresh succeeded but {', '.join(missing)} missing in response"
            )

        try:
            expires_in = int(data["expires_in"])
        except (TypeError, ValueError) as e:
            raise AuthError(f"Invalid expires_in in auth response: {data['expires_in']!r}") from e
        if expires_in <= 0:
            raise AuthError(f"Invalid expires_in in auth response: {expires_in}")

        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=(now or _utcnow()) + timedelta(seconds=expires_in),
            api_server=str(data["api_server"]).rstrip("/"),
            is_practice=is_practice,
        )


def load_refresh_token(env_key: str = REFRESH_TOKEN_ENV, dotenv: bool = True) -> str:
    """Return the Questrade refresh token from environment or .env.

    Raises AuthError if missing.
    """
    if dotenv:
        load_env_file_if_present()
    token = os.getenv(env_key)
    if not token:
        raise AuthError(f"Missing refresh token. Set {env_key} in environment or .env")
    return token


def get_login_url(use_practice: bool = False) -> str:
    return endpoint_profile(use_practice)["login_url"]


def exchange_refresh_token(
    refresh_token: str,
    use_practice: bool = False,
    login_url: str | None = None,
    timeout: float = 30.0,
) -> Session:
    """Exchange a refresh token for a new session.

    POSTs ``grant_type=refresh_token&refresh_token=<token>`` to the login host
    and returns the resulting Session. The provider invalidates
    `refresh_token` on success, so callers must keep the rotated
    `Session.refresh_token`.

    A failed exchange is never retried: a fresh refresh token has to be
    obtained from the provider's API hub.
    """
    if not refresh_token:
        raise AuthError("Refresh token must not be empty")

    url = login_url or get_login_url(use_practice)
    logger.info(
        f"Exchanging refresh token {mask_token(refresh_token)} at {url}"
    )
    try:
        res = requests.post(
            url,
            params={"grant_type": "refresh_token", "refresh_token": refresh_token},
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        raise AuthError(f"Auth refresh request failed: {e}") from e

    if res.status_code != 200:
        try:
            detail = res.json()
        except ValueError:
            detail = res.text
        raise AuthError(f"Auth refresh failed: {res.status_code} {detail}")

    try:
        data = res.json()
    except ValueError as e:
        raise AuthError("Auth refresh succeeded but response is not valid JSON") from e

    session = Session.from_token_response(data, is_practice=use_practice)
    logger.info(
        f"Obtained access token for {session.api_server}, "
        f"expires in {int(session.seconds_remaining())}s"
    )
    return session


def build_auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}
