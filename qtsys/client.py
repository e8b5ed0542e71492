from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .core.utils.env import env_flag
from .data.auth import REFRESH_TOKEN_ENV, Session, build_auth_headers, load_refresh_token
from .endpoints import endpoint_profile
from .models import Account, AccountActivity, AccountBalances, AccountPosition, parse_datetime
from .session import SessionManager

logger = logging.getLogger(__name__)

API_VERSION = "v1"
PRACTICE_ENV = "QT_PRACTICE"

T = TypeVar("T")


class ApiError(RuntimeError):
    """Failure of an authenticated API call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError):
    pass


class UnauthorizedError(ApiError):
    """The server rejected the access token. Re-authenticate and retry."""


class TransportError(ApiError):
    pass


class DecodeError(ApiError):
    pass


def _session_with_retries(total: int = 3, backoff: float = 0.5) -> requests.Session:
    sess = requests.Session()
    # POST stays out of allowed_methods: token exchanges must never be replayed
    retries = Retry(
        total=total,
        read=total,
        connect=total,
        backoff_factor=backoff,
        status_forcelist=(502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retries)
    sess.mount("http://", adapter)
    sess.mount("https://", adapter)
    return sess


def _error_detail(res: requests.Response) -> Any:
    try:
        payload = res.json()
    except ValueError:
        return res.text
    if isinstance(payload, dict) and "message" in payload:
        return payload["message"]
    return payload


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class QuestradeClient:
    """Questrade REST client sharing one session across threads.

    Examples:
        >>> client = QuestradeClient.new()
        >>> client.authenticate(refresh_token, use_practice=True)
        >>> for account in client.accounts():
        ...     print(account.number, client.account_balance(account.number).combined("CAD"))
    """

    timeout: float = 30.0
    retries: int = 3
    backoff: float = 0.5
    api_version: str = API_VERSION
    http: requests.Session | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.http is None:
            self.http = _session_with_retries(self.retries, self.backoff)
        self.sessions = SessionManager(timeout=self.timeout)

    @classmethod
    def new(cls) -> QuestradeClient:
        """Create an unauthenticated client with default settings."""
        return cls()

    @classmethod
    def with_session(
        cls, session: Session, http: requests.Session | None = None, **kwargs: Any
    ) -> QuestradeClient:
        """Resume a saved session without spending a refresh token.

        An expired access token is refreshed on the first call using the
        session's refresh token.
        """
        client = cls(http=http, **kwargs)
        client.sessions = SessionManager(timeout=client.timeout, session=session)
        return client

    @classmethod
    def from_profile(cls, use_practice: bool = False) -> QuestradeClient:
        """Create an unauthenticated client configured from an endpoint profile."""
        profile = endpoint_profile(use_practice)
        client = cls(
            timeout=float(profile.get("timeout", 30.0)),
            retries=int(profile.get("retries", 3)),
            backoff=float(profile.get("backoff", 0.5)),
            api_version=str(profile.get("api_version", API_VERSION)),
        )
        return client

    @classmethod
    def from_env(cls, env_key: str = REFRESH_TOKEN_ENV) -> QuestradeClient:
        """Authenticate with the refresh token from the environment or .env."""
        refresh = load_refresh_token(env_key)
        use_practice = env_flag(PRACTICE_ENV)
        client = cls.from_profile(use_practice)
        client.authenticate(refresh, use_practice=use_practice)
        return client

    @property
    def session(self) -> Session | None:
        return self.sessions.session

    def authenticate(self, refresh_token: str, use_practice: bool = False) -> Session:
        return self.sessions.authenticate(refresh_token, use_practice=use_practice)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET `path` under the session's API root and return decoded JSON.

        Raises:
            AuthError: If not authenticated or a needed refresh fails
            ApiError: NotFoundError, UnauthorizedError, TransportError,
                DecodeError, or ApiError for any other non-2xx status
        """
        session = self.sessions.ensure_valid()
        url = f"{session.api_server}/{self.api_version}/{path.lstrip('/')}"
        logger.debug(f"GET {url}")
        try:
            res = self.http.get(
                url,
                params=params or {},
                headers=build_auth_headers(session.access_token),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        status = res.status_code
        if status in (401, 403):
            self.sessions.invalidate(session.access_token)
            raise UnauthorizedError(
                f"Not authenticated: {status} {_error_detail(res)}", status_code=status
            )
        if status == 404:
            raise NotFoundError(f"Not found: {path} {_error_detail(res)}", status_code=status)
        if not 200 <= status < 300:
            raise ApiError(f"Request failed: {status} {_error_detail(res)}", status_code=status)

        try:
            return res.json(parse_float=Decimal)
        except ValueError as e:
            raise DecodeError(f"Response from {path} is not valid JSON", status_code=status) from e

    def _decode(self, path: str, parse: Callable[[Any], T], payload: Any) -> T:
        try:
            return parse(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Malformed response from {path}: {e!r}") from e

    def accounts(self) -> list[Account]:
        """List accounts of the authenticated user in provider order."""
        path = "accounts"
        payload = self.get(path)
        return self._decode(
            path, lambda p: [Account.from_api(item) for item in p["accounts"]], payload
        )

    def account_balance(self, account_number: str) -> AccountBalances:
        """Per-currency and combined balances for `account_number`."""
        path = f"accounts/{quote(account_number, safe='')}/balances"
        return self._decode(path, AccountBalances.from_api, self.get(path))

    def account_positions(self, account_number: str) -> list[AccountPosition]:
        path = f"accounts/{quote(account_number, safe='')}/positions"
        payload = self.get(path)
        return self._decode(
            path, lambda p: [AccountPosition.from_api(item) for item in p["positions"]], payload
        )

    def account_activities(
        self, account_number: str, start_time: datetime, end_time: datetime
    ) -> list[AccountActivity]:
        """Cash transactions, dividends, trades etc. between two timestamps.

        Naive datetimes are taken as UTC.
        """
        start_time, end_time = _as_utc(start_time), _as_utc(end_time)
        if end_time < start_time:
            raise ValueError("end_time must not be before start_time")
        path = f"accounts/{quote(account_number, safe='')}/activities"
        params = {"startTime": start_time.isoformat(), "endTime": end_time.isoformat()}
        payload = self.get(path, params=params)
        return self._decode(
            path, lambda p: [AccountActivity.from_api(item) for item in p["activities"]], payload
        )

    def server_time(self) -> datetime:
        """Current time according to the API server."""
        path = "time"
        return self._decode(path, lambda p: parse_datetime(p["time"]), self.get(path))
