from __future__ import annotations

import itertools
import os
import threading
import time
from typing import Any
from unittest.mock import Mock

import pytest


def make_response(status_code: int = 200, payload: Any = None, text: str = "") -> Mock:
    """Build a Mock shaped like requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def token_payload(
    access_token: str = "access_1",
    refresh_token: str = "refresh_1",
    expires_in: int = 1800,
    api_server: str = "https://api01.iq.questrade.com/",
) -> dict[str, Any]:
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
        "api_server": api_server,
    }


class FakeLoginServer:
    """Stand-in for requests.post against the login host.

    Refresh tokens are single-use: each successful exchange retires the token
    it was given and issues a new one.
    """

    def __init__(self, initial_token: str = "refresh_0", delay: float = 0.0):
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self.valid_tokens = {initial_token}
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    def __call__(self, url: str, params=None, headers=None, timeout=None) -> Mock:
        # widen the window in which concurrent exchanges could overlap
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.calls.append({"url": url, "params": params})
            token = (params or {}).get("refresh_token")
            if token not in self.valid_tokens:
                return make_response(400, {"code": 1017, "message": "Bad Request"})
            self.valid_tokens.discard(token)
            n = next(self._counter)
            new_token = f"refresh_{n}"
            self.valid_tokens.add(new_token)
            return make_response(
                200, token_payload(access_token=f"access_{n}", refresh_token=new_token)
            )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove qtsys variables from the environment for the test."""
    for key in ["QT_REFRESH_TOKEN", "QT_PRACTICE", "QT_ENDPOINTS_MODULE", "CUSTOM_TOKEN"]:
        # setenv first so monkeypatch restores the original value afterwards
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)
    yield


@pytest.fixture
def login_server():
    return FakeLoginServer()


@pytest.fixture
def mock_successful_auth_response():
    """Mock a successful Questrade token exchange."""
    return make_response(200, token_payload())


@pytest.fixture
def mock_failed_auth_response():
    """Mock a rejected refresh token."""
    return make_response(400, {"code": 1017, "message": "Bad Request"})


@pytest.fixture
def sample_accounts_data():
    """Sample /v1/accounts payload."""
    return {
        "accounts": [
            {
                "type": "Margin",
                "number": "123456",
                "status": "Active",
                "isPrimary": False,
                "isBilling": False,
                "clientAccountType": "Joint",
            },
            {
                "type": "Cash",
                "number": "26598145",
                "status": "Active",
                "isPrimary": True,
                "isBilling": True,
                "clientAccountType": "Individual",
            },
        ],
        "userId": 3000124,
    }


def _balance(currency: str, cash, market_value, total_equity, buying_power, excess) -> dict:
    return {
        "currency": currency,
        "cash": cash,
        "marketValue": market_value,
        "totalEquity": total_equity,
        "buyingPower": buying_power,
        "maintenanceExcess": excess,
        "isRealTime": True,
    }


@pytest.fixture
def sample_balances_data():
    """Sample /v1/accounts/:id/balances payload."""
    from decimal import Decimal as D

    return {
        "perCurrencyBalances": [
            _balance("CAD", D("322.7015"), D("6239.64"), D("6562.3415"), D("15473.182995"), D("4646.6015")),
            _balance("USD", 0, 0, 0, 0, 0),
        ],
        "combinedBalances": [
            _balance("CAD", D("322.7015"), D("6239.64"), D("6562.3415"), D("15473.182995"), D("4646.6015")),
            _balance("USD", D("242.541526"), D("4689.695603"), D("4932.237129"), D("11629.600147"), D("3492.372416")),
        ],
        "sodPerCurrencyBalances": [
            _balance("CAD", D("322.7015"), 6177, D("6499.7015"), D("15473.182995"), D("4646.6015")),
            _balance("USD", 0, 0, 0, 0, 0),
        ],
        "sodCombinedBalances": [
            _balance("CAD", D("322.7015"), 6177, D("6499.7015"), D("15473.182995"), D("4646.6015")),
            _balance("USD", D("242.541526"), D("4642.615558"), D("4885.157084"), D("11629.600147"), D("3492.372416")),
        ],
    }


@pytest.fixture
def sample_positions_data():
    """Sample /v1/accounts/:id/positions payload."""
    from decimal import Decimal as D

    return {
        "positions": [
            {
                "symbol": "THI.TO",
                "symbolId": 38738,
                "openQuantity": 100,
                "closedQuantity": 0,
                "currentMarketValue": 6017,
                "currentPrice": D("60.17"),
                "averageEntryPrice": D("60.23"),
                "closedPnl": 0,
                "openPnl": -6,
                "totalCost": 6023,
                "isRealTime": True,
                "isUnderReorg": False,
            }
        ]
    }


@pytest.fixture
def sample_activities_data():
    """Sample /v1/accounts/:id/activities payload."""
    from decimal import Decimal as D

    return {
        "activities": [
            {
                "tradeDate": "2011-02-16T00:00:00.000000-05:00",
                "transactionDate": "2011-02-16T00:00:00.000000-05:00",
                "settlementDate": "2011-02-16T00:00:00.000000-05:00",
                "action": "",
                "symbol": "",
                "symbolId": 0,
                "description": "INT FR 02/04 THRU02/15@ 4 3/4%BAL  205,006   AVBAL  204,966 ",
                "currency": "USD",
                "quantity": 0,
                "price": 0,
                "grossAmount": 0,
                "commission": 0,
                "netAmount": D("-320.08"),
                "type": "Interest",
            }
        ]
    }


@pytest.fixture
def env_snapshot():
    original = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original)
