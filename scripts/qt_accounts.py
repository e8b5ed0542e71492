#!/usr/bin/env python
"""List accounts with their combined balances (/v1/accounts, /v1/accounts/:id/balances)."""

from __future__ import annotations

import argparse
import logging
import sys

import pandas as pd

from qtsys.client import PRACTICE_ENV, ApiError, QuestradeClient
from qtsys.core.utils.env import env_flag
from qtsys.data.auth import AuthError, load_refresh_token

logger = logging.getLogger(__name__)


def build_rows(client: QuestradeClient, currency: str) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for account in client.accounts():
        balance = client.account_balance(account.number).combined(currency)
        rows.append(
            {
                "number": account.number,
                "type": account.account_type.value,
                "status": account.status.value,
                "primary": account.is_primary,
                "currency": currency,
                "cash": balance.cash if balance else None,
                "market_value": balance.market_value if balance else None,
                "total_equity": balance.total_equity if balance else None,
                "buying_power": balance.buying_power if balance else None,
            }
        )
    return rows


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Show Questrade accounts and combined balances")
    parser.add_argument("--currency", choices=["CAD", "USD"], default="CAD", help="Combined balance currency")
    parser.add_argument("--practice", action="store_true", help="Use the practice login host")
    args = parser.parse_args()

    use_practice = args.practice or env_flag(PRACTICE_ENV)
    client = QuestradeClient.from_profile(use_practice)
    try:
        client.authenticate(load_refresh_token(), use_practice=use_practice)
        rows = build_rows(client, args.currency)
    except (AuthError, ApiError) as e:
        logger.error(f"Failed to load accounts: {e}")
        return 1
    finally:
        # The token in the environment is consumed once authenticate succeeds
        if client.session is not None:
            print(f"new refresh token: {client.session.refresh_token}", file=sys.stderr)

    df = pd.DataFrame(rows)
    print(df.to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
