#!/usr/bin/env python
"""Exchange a Questrade refresh token and print the rotated one.

The token passed in is dead after a successful run; store the printed
refresh_token before doing anything else.
"""

from __future__ import annotations

import argparse
import json
import logging

from qtsys.core.utils.env import env_flag, load_env_file_if_present
from qtsys.data.auth import REFRESH_TOKEN_ENV, AuthError, exchange_refresh_token, load_refresh_token

logger = logging.getLogger(__name__)


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Exchange a Questrade refresh token for an access token")
    parser.add_argument(
        "--refresh-token",
        dest="refresh_token",
        default=None,
        help=f"Refresh token (defaults to ${REFRESH_TOKEN_ENV} or .env)",
    )
    parser.add_argument(
        "--practice",
        action="store_true",
        help="Use the practice login host (also enabled by QT_PRACTICE=1)",
    )
    args = parser.parse_args()

    load_env_file_if_present()
    use_practice = args.practice or env_flag("QT_PRACTICE")
    try:
        refresh = args.refresh_token or load_refresh_token(dotenv=False)
        session = exchange_refresh_token(refresh, use_practice=use_practice)
    except AuthError as e:
        logger.error(f"Authentication failed: {e}")
        return 1

    print(
        json.dumps(
            {
                "ok": True,
                "refresh_token": session.refresh_token,
                "api_server": session.api_server,
                "expires_at": session.expires_at.isoformat(),
                "access_token_prefix": session.access_token[:8] + "...",
                "practice": session.is_practice,
            }
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
