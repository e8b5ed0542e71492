"""Lightweight Questrade API client.

This package provides:
- Refresh-token authentication with single-use token rotation
- A thread-safe session manager that refreshes expired access tokens once
- Account, balance, position and activity queries returning typed records
"""

from qtsys.client import (
    ApiError,
    DecodeError,
    NotFoundError,
    QuestradeClient,
    TransportError,
    UnauthorizedError,
)
from qtsys.data.auth import AuthError, Session
from qtsys.session import SessionManager

__all__ = [
    "ApiError",
    "AuthError",
    "DecodeError",
    "NotFoundError",
    "QuestradeClient",
    "Session",
    "SessionManager",
    "TransportError",
    "UnauthorizedError",
]
