"""Typed records for Questrade account responses.

Each record has a ``from_api`` constructor taking the decoded JSON object.
Constructors raise KeyError, TypeError or ValueError on malformed payloads;
the client turns those into DecodeError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class AccountType(str, Enum):
    CASH = "Cash"
    MARGIN = "Margin"
    TFSA = "TFSA"
    RRSP = "RRSP"
    SRRSP = "SRRSP"
    LRRSP = "LRRSP"
    LIRA = "LIRA"
    LIF = "LIF"
    RIF = "RIF"
    SRIF = "SRIF"
    LRIF = "LRIF"
    RRIF = "RRIF"
    PRIF = "PRIF"
    RESP = "RESP"
    FRESP = "FRESP"


class AccountStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED_CLOSED = "Suspended (Closed)"
    SUSPENDED_VIEW_ONLY = "Suspended (View Only)"
    LIQUIDATE_ONLY = "Liquidate Only"
    CLOSED = "Closed"


class ClientAccountType(str, Enum):
    INDIVIDUAL = "Individual"
    JOINT = "Joint"
    INFORMAL_TRUST = "Informal Trust"
    CORPORATION = "Corporation"
    INVESTMENT_CLUB = "Investment Club"
    FORMAL_TRUST = "Formal Trust"
    PARTNERSHIP = "Partnership"
    SOLE_PROPRIETORSHIP = "Sole Proprietorship"
    FAMILY = "Family"
    JOINT_AND_INFORMAL_TRUST = "Joint and Informal Trust"
    INSTITUTION = "Institution"


class Currency(str, Enum):
    CAD = "CAD"
    USD = "USD"


def to_decimal(value: Any) -> Decimal:
    """Convert a JSON number to Decimal without going through binary float text."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Expected a number, got {value!r}")
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Expected a number, got {value!r}") from e


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str):
        raise ValueError(f"Expected a timestamp string, got {value!r}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected a boolean, got {value!r}")
    return value


@dataclass
class Account:
    """Account registered to the authenticated user."""

    number: str
    account_type: AccountType
    status: AccountStatus
    is_primary: bool = False
    is_billing: bool = False
    client_account_type: ClientAccountType = ClientAccountType.INDIVIDUAL

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Account:
        return cls(
            number=str(data["number"]),
            account_type=AccountType(data["type"]),
            status=AccountStatus(data["status"]),
            is_primary=to_bool(data["isPrimary"]),
            is_billing=to_bool(data["isBilling"]),
            client_account_type=ClientAccountType(data["clientAccountType"]),
        )


@dataclass
class AccountBalance:
    """Balance figures for one currency side of an account."""

    currency: Currency
    cash: Decimal
    market_value: Decimal
    total_equity: Decimal
    buying_power: Decimal
    maintenance_excess: Decimal
    is_real_time: bool

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AccountBalance:
        return cls(
            currency=Currency(data["currency"]),
            cash=to_decimal(data["cash"]),
            market_value=to_decimal(data["marketValue"]),
            total_equity=to_decimal(data["totalEquity"]),
            buying_power=to_decimal(data["buyingPower"]),
            maintenance_excess=to_decimal(data["maintenanceExcess"]),
            is_real_time=to_bool(data["isRealTime"]),
        )


@dataclass
class AccountBalances:
    """Current and start-of-day balances, per currency and combined."""

    per_currency_balances: list[AccountBalance]
    combined_balances: list[AccountBalance]
    sod_per_currency_balances: list[AccountBalance]
    sod_combined_balances: list[AccountBalance]

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AccountBalances:
        def _balances(key: str) -> list[AccountBalance]:
            return [AccountBalance.from_api(item) for item in data[key]]

        return cls(
            per_currency_balances=_balances("perCurrencyBalances"),
            combined_balances=_balances("combinedBalances"),
            sod_per_currency_balances=_balances("sodPerCurrencyBalances"),
            sod_combined_balances=_balances("sodCombinedBalances"),
        )

    def combined(self, currency: Currency | str) -> AccountBalance | None:
        """Return the combined balance expressed in `currency`, if reported."""
        currency = Currency(currency)
        for balance in self.combined_balances:
            if balance.currency is currency:
                return balance
        return None


@dataclass
class AccountPosition:
    symbol: str
    symbol_id: int
    open_quantity: Decimal
    closed_quantity: Decimal
    current_market_value: Decimal
    current_price: Decimal
    average_entry_price: Decimal
    closed_pnl: Decimal
    open_pnl: Decimal
    total_cost: Decimal
    is_real_time: bool
    is_under_reorg: bool

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AccountPosition:
        return cls(
            symbol=str(data["symbol"]),
            symbol_id=int(data["symbolId"]),
            open_quantity=to_decimal(data["openQuantity"]),
            closed_quantity=to_decimal(data["closedQuantity"]),
            current_market_value=to_decimal(data["currentMarketValue"]),
            current_price=to_decimal(data["currentPrice"]),
            average_entry_price=to_decimal(data["averageEntryPrice"]),
            closed_pnl=to_decimal(data["closedPnl"]),
            open_pnl=to_decimal(data["openPnl"]),
            total_cost=to_decimal(data["totalCost"]),
            is_real_time=to_bool(data["isRealTime"]),
            is_under_reorg=to_bool(data["isUnderReorg"]),
        )


@dataclass
class AccountActivity:
    """Cash transaction, dividend, trade or other account activity."""

    trade_date: datetime
    transaction_date: datetime
    settlement_date: datetime
    action: str
    symbol: str
    symbol_id: int
    description: str
    currency: str
    quantity: Decimal
    price: Decimal
    gross_amount: Decimal
    commission: Decimal
    net_amount: Decimal
    activity_type: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AccountActivity:
        return cls(
            trade_date=parse_datetime(data["tradeDate"]),
            transaction_date=parse_datetime(data["transactionDate"]),
            settlement_date=parse_datetime(data["settlementDate"]),
            action=str(data["action"]),
            symbol=str(data["symbol"]),
            symbol_id=int(data["symbolId"]),
            description=str(data["description"]),
            currency=str(data["currency"]),
            quantity=to_decimal(data["quantity"]),
            price=to_decimal(data["price"]),
            gross_amount=to_decimal(data["grossAmount"]),
            commission=to_decimal(data["commission"]),
            net_amount=to_decimal(data["netAmount"]),
            activity_type=str(data["type"]),
        )
