from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from qtsys.models import (
    Account,
    AccountBalances,
    AccountStatus,
    Currency,
    parse_datetime,
    to_bool,
    to_decimal,
)


class TestAccount:
    def test_from_api(self):
        account = Account.from_api(
            {
                "type": "TFSA",
                "number": 26598145,
                "status": "Suspended (View Only)",
                "isPrimary": True,
                "isBilling": False,
                "clientAccountType": "Joint and Informal Trust",
            }
        )

        assert account.number == "26598145"
        assert account.account_type.value == "TFSA"
        assert account.status is AccountStatus.SUSPENDED_VIEW_ONLY
        assert account.client_account_type.value == "Joint and Informal Trust"

    def test_enum_members_compare_to_wire_values(self):
        assert AccountStatus.LIQUIDATE_ONLY == "Liquidate Only"

    def test_missing_field_raises_key_error(self):
        with pytest.raises(KeyError):
            Account.from_api({"number": "1"})


class TestAccountBalances:
    def test_combined_lookup(self, sample_balances_data):
        balances = AccountBalances.from_api(sample_balances_data)

        assert balances.combined("CAD").total_equity == Decimal("6562.3415")
        assert balances.combined(Currency.USD).cash == Decimal("242.541526")

    def test_combined_missing_currency(self, sample_balances_data):
        sample_balances_data["combinedBalances"] = sample_balances_data["combinedBalances"][:1]
        balances = AccountBalances.from_api(sample_balances_data)

        assert balances.combined("USD") is None

    def test_unknown_currency_rejected(self, sample_balances_data):
        sample_balances_data["perCurrencyBalances"][0]["currency"] = "EUR"

        with pytest.raises(ValueError):
            AccountBalances.from_api(sample_balances_data)


class TestConverters:
    @pytest.mark.parametrize(
        "value, expected",
        [(0, Decimal("0")), (6177, Decimal("6177")), (Decimal("0.10"), Decimal("0.10")), ("1.5", Decimal("1.5"))],
    )
    def test_to_decimal(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", [None, True, "abc"])
    def test_to_decimal_rejects(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_to_bool_rejects_non_bool(self):
        assert to_bool(False) is False
        with pytest.raises(ValueError):
            to_bool("true")

    def test_parse_datetime_with_offset(self):
        parsed = parse_datetime("2011-02-16T00:00:00.000000-05:00")
        assert parsed.utcoffset() == timedelta(hours=-5)

    def test_parse_datetime_zulu_and_naive(self):
        expected = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert parse_datetime("2024-01-15T09:30:00Z") == expected
        assert parse_datetime("2024-01-15T09:30:00") == expected

    def test_parse_datetime_rejects_non_string(self):
        with pytest.raises(ValueError):
            parse_datetime(1700000000)
