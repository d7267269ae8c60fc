from decimal import Decimal

import pytest

from core.errors import ValidationError, NotFoundError, AuthorizationError, ConflictError
from core.services.notification_dispatcher import NotificationDispatcher
from core.use_cases.rate_use_cases import (
    quote_conversion,
    get_exchange_rate,
    list_exchange_rates,
    set_exchange_rate,
    seed_default_rate,
)


@pytest.fixture
def notifier(notifications):
    return NotificationDispatcher(notifications)


def test_quote_matches_conversion_arithmetic(rates):
    quote = quote_conversion(rates, "usd_try", "100")
    assert quote.currency_pair == "USD_TRY"
    assert quote.commission_amount == Decimal("83.24")
    assert quote.target_amount == Decimal("3458.76")


def test_quote_for_unknown_pair(rates):
    with pytest.raises(NotFoundError):
        quote_conversion(rates, "EUR_TRY", "100")


@pytest.mark.parametrize("pair", ["USDTRY", "US_TRY", "USD_USD", ""])
def test_malformed_pair(rates, pair):
    with pytest.raises(ValidationError) as exc:
        get_exchange_rate(rates, pair)
    assert exc.value.field == "currency_pair"


def test_new_rate_is_broadcast(alice, admin, rates, notifier, notifications):
    saved = set_exchange_rate(rates, notifier, admin, "EUR_TRY", "38.10", "0.02")

    assert saved.rate == Decimal("38.10")
    assert saved.updated_by == admin.id
    assert [r.currency_pair for r in list_exchange_rates(rates)] == ["EUR_TRY", "USD_TRY"]
    inbox = notifications.list_visible(alice.id, is_admin=False)
    assert [n.title for n in inbox] == ["New exchange rate added"]
    assert inbox[0].is_broadcast


@pytest.mark.parametrize("rate, word", [("36.00", "increased"), ("30", "decreased"), ("35.42", "was updated")])
def test_rate_change_direction(alice, admin, rates, notifier, notifications, rate, word):
    set_exchange_rate(rates, notifier, admin, "USD_TRY", rate, "0.0235")
    inbox = notifications.list_visible(alice.id, is_admin=False)
    assert inbox[0].title == "Exchange rate updated"
    assert word in inbox[0].message


def test_rate_change_requires_admin(alice, rates, notifier):
    with pytest.raises(AuthorizationError):
        set_exchange_rate(rates, notifier, alice, "USD_TRY", "40", "0.01")
    assert get_exchange_rate(rates, "USD_TRY").rate == Decimal("35.42")


@pytest.mark.parametrize("rate, commission, field", [
    ("0", "0.01", "rate"),
    ("-1", "0.01", "rate"),
    ("35", "1", "commission_rate"),
    ("35", "-0.1", "commission_rate"),
])
def test_rate_validation(admin, rates, notifier, rate, commission, field):
    with pytest.raises(ValidationError) as exc:
        set_exchange_rate(rates, notifier, admin, "USD_TRY", rate, commission)
    assert exc.value.field == field


def test_new_rate_invalidates_old_quotes(alice, admin, rates, notifier, create_conversion):
    set_exchange_rate(rates, notifier, admin, "USD_TRY", "36.00", "0.0235")
    with pytest.raises(ConflictError):
        create_conversion(alice)


def test_seed_does_not_overwrite(rates):
    seed_default_rate(rates, "USD_TRY", "1.00", "0")
    assert get_exchange_rate(rates, "USD_TRY").rate == Decimal("35.42")
    seed_default_rate(rates, "GBP_TRY", "44.10", "0.02")
    assert get_exchange_rate(rates, "GBP_TRY").rate == Decimal("44.10")
