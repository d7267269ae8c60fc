import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Any, Tuple

from core.entities.exchange_rate import ExchangeRate
from core.entities.money import parse_amount, parse_rate, parse_commission_rate, quantize_amount
from core.entities.notification import Broadcast
from core.entities.user import User
from core.errors import ValidationError, NotFoundError, AuthorizationError
from core.repositories.catalog_repository import ExchangeRateRepository
from core.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

PAIR_RE = re.compile(r"^[A-Z]{3}_[A-Z]{3}$")


@dataclass
class Quote:
    currency_pair: str
    source_amount: Decimal
    rate: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    target_amount: Decimal


def normalize_pair(currency_pair: str) -> str:
    pair = (currency_pair or "").strip().upper()
    if not PAIR_RE.match(pair):
        raise ValidationError("currency_pair must look like USD_TRY", field="currency_pair")
    source, target = pair.split("_")
    if source == target:
        raise ValidationError("currency_pair must name two different currencies", field="currency_pair")
    return pair


def conversion_amounts(source_amount: Decimal, rate: Decimal, commission_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """Unrounded (commission_amount, target_amount) for a conversion."""
    gross = source_amount * rate
    commission = gross * commission_rate
    return commission, gross - commission


def quote_conversion(repo: ExchangeRateRepository, currency_pair: str, source_amount: Any) -> Quote:
    pair = normalize_pair(currency_pair)
    amount = parse_amount(source_amount, "source_amount")
    current = repo.get(pair)
    if current is None:
        raise NotFoundError(f"Exchange rate {pair} not found")
    commission, target = conversion_amounts(amount, current.rate, current.commission_rate)
    return Quote(
        currency_pair=pair,
        source_amount=amount,
        rate=current.rate,
        commission_rate=current.commission_rate,
        commission_amount=quantize_amount(commission),
        target_amount=quantize_amount(target),
    )


def get_exchange_rate(repo: ExchangeRateRepository, currency_pair: str) -> ExchangeRate:
    pair = normalize_pair(currency_pair)
    current = repo.get(pair)
    if current is None:
        raise NotFoundError(f"Exchange rate {pair} not found")
    return current


def list_exchange_rates(repo: ExchangeRateRepository) -> List[ExchangeRate]:
    return repo.list_all()


def set_exchange_rate(
    repo: ExchangeRateRepository,
    notifier: NotificationDispatcher,
    admin: User,
    currency_pair: str,
    rate: Any,
    commission_rate: Any,
) -> ExchangeRate:
    """Upsert a rate and broadcast the change to every user."""
    if not admin.is_admin:
        logger.warning("security: user %s tried to set exchange rate %s", admin.id, currency_pair)
        raise AuthorizationError("Only administrators can change exchange rates")
    pair = normalize_pair(currency_pair)
    new_rate = parse_rate(rate, "rate")
    new_commission = parse_commission_rate(commission_rate, "commission_rate")

    previous = repo.get(pair)
    saved = repo.upsert(pair, new_rate, new_commission, updated_by=admin.id)
    logger.info("Exchange rate %s set to %s (commission %s) by admin %s", pair, new_rate, new_commission, admin.id)

    if previous is None:
        title = "New exchange rate added"
        message = f"A new exchange rate was added for {pair}: {new_rate}"
    else:
        if new_rate > previous.rate:
            direction = "increased"
        elif new_rate < previous.rate:
            direction = "decreased"
        else:
            direction = "was updated"
        title = "Exchange rate updated"
        message = f"The {pair} exchange rate {direction}: {new_rate}"
    notifier.notify(
        Broadcast(),
        title=title,
        message=message,
        type="info",
        related_entity_type="exchange_rate",
        related_entity_id=saved.id,
    )
    return saved


def seed_default_rate(repo: ExchangeRateRepository, currency_pair: str, rate: str, commission_rate: str) -> None:
    pair = normalize_pair(currency_pair)
    if repo.get(pair) is None:
        repo.upsert(pair, parse_rate(rate), parse_commission_rate(commission_rate), updated_by=None)
        logger.info("Seeded default exchange rate %s = %s", pair, rate)
