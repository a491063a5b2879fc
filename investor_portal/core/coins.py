"""
Coin arithmetic and investment-input validation.

One module owns the investor discount and the minimum investment so that the
portal's preview, the submitted payload and the service's recomputation can
never drift apart.

The 20% investor discount is expressed two ways:

* coins awarded are multiplied by ``INVESTOR_BONUS_MULTIPLIER`` (1.2);
* the stored ``discounted_rate`` is the coin price multiplied by
  ``DISCOUNTED_PRICE_FACTOR`` (0.8).

``expected_coins`` is always derived from the 1.2× multiplier;
``discounted_rate`` is a stored display value and is never used to derive
coins.  Arithmetic is done in ``Decimal``; the single rounding rule is
nearest integer with ties away from zero (``ROUND_HALF_UP``).

Amounts and rates are accepted only at the scale their columns store
(cents and 10 decimal places), so a persisted request can always be
re-priced from its own stored figures to the same ``expected_coins``.

The coin supply is capped by the ``total_coin_limit`` setting; pending and
approved requests count against it.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from investor_portal.core.exceptions import ValidationError

MINIMUM_INVESTMENT = Decimal("100")
INVESTOR_BONUS_MULTIPLIER = Decimal("1.2")
DISCOUNTED_PRICE_FACTOR = Decimal("0.8")

# Storage scales of the amount (Numeric(20, 2)) and rate (Numeric(24, 10)) columns.
AMOUNT_QUANTUM = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0000000001")

# Utilisation at which the coin supply is reported as nearly full.
NEARLY_FULL_PERCENTAGE = Decimal("90")

_ZERO = Decimal("0")


class CoinQuote(BaseModel):
    """Coin allocation for one amount at one rate."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal
    rate: Decimal
    base_coins: Decimal
    discounted_coins: Decimal

    @property
    def expected_coins(self) -> int:
        """The persisted, rounded coin count."""
        return round_coins(self.discounted_coins)

    @property
    def bonus_coins(self) -> Decimal:
        return self.discounted_coins - self.base_coins

    @property
    def discounted_rate(self) -> Decimal:
        return discounted_rate(self.rate)

    @property
    def is_zero(self) -> bool:
        return self.discounted_coins == _ZERO


def round_coins(coins: Decimal) -> int:
    """Round a fractional coin amount to the nearest whole coin (ties away from zero)."""
    return int(coins.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def discounted_rate(rate: Decimal) -> Decimal:
    """Effective coin price after the investor discount, at storage scale."""
    return (rate * DISCOUNTED_PRICE_FACTOR).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_coins(amount: Decimal, rate: Decimal) -> CoinQuote:
    """
    Convert ``amount`` currency units into coins at ``rate`` per coin.

    Non-positive inputs produce a zero quote; callers reject such input
    before persisting anything.
    """
    if amount <= _ZERO or rate <= _ZERO:
        return CoinQuote(amount=amount, rate=rate, base_coins=_ZERO, discounted_coins=_ZERO)

    base = amount / rate
    return CoinQuote(
        amount=amount,
        rate=rate,
        base_coins=base,
        discounted_coins=base * INVESTOR_BONUS_MULTIPLIER,
    )


def parse_amount(value: Any, field: str = "investment_amount") -> Decimal:
    """
    Turn raw user input into a finite ``Decimal``.

    Accepts ``Decimal``, ``int``, ``float`` and numeric strings (surrounding
    whitespace, ``$`` and thousands separators are tolerated).
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("Investment amount must be a number", field=field)

    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "")
    elif isinstance(value, float):
        value = repr(value)

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Investment amount must be a number", field=field)

    if not amount.is_finite():
        raise ValidationError("Investment amount must be a number", field=field)
    return amount


def is_storable(value: Decimal, quantum: Decimal, max_digits: int) -> bool:
    """True when ``value`` fits a ``Numeric(max_digits, scale of quantum)`` column unrounded."""
    try:
        stored = value.quantize(quantum)
    except InvalidOperation:
        return False
    return stored == value and len(stored.as_tuple().digits) <= max_digits


def validate_investment_amount(amount: Decimal) -> Decimal:
    """Enforce the minimum investment and whole cents; returns ``amount`` unchanged."""
    if amount < MINIMUM_INVESTMENT:
        raise ValidationError(
            f"Minimum investment amount is ${MINIMUM_INVESTMENT}",
            field="investment_amount",
        )
    if not is_storable(amount, AMOUNT_QUANTUM, 20):
        raise ValidationError(
            "Investment amount must be given in whole cents", field="investment_amount"
        )
    return amount


def validate_rate(rate: Optional[Decimal]) -> Decimal:
    """A usable rate is present, strictly positive and has at most 10 decimal places."""
    if rate is None or not rate.is_finite() or rate <= _ZERO:
        raise ValidationError(
            "Current coin rate is not available; investment requests cannot be priced",
            field="current_rate",
        )
    if not is_storable(rate, RATE_QUANTUM, 24):
        raise ValidationError(
            "Coin rate cannot have more than 10 decimal places", field="current_rate"
        )
    return rate


class CoinAvailability(BaseModel):
    """How much of the coin supply is still open to new requests."""

    model_config = ConfigDict(frozen=True)

    total_coin_limit: Optional[int] = None
    currently_used_coins: int
    available_coins: Optional[int] = None
    utilization_percentage: Optional[float] = None
    is_available: bool
    is_nearly_full: bool


def coin_availability(total_coin_limit: Optional[int], used_coins: int) -> CoinAvailability:
    """Supply snapshot; no limit configured means the supply is uncapped."""
    if total_coin_limit is None:
        return CoinAvailability(
            currently_used_coins=used_coins, is_available=True, is_nearly_full=False
        )

    available = max(total_coin_limit - used_coins, 0)
    if total_coin_limit > 0:
        utilization = (Decimal(used_coins) * 100 / Decimal(total_coin_limit)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
    else:
        utilization = Decimal("100")
    return CoinAvailability(
        total_coin_limit=total_coin_limit,
        currently_used_coins=used_coins,
        available_coins=available,
        utilization_percentage=float(utilization),
        is_available=available > 0,
        is_nearly_full=utilization >= NEARLY_FULL_PERCENTAGE,
    )


def ensure_coins_available(requested: int, availability: CoinAvailability) -> None:
    if not availability.is_available:
        raise ValidationError(
            "No coins are currently available for new investments", field="expected_coins"
        )
    if availability.available_coins is not None and requested > availability.available_coins:
        raise ValidationError(
            f"Requested {requested:,} coins exceeds available "
            f"{availability.available_coins:,} coins",
            field="expected_coins",
        )
