"""
Rate calculation for commission rules.

Pure functions over ``Decimal`` amounts. Nothing here touches Django, so the
calculator can be exercised directly in tests and reused by the resolver.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Sequence, Tuple

from .errors import InvalidAmount, InvalidBands, InvalidRate, NoMatchingBand


_HUNDRED = Decimal('100')
_ZERO = Decimal('0')
_RATE_PLACES = Decimal('0.0001')


def to_decimal(value: Any, *, field: str = 'amount') -> Decimal:
    """Coerce ints, strings and Decimals to a finite Decimal; floats go through str()."""
    if value is None or value == '' or isinstance(value, bool):
        raise InvalidAmount(f"Missing or invalid {field}.")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise InvalidAmount(f"Invalid decimal for {field}: {value!r}") from exc
    if not result.is_finite():
        raise InvalidAmount(f"{field} must be a finite number, got {value!r}")
    return result


def _rate_decimal(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value, field=field)
    except InvalidAmount as exc:
        raise InvalidRate(str(exc)) from exc


def round_money(value: Decimal, places: int = 2) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class RateResult:
    effective_rate: Decimal
    commission_amount: Decimal


@dataclass(frozen=True, slots=True)
class Band:
    min: Decimal
    max: Decimal
    rate: Decimal

    def __post_init__(self):
        object.__setattr__(self, 'min', to_decimal(self.min, field='band min'))
        object.__setattr__(self, 'max', to_decimal(self.max, field='band max'))
        object.__setattr__(self, 'rate', _rate_decimal(self.rate, 'band rate'))

    def contains(self, amount: Decimal) -> bool:
        return self.min <= amount <= self.max


@dataclass(frozen=True, slots=True)
class Percentage:
    rate: Decimal

    kind = 'percentage'

    def __post_init__(self):
        object.__setattr__(self, 'rate', _rate_decimal(self.rate, 'rate'))

    def evaluate(self, amount: Decimal) -> Tuple[Decimal, Decimal]:
        if self.rate < 0:
            raise InvalidRate(f"Percentage rate cannot be negative: {self.rate}")
        return self.rate, amount * self.rate / _HUNDRED


@dataclass(frozen=True, slots=True)
class Fixed:
    amount: Decimal

    kind = 'fixed'

    def __post_init__(self):
        object.__setattr__(self, 'amount', _rate_decimal(self.amount, 'fixed amount'))

    def evaluate(self, amount: Decimal) -> Tuple[Decimal, Decimal]:
        if self.amount < 0:
            raise InvalidRate(f"Fixed commission cannot be negative: {self.amount}")
        if amount == 0:
            # Display-only rate; an empty order has nothing to divide by.
            return _ZERO, self.amount
        effective = (self.amount / amount * _HUNDRED).quantize(
            _RATE_PLACES, rounding=ROUND_HALF_UP
        )
        return effective, self.amount


@dataclass(frozen=True, slots=True)
class Tiered:
    bands: Tuple[Band, ...]

    kind = 'tiered'

    def evaluate(self, amount: Decimal) -> Tuple[Decimal, Decimal]:
        validate_bands(self.bands)
        # Touching bands share an endpoint; the lower band owns it.
        for band in self.bands:
            if band.contains(amount):
                return band.rate, amount * band.rate / _HUNDRED
        raise NoMatchingBand(f"No tier band covers amount {amount}")


def validate_bands(bands: Sequence[Band]) -> None:
    """Check that bands are non-empty, ascending and non-overlapping.

    Adjacent bands may touch (``next.min == prev.max``) but must not overlap.
    Raises :class:`InvalidBands` or :class:`InvalidRate`.
    """
    if not bands:
        raise InvalidBands("Tiered rate requires at least one band")

    previous = None
    for index, band in enumerate(bands):
        if band.min > band.max:
            raise InvalidBands(
                f"Band {index} has min {band.min} greater than max {band.max}"
            )
        if band.rate < 0:
            raise InvalidRate(f"Band {index} has a negative rate: {band.rate}")
        if previous is not None:
            if band.min < previous.min:
                raise InvalidBands(f"Band {index} is out of ascending order")
            if band.min < previous.max:
                raise InvalidBands(
                    f"Band {index} [{band.min}, {band.max}] overlaps "
                    f"[{previous.min}, {previous.max}]"
                )
        previous = band


def bands_from_dicts(tiers: Sequence[dict]) -> Tuple[Band, ...]:
    """Build bands from ``{min_value, max_value, rate}`` dicts, keeping input order."""
    bands = []
    for index, tier in enumerate(tiers or []):
        if not isinstance(tier, dict):
            raise InvalidBands(f"Band {index} is not a mapping")
        try:
            bands.append(Band(
                min=to_decimal(tier.get('min_value'), field=f'tiers[{index}].min_value'),
                max=to_decimal(tier.get('max_value'), field=f'tiers[{index}].max_value'),
                rate=to_decimal(tier.get('rate'), field=f'tiers[{index}].rate'),
            ))
        except InvalidAmount as exc:
            raise InvalidBands(str(exc)) from exc
    return tuple(bands)


def compute(rate_spec, amount: Any, places: int = 2) -> RateResult:
    """Compute the commission owed on ``amount`` under ``rate_spec``.

    The commission is rounded once, half-up, to ``places`` minor-unit digits.
    """
    amount = to_decimal(amount)
    if amount < 0:
        raise InvalidAmount(f"Order amount cannot be negative: {amount}")

    effective_rate, raw = rate_spec.evaluate(amount)
    return RateResult(
        effective_rate=effective_rate,
        commission_amount=round_money(raw, places),
    )
