"""
Tests for the rate calculator. Pure functions, no database.
"""
import pytest
from decimal import Decimal

from marketplace_commissions.engine import (
    Band,
    Fixed,
    InvalidAmount,
    InvalidBands,
    InvalidRate,
    NoMatchingBand,
    Percentage,
    Tiered,
    bands_from_dicts,
    compute,
    validate_bands,
)


def _bands(*triples):
    return tuple(Band(Decimal(str(lo)), Decimal(str(hi)), Decimal(str(r))) for lo, hi, r in triples)


HIGH_VALUE = Tiered(_bands(
    (500000, 1000000, 4.0),
    (1000000, 2000000, 3.5),
    (2000000, 999999999, 3.0),
))


class TestPercentage:
    """Tests for percentage rates."""

    def test_electronics_sample(self):
        result = compute(Percentage(Decimal('5.0')), 250000)
        assert result.commission_amount == Decimal('12500')
        assert result.effective_rate == Decimal('5.0')

    def test_float_rate_and_int_amount(self):
        result = compute(Percentage(5.0), 250000)
        assert result.commission_amount == Decimal('12500')
        assert result.effective_rate == Decimal('5.0')

    def test_rate_coerced_to_decimal(self):
        assert Percentage('7.5').rate == Decimal('7.5')
        assert Percentage(0.1).rate == Decimal('0.1')

    def test_non_numeric_rate_rejected(self):
        with pytest.raises(InvalidRate):
            Percentage('five')

    def test_zero_rate_is_legal(self):
        result = compute(Percentage(Decimal('0')), Decimal('1000'))
        assert result.commission_amount == Decimal('0')

    def test_negative_rate_rejected(self):
        with pytest.raises(InvalidRate):
            compute(Percentage(Decimal('-1')), Decimal('1000'))

    def test_rounds_half_up_once(self):
        # 0.125 -> 0.13 with half-up; banker's rounding would give 0.12
        result = compute(Percentage(Decimal('2.5')), Decimal('5'))
        assert result.commission_amount == Decimal('0.13')

    def test_rounding_to_minor_unit(self):
        result = compute(Percentage(Decimal('7.5')), Decimal('333.33'))
        assert result.commission_amount == Decimal('25.00')
        assert result.commission_amount.as_tuple().exponent == -2

    def test_custom_places(self):
        result = compute(Percentage(Decimal('7.5')), Decimal('333.33'), places=0)
        assert result.commission_amount == Decimal('25')

    def test_string_amount_accepted(self):
        result = compute(Percentage(Decimal('10')), '199.99')
        assert result.commission_amount == Decimal('20.00')


class TestFixed:
    """Tests for fixed commissions."""

    def test_amount_independent_of_order(self):
        small = compute(Fixed(Decimal('500')), Decimal('1000'))
        large = compute(Fixed(Decimal('500')), Decimal('1000000'))
        assert small.commission_amount == large.commission_amount == Decimal('500')

    def test_int_fixed_amount(self):
        result = compute(Fixed(500), 10000)
        assert result.commission_amount == Decimal('500')
        assert isinstance(result.commission_amount, Decimal)

    def test_effective_rate_for_display(self):
        result = compute(Fixed(Decimal('500')), Decimal('10000'))
        assert result.effective_rate == Decimal('5')

    def test_zero_order_amount_reports_zero_rate(self):
        result = compute(Fixed(Decimal('500')), Decimal('0'))
        assert result.effective_rate == Decimal('0')
        assert result.commission_amount == Decimal('500')

    def test_negative_fixed_rejected(self):
        with pytest.raises(InvalidRate):
            compute(Fixed(Decimal('-5')), Decimal('100'))


class TestTiered:
    """Tests for tiered, banded rates."""

    def test_high_value_sample(self):
        result = compute(HIGH_VALUE, 750000)
        assert result.effective_rate == Decimal('4.0')
        assert result.commission_amount == Decimal('30000')

    def test_rate_applies_to_whole_amount(self):
        result = compute(HIGH_VALUE, 1500000)
        assert result.effective_rate == Decimal('3.5')
        assert result.commission_amount == Decimal('52500')

    def test_plain_number_bands(self):
        tiered = Tiered((
            Band(500000, 1000000, 4.0),
            Band(1000000, 2000000, 3.5),
            Band(2000000, 999999999, 3.0),
        ))
        result = compute(tiered, 750000)
        assert result.effective_rate == Decimal('4.0')
        assert result.commission_amount == Decimal('30000')

    def test_shared_boundary_uses_lower_band(self):
        result = compute(HIGH_VALUE, 1000000)
        assert result.effective_rate == Decimal('4.0')

    def test_band_edges_are_inclusive(self):
        assert compute(HIGH_VALUE, 500000).effective_rate == Decimal('4.0')
        assert compute(HIGH_VALUE, 999999999).effective_rate == Decimal('3.0')

    def test_gap_detection(self):
        tiered = Tiered(_bands((0, 100, 5.0), (200, 300, 3.0)))
        with pytest.raises(NoMatchingBand):
            compute(tiered, 150)

    def test_below_first_band(self):
        with pytest.raises(NoMatchingBand):
            compute(HIGH_VALUE, 100)

    def test_overlap_rejected(self):
        tiered = Tiered(_bands((0, 100, 5.0), (50, 150, 3.0)))
        with pytest.raises(InvalidBands):
            compute(tiered, 75)

    def test_empty_bands_rejected(self):
        with pytest.raises(InvalidBands):
            compute(Tiered(()), 75)


class TestValidateBands:
    """Tests for band validation used at rule-authoring time."""

    def test_valid_touching_bands(self):
        validate_bands(HIGH_VALUE.bands)

    def test_unsorted_rejected(self):
        with pytest.raises(InvalidBands):
            validate_bands(_bands((200, 300, 3.0), (0, 100, 5.0)))

    def test_inverted_band_rejected(self):
        with pytest.raises(InvalidBands):
            validate_bands(_bands((100, 0, 5.0)))

    def test_negative_band_rate_rejected(self):
        with pytest.raises(InvalidRate):
            validate_bands(_bands((0, 100, -1)))

    def test_bands_from_dicts(self):
        bands = bands_from_dicts([
            {'min_value': 0, 'max_value': 100, 'rate': 5},
            {'min_value': '100', 'max_value': '200.50', 'rate': '2.5'},
        ])
        assert bands[1] == Band(Decimal('100'), Decimal('200.50'), Decimal('2.5'))

    def test_bands_from_dicts_missing_field(self):
        with pytest.raises(InvalidBands):
            bands_from_dicts([{'min_value': 0, 'rate': 5}])


class TestAmountValidation:
    """Tests for order amount validation."""

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidAmount):
            compute(Percentage(Decimal('5')), Decimal('-1'))

    def test_non_numeric_amount_rejected(self):
        with pytest.raises(InvalidAmount):
            compute(Percentage(Decimal('5')), 'abc')

    def test_missing_amount_rejected(self):
        with pytest.raises(InvalidAmount):
            compute(Percentage(Decimal('5')), None)

    @pytest.mark.parametrize('amount', [
        'NaN', 'Infinity', '-Infinity', float('nan'), float('inf'), Decimal('NaN'),
    ])
    def test_non_finite_amount_rejected(self, amount):
        with pytest.raises(InvalidAmount):
            compute(Percentage(Decimal('5')), amount)

    def test_non_finite_rate_rejected(self):
        with pytest.raises(InvalidRate):
            Percentage(Decimal('Infinity'))

    def test_non_finite_band_rejected(self):
        with pytest.raises(InvalidBands):
            bands_from_dicts([{'min_value': 0, 'max_value': 'Infinity', 'rate': 5}])
