"""Typed errors raised by the commission engine."""


class CommissionEngineError(Exception):
    """Base error for commission engine failures."""

    code = 'commission_error'


class ResolutionError(CommissionEngineError):
    """Raised when no single rule can be selected for an order."""

    code = 'resolution_error'


class NoApplicableRule(ResolutionError):
    """No rule in the catalog is eligible for the order."""

    code = 'no_applicable_rule'


class CalculationError(CommissionEngineError):
    """Raised when a rate specification cannot produce an amount."""

    code = 'calculation_error'


class InvalidBands(CalculationError):
    """Tier bands are empty, unsorted, inverted or overlapping."""

    code = 'invalid_bands'


class NoMatchingBand(CalculationError):
    """The order amount falls in a gap between tier bands."""

    code = 'no_matching_band'


class InvalidRate(CalculationError):
    """Negative percentage, fixed amount or band rate."""

    code = 'invalid_rate'


class InvalidAmount(CalculationError):
    """Negative or non-numeric order amount."""

    code = 'invalid_amount'
