"""
Commission rule resolution and rate calculation.

Pure, synchronous and free of Django imports; safe to call concurrently.
"""
from .errors import (
    CalculationError,
    CommissionEngineError,
    InvalidAmount,
    InvalidBands,
    InvalidRate,
    NoApplicableRule,
    NoMatchingBand,
    ResolutionError,
)
from .rate_calculator import (
    Band,
    Fixed,
    Percentage,
    RateResult,
    Tiered,
    bands_from_dicts,
    compute,
    validate_bands,
)
from .rule_resolver import (
    CategoryScope,
    CommissionRule,
    GlobalScope,
    OrderContext,
    OrderValueBounds,
    ProductScope,
    Resolution,
    Scope,
    VendorScope,
    build_scope,
    eligible_rules,
    resolve,
    select_rule,
)

__all__ = [
    'CommissionEngineError',
    'ResolutionError',
    'NoApplicableRule',
    'CalculationError',
    'InvalidBands',
    'NoMatchingBand',
    'InvalidRate',
    'InvalidAmount',
    'Band',
    'Percentage',
    'Fixed',
    'Tiered',
    'RateResult',
    'compute',
    'validate_bands',
    'bands_from_dicts',
    'Scope',
    'GlobalScope',
    'VendorScope',
    'CategoryScope',
    'ProductScope',
    'build_scope',
    'OrderContext',
    'OrderValueBounds',
    'CommissionRule',
    'Resolution',
    'eligible_rules',
    'select_rule',
    'resolve',
]
