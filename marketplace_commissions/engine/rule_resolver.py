"""
Commission rule resolution.

Given an immutable catalog snapshot and an order, pick the one rule that
governs the order and delegate the amount to the rate calculator.

Selection order, applied to eligible rules:

1. lowest ``priority`` value
2. most specific scope (product > category > vendor > global)
3. most recently updated (missing ``updated_at`` counts as oldest)
4. lowest ``str(id)``
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .errors import NoApplicableRule
from .rate_calculator import compute, to_decimal


def _ids(values: Iterable[Any]) -> FrozenSet[str]:
    return frozenset(str(v) for v in values if v is not None and v != '')


# ==================== Scopes ====================

class Scope:
    """A rule's anchor dimension. Subclasses decide which order id they match."""

    kind = ''
    specificity = 0

    def matches(self, order: 'OrderContext') -> bool:
        raise NotImplementedError

    def __eq__(self, other):
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self):
        return hash((type(self).__name__, self._key()))

    def _key(self):
        return ()


class GlobalScope(Scope):
    kind = 'global'
    specificity = 0

    def matches(self, order):
        return True

    def __repr__(self):
        return 'GlobalScope()'


class _TargetedScope(Scope):
    order_attr = ''

    def __init__(self, targets: Iterable[Any]):
        self.targets = _ids(targets)

    def matches(self, order):
        value = getattr(order, self.order_attr)
        return value is not None and str(value) in self.targets

    def _key(self):
        return self.targets

    def __repr__(self):
        return f"{type(self).__name__}({sorted(self.targets)!r})"


class VendorScope(_TargetedScope):
    kind = 'vendor'
    specificity = 1
    order_attr = 'vendor_id'


class CategoryScope(_TargetedScope):
    kind = 'category'
    specificity = 2
    order_attr = 'category_id'


class ProductScope(_TargetedScope):
    kind = 'product'
    specificity = 3
    order_attr = 'product_id'


SCOPES = {
    cls.kind: cls for cls in (GlobalScope, VendorScope, CategoryScope, ProductScope)
}


def build_scope(kind: str, targets: Iterable[Any] = ()) -> Scope:
    try:
        cls = SCOPES[kind]
    except KeyError:
        raise ValueError(f"Unknown rule scope: {kind!r}") from None
    if cls is GlobalScope:
        return GlobalScope()
    return cls(targets)


# ==================== Value objects ====================

@dataclass(frozen=True, slots=True)
class OrderContext:
    vendor_id: Optional[str]
    category_id: Optional[str]
    product_id: Optional[str]
    amount: Decimal
    placed_on: Optional[date] = None

    @classmethod
    def build(cls, amount, vendor_id=None, category_id=None, product_id=None,
              placed_on=None) -> 'OrderContext':
        def _id(value):
            return None if value is None or value == '' else str(value)

        return cls(
            vendor_id=_id(vendor_id),
            category_id=_id(category_id),
            product_id=_id(product_id),
            amount=to_decimal(amount),
            placed_on=placed_on,
        )


@dataclass(frozen=True, slots=True)
class OrderValueBounds:
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None

    def contains(self, amount: Decimal) -> bool:
        if self.min is not None and amount < self.min:
            return False
        if self.max is not None and amount > self.max:
            return False
        return True


@dataclass(frozen=True, slots=True)
class CommissionRule:
    id: Any
    scope: Scope
    rate_spec: Any
    active: bool = True
    priority: int = 100
    bounds: Optional[OrderValueBounds] = None
    updated_at: Optional[datetime] = None
    name: str = ''
    is_default: bool = False
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None

    def is_eligible(self, order: OrderContext) -> bool:
        if not self.active:
            return False
        if not self.scope.matches(order):
            return False
        if self.bounds is not None and not self.bounds.contains(order.amount):
            return False
        if order.placed_on is not None:
            if self.valid_from and order.placed_on < self.valid_from:
                return False
            if self.valid_until and order.placed_on > self.valid_until:
                return False
        return True


@dataclass(frozen=True, slots=True)
class Resolution:
    rule: CommissionRule
    commission_rate: Decimal
    commission_amount: Decimal


# ==================== Resolution ====================

def _precedence(rule: CommissionRule) -> Tuple:
    recency = -rule.updated_at.timestamp() if rule.updated_at else math.inf
    return (rule.priority, -rule.scope.specificity, recency, str(rule.id))


def eligible_rules(order: OrderContext, rules: Sequence[CommissionRule]) -> List[CommissionRule]:
    """Eligible rules in precedence order; the first one wins."""
    eligible = [rule for rule in rules if rule.is_eligible(order)]
    return sorted(eligible, key=_precedence)


def select_rule(order: OrderContext, rules: Sequence[CommissionRule]) -> CommissionRule:
    candidates = eligible_rules(order, rules)
    if not candidates:
        raise NoApplicableRule(
            f"No active commission rule applies to order amount {order.amount} "
            f"(vendor={order.vendor_id}, category={order.category_id}, "
            f"product={order.product_id}); the catalog needs a global default rule"
        )
    return candidates[0]


def resolve(order: OrderContext, rules: Sequence[CommissionRule], places: int = 2) -> Resolution:
    """Select the winning rule for ``order`` and compute its commission."""
    rule = select_rule(order, rules)
    result = compute(rule.rate_spec, order.amount, places=places)
    return Resolution(
        rule=rule,
        commission_rate=result.effective_rate,
        commission_amount=result.commission_amount,
    )
