"""
Commission Service - Business logic for commission rules, resolution and records.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from ..engine import (
    CommissionEngineError,
    OrderContext,
    Resolution,
    eligible_rules,
    resolve,
)
from ..models import (
    CommissionsSettings,
    CommissionRule,
    CommissionTransaction,
)

logger = logging.getLogger(__name__)


def _validation_message(exc: ValidationError) -> str:
    if hasattr(exc, 'message_dict'):
        return '; '.join(
            f"{field}: {' '.join(str(m) for m in messages)}"
            for field, messages in exc.message_dict.items()
        )
    return ' '.join(str(m) for m in exc.messages)


class CommissionService:
    """Service class for commission operations."""

    # ==================== Settings ====================

    @staticmethod
    def get_settings() -> CommissionsSettings:
        """Get or create the singleton settings."""
        return CommissionsSettings.get_settings()

    @staticmethod
    def update_settings(**kwargs) -> Tuple[bool, Optional[str]]:
        """Update commission settings."""
        settings = CommissionService.get_settings()
        for key, value in kwargs.items():
            if hasattr(settings, key):
                setattr(settings, key, value)
        try:
            settings.full_clean()
        except ValidationError as e:
            return False, _validation_message(e)
        settings.save()
        return True, None

    # ==================== Rules ====================

    @staticmethod
    def get_rules(
        active_only: bool = False,
        scope: Optional[str] = None,
        rate_type: Optional[str] = None,
        vendor_id: Optional[str] = None,
        category_id: Optional[str] = None,
    ) -> List[CommissionRule]:
        """Get commission rules, optionally filtered."""
        qs = CommissionRule.objects.all().order_by('priority', 'name')
        if active_only:
            qs = qs.filter(is_active=True)
        if scope:
            qs = qs.filter(scope=scope)
        if rate_type:
            qs = qs.filter(rate_type=rate_type)

        rules = list(qs)
        # JSON list containment is not portable across backends; filter in Python.
        if vendor_id is not None:
            rules = [
                r for r in rules
                if r.scope == 'vendor' and str(vendor_id) in map(str, r.scope_targets)
            ]
        if category_id is not None:
            rules = [
                r for r in rules
                if r.scope == 'category' and str(category_id) in map(str, r.scope_targets)
            ]
        return rules

    @staticmethod
    def get_rules_for_vendor(vendor_id: str) -> List[CommissionRule]:
        return CommissionService.get_rules(vendor_id=vendor_id)

    @staticmethod
    def get_rules_for_category(category_id: str) -> List[CommissionRule]:
        return CommissionService.get_rules(category_id=category_id)

    @staticmethod
    def get_rule(rule_id: int) -> Optional[CommissionRule]:
        """Get a specific rule by ID."""
        try:
            return CommissionRule.objects.get(pk=rule_id)
        except CommissionRule.DoesNotExist:
            return None

    @staticmethod
    def create_rule(
        name: str,
        rate_type: str = 'percentage',
        scope: str = 'global',
        **kwargs
    ) -> Tuple[Optional[CommissionRule], Optional[str]]:
        """Create a new commission rule after full validation."""
        rule = CommissionRule(name=name, rate_type=rate_type, scope=scope, **kwargs)
        try:
            rule.full_clean()
        except ValidationError as e:
            return None, _validation_message(e)
        rule.save()
        logger.info(
            "Created commission rule %s (%s, scope=%s, priority=%s)",
            rule.pk, rule.rate_type, rule.scope, rule.priority,
        )
        return rule, None

    @staticmethod
    def create_tiered_rule(
        name: str,
        tiers: List[Dict[str, Any]],
        **kwargs
    ) -> Tuple[Optional[CommissionRule], Optional[str]]:
        """Create a tiered rule; bands must be ascending and non-overlapping."""
        return CommissionService.create_rule(
            name=name, rate_type='tiered', tiers=tiers, **kwargs
        )

    @staticmethod
    def update_rule(rule: CommissionRule, **kwargs) -> Tuple[bool, Optional[str]]:
        """Update an existing rule."""
        for key, value in kwargs.items():
            if hasattr(rule, key):
                setattr(rule, key, value)
        try:
            rule.full_clean()
        except ValidationError as e:
            rule.refresh_from_db()
            return False, _validation_message(e)
        if not (rule.is_active and rule.is_default):
            error = CommissionService._check_default_kept(exclude=rule)
            if error:
                rule.refresh_from_db()
                return False, error
        rule.save()
        logger.info("Updated commission rule %s", rule.pk)
        return True, None

    @staticmethod
    def delete_rule(rule: CommissionRule) -> Tuple[bool, Optional[str]]:
        """Archive a rule. Rules are never hard-deleted so history keeps its reference."""
        error = CommissionService._check_default_kept(exclude=rule)
        if error:
            return False, error
        rule.is_deleted = True
        rule.is_active = False
        rule.deleted_at = timezone.now()
        rule.save(update_fields=['is_deleted', 'is_active', 'deleted_at', 'updated_at'])
        logger.info("Archived commission rule %s", rule.pk)
        return True, None

    @staticmethod
    def toggle_rule(rule: CommissionRule) -> Tuple[bool, Optional[str]]:
        """Toggle rule active status. Returns (is_active, error)."""
        if rule.is_active:
            error = CommissionService._check_default_kept(exclude=rule)
            if error:
                return rule.is_active, error
        rule.is_active = not rule.is_active
        rule.save(update_fields=['is_active', 'updated_at'])
        logger.info("Commission rule %s is_active=%s", rule.pk, rule.is_active)
        return rule.is_active, None

    @staticmethod
    @transaction.atomic
    def bulk_update_status(
        rule_ids: Iterable[int],
        is_active: bool,
        reason: str = '',
    ) -> Tuple[List[CommissionRule], Optional[str]]:
        """Activate or deactivate several rules at once."""
        rules = list(CommissionRule.objects.filter(pk__in=list(rule_ids)))
        if not rules:
            return [], "No matching rules found"

        if not is_active:
            error = CommissionService._check_default_kept(exclude=rules)
            if error:
                return [], error

        now = timezone.now()
        for rule in rules:
            rule.is_active = is_active
            if reason:
                rule.description = f"{rule.description}\nStatus change: {reason}".strip()
            rule.updated_at = now
        CommissionRule.objects.bulk_update(rules, ['is_active', 'description', 'updated_at'])
        logger.info(
            "Bulk set is_active=%s on %d commission rules%s",
            is_active, len(rules), f" ({reason})" if reason else '',
        )
        return rules, None

    @staticmethod
    def _check_default_kept(exclude) -> Optional[str]:
        """Refuse changes that would leave the catalog without an active default rule.

        Compares against the stored rows, so callers may run it after mutating
        ``exclude`` in memory but before saving.
        """
        if not CommissionService.get_settings().require_default_rule:
            return None
        excluded = exclude if isinstance(exclude, (list, tuple)) else [exclude]
        excluded_ids = [r.pk for r in excluded if r.pk is not None]
        defaults = CommissionRule.objects.filter(is_active=True, is_default=True)
        if not defaults.filter(pk__in=excluded_ids).exists():
            return None
        if not defaults.exclude(pk__in=excluded_ids).exists():
            return "Cannot remove the last active default rule"
        return None

    # ==================== Resolution ====================

    @staticmethod
    def load_catalog() -> Tuple:
        """Snapshot of active rules as immutable engine rules."""
        return tuple(
            rule.to_engine_rule()
            for rule in CommissionRule.objects.filter(is_active=True)
        )

    @staticmethod
    def build_order(
        amount,
        vendor_id=None,
        category_id=None,
        product_id=None,
        placed_on: Optional[date] = None,
    ) -> OrderContext:
        return OrderContext.build(
            amount,
            vendor_id=vendor_id,
            category_id=category_id,
            product_id=product_id,
            placed_on=placed_on or timezone.localdate(),
        )

    @staticmethod
    def calculate_commission(order: OrderContext, catalog=None) -> Resolution:
        """Resolve the governing rule and commission for an order.

        Raises a :class:`CommissionEngineError` subclass when the catalog is
        misconfigured; no default rate is ever substituted.
        """
        if catalog is None:
            catalog = CommissionService.load_catalog()
        places = CommissionService.get_settings().currency_decimal_places
        try:
            return resolve(order, catalog, places=places)
        except CommissionEngineError as e:
            logger.warning(
                "Commission resolution failed (%s) for amount=%s vendor=%s "
                "category=%s product=%s: %s",
                e.code, order.amount, order.vendor_id, order.category_id,
                order.product_id, e,
            )
            raise

    @staticmethod
    def explain(order: OrderContext) -> List[Any]:
        """Eligible rules for an order, in the order they would win."""
        return eligible_rules(order, CommissionService.load_catalog())

    # ==================== Transactions ====================

    @staticmethod
    def record_transaction(
        order: OrderContext,
        order_id: str,
        customer_id: str = '',
        notes: str = '',
    ) -> CommissionTransaction:
        """Resolve and persist a pending transaction for an order.

        Idempotent per ``order_id``: an existing record is returned unchanged.
        """
        existing = CommissionTransaction.all_objects.filter(order_id=order_id).first()
        if existing is not None:
            return existing

        resolution = CommissionService.calculate_commission(order)
        try:
            with transaction.atomic():
                trans = CommissionTransaction.objects.create(
                    order_id=order_id,
                    vendor_id=order.vendor_id or '',
                    customer_id=customer_id or '',
                    product_id=order.product_id or '',
                    category_id=order.category_id or '',
                    order_amount=order.amount,
                    commission_rate=resolution.commission_rate,
                    commission_amount=resolution.commission_amount,
                    rule_id=resolution.rule.id,
                    status='pending',
                    notes=notes,
                )
        except IntegrityError:
            # Another request recorded the same order first.
            return CommissionTransaction.all_objects.get(order_id=order_id)

        logger.info(
            "Recorded commission %s on order %s via rule %s",
            trans.commission_amount, order_id, resolution.rule.id,
        )
        return trans

    @staticmethod
    def get_transactions(
        status: Optional[str] = None,
        vendor_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[CommissionTransaction]:
        """Get commission transactions with filters."""
        qs = CommissionTransaction.objects.select_related('rule')

        if status:
            qs = qs.filter(status=status)
        if vendor_id:
            qs = qs.filter(vendor_id=str(vendor_id))
        if start_date:
            qs = qs.filter(created_at__date__gte=start_date)
        if end_date:
            qs = qs.filter(created_at__date__lte=end_date)

        return list(qs.order_by('-created_at'))

    @staticmethod
    def get_transaction(transaction_id: int) -> Optional[CommissionTransaction]:
        """Get a specific transaction."""
        try:
            return CommissionTransaction.objects.select_related('rule').get(pk=transaction_id)
        except CommissionTransaction.DoesNotExist:
            return None

    @staticmethod
    def update_transaction_status(
        trans: CommissionTransaction,
        status: str,
        reason: str = '',
    ) -> Tuple[bool, Optional[str]]:
        """Move a transaction along its lifecycle without re-resolving it."""
        if not trans.can_transition_to(status):
            return False, f"Transaction is {trans.status}, cannot change to {status}"

        previous = trans.status
        trans.status = status
        if reason:
            trans.notes = f"{trans.notes}\n{status.capitalize()}: {reason}".strip()
        trans.save(update_fields=['status', 'notes', 'updated_at'])
        logger.info(
            "Commission transaction %s: %s -> %s", trans.pk, previous, status
        )
        return True, None

    # ==================== Reports & Analytics ====================

    @staticmethod
    def get_commission_report(
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vendor_id: Optional[str] = None,
        category_id: Optional[str] = None,
        include_breakdown: bool = False,
    ) -> Dict[str, Any]:
        """Summarise commissions over a period."""
        if not start_date:
            start_date = timezone.localdate().replace(day=1)
        if not end_date:
            end_date = timezone.localdate()

        qs = CommissionTransaction.objects.filter(
            created_at__date__gte=start_date,
            created_at__date__lte=end_date,
        ).exclude(status='cancelled')
        if vendor_id:
            qs = qs.filter(vendor_id=str(vendor_id))
        if category_id:
            qs = qs.filter(category_id=str(category_id))

        totals = qs.aggregate(
            total_commissions=Sum('commission_amount'),
            total_order_value=Sum('order_amount'),
            count=Count('id'),
        )
        total_commissions = totals['total_commissions'] or Decimal('0')
        total_order_value = totals['total_order_value'] or Decimal('0')

        report = {
            'period': {'start_date': start_date, 'end_date': end_date},
            'summary': {
                'total_commissions': total_commissions,
                'total_order_value': total_order_value,
                'average_commission_rate': _average_rate(total_commissions, total_order_value),
                'order_count': totals['count'] or 0,
            },
        }

        if include_breakdown:
            by_rule = (
                qs.values('rule_id', 'rule__name', 'rule__rate_type')
                .annotate(total=Sum('commission_amount'), order_value=Sum('order_amount'),
                          count=Count('id'))
                .order_by('-total')
            )
            by_vendor = (
                qs.values('vendor_id')
                .annotate(total=Sum('commission_amount'), order_value=Sum('order_amount'),
                          count=Count('id'))
                .order_by('-total')
            )
            report['breakdown'] = {
                'by_rule': [
                    {
                        'rule_id': row['rule_id'],
                        'rule_name': row['rule__name'],
                        'rate_type': row['rule__rate_type'],
                        'total_commissions': row['total'],
                        'total_order_value': row['order_value'],
                        'order_count': row['count'],
                        'average_commission': row['total'] / row['count'],
                    }
                    for row in by_rule
                ],
                'by_vendor': [
                    {
                        'vendor_id': row['vendor_id'],
                        'total_commissions': row['total'],
                        'total_order_value': row['order_value'],
                        'order_count': row['count'],
                        'average_commission': row['total'] / row['count'],
                    }
                    for row in by_vendor
                ],
            }

        return report

    @staticmethod
    def get_rule_analytics() -> Dict[str, Any]:
        """Counts of rules by status and type, plus the default rule."""
        qs = CommissionRule.objects.all()
        stats = qs.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(is_active=True)),
        )
        rule_types = {
            row['rate_type']: row['count']
            for row in qs.values('rate_type').annotate(count=Count('id')).order_by('rate_type')
        }
        default_rule = qs.filter(is_active=True, is_default=True).order_by('priority', 'pk').first()
        return {
            'total_rules': stats['total'] or 0,
            'active_rules': stats['active'] or 0,
            'inactive_rules': (stats['total'] or 0) - (stats['active'] or 0),
            'rule_types': rule_types,
            'default_rule': default_rule,
        }


def _average_rate(total_commissions: Decimal, total_order_value: Decimal) -> Decimal:
    if not total_order_value:
        return Decimal('0')
    return (total_commissions / total_order_value * Decimal('100')).quantize(Decimal('0.01'))
