"""Marketplace commissions models."""

from decimal import Decimal

from django.conf import settings as django_settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .engine.errors import CalculationError
from .engine.rate_calculator import (
    Fixed,
    Percentage,
    Tiered,
    bands_from_dicts,
    validate_bands,
)
from .engine.rule_resolver import (
    CommissionRule as EngineRule,
    OrderValueBounds,
    build_scope,
)


def _default_currency_places():
    return getattr(django_settings, 'COMMISSIONS_CURRENCY_PLACES', 2)


# =============================================================================
# Base
# =============================================================================

class ActiveManager(models.Manager):
    """Hides soft-deleted rows."""

    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)


class BaseModel(models.Model):
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)
    is_deleted = models.BooleanField(_("Deleted"), default=False)
    deleted_at = models.DateTimeField(_("Deleted At"), null=True, blank=True)

    objects = ActiveManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True


# =============================================================================
# Settings
# =============================================================================

class CommissionsSettings(BaseModel):
    """Marketplace-wide commissions settings (singleton, pk=1)."""

    currency_code = models.CharField(_("Currency"), max_length=3, default='NGN')
    currency_decimal_places = models.PositiveSmallIntegerField(
        _("Currency Minor Unit Digits"), default=_default_currency_places,
        validators=[MaxValueValidator(4)],
        help_text=_("Commission amounts are rounded half-up to this many digits")
    )
    require_default_rule = models.BooleanField(
        _("Require Default Rule"), default=True,
        help_text=_("Refuse to deactivate or delete the last active default rule")
    )

    class Meta:
        db_table = 'commissions_settings'
        verbose_name = _("Commissions Settings")
        verbose_name_plural = _("Commissions Settings")

    def __str__(self):
        return f"Commissions Settings ({self.currency_code})"

    @classmethod
    def get_settings(cls):
        settings, _ = cls.all_objects.get_or_create(pk=1)
        return settings


# =============================================================================
# Rules
# =============================================================================

class CommissionRule(BaseModel):
    """A commission rule scoped to vendors, categories, products or everything."""

    SCOPE_CHOICES = [
        ('global', _("Global")),
        ('vendor', _("Vendor")),
        ('category', _("Category")),
        ('product', _("Product")),
    ]

    TYPE_CHOICES = [
        ('percentage', _("Percentage")),
        ('fixed', _("Fixed Amount")),
        ('tiered', _("Tiered (based on order value)")),
    ]

    name = models.CharField(_("Rule Name"), max_length=100)
    description = models.TextField(_("Description"), blank=True)

    # Scope
    scope = models.CharField(
        _("Scope"), max_length=20, choices=SCOPE_CHOICES, default='global'
    )
    scope_targets = models.JSONField(
        _("Scope Targets"), default=list, blank=True,
        help_text=_("Vendor, category or product ids; empty for global rules")
    )

    # Type and value
    rate_type = models.CharField(
        _("Type"), max_length=20, choices=TYPE_CHOICES, default='percentage'
    )
    rate = models.DecimalField(
        _("Rate (%)"), max_digits=7, decimal_places=4, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    fixed_amount = models.DecimalField(
        _("Fixed Amount"), max_digits=14, decimal_places=2, default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    tiers = models.JSONField(
        _("Tiers"), default=list, blank=True,
        help_text=_("Ascending list of {min_value, max_value, rate} bands")
    )

    # Order value bounds (inclusive)
    min_order_value = models.DecimalField(
        _("Minimum Order Value"), max_digits=14, decimal_places=2, null=True, blank=True
    )
    max_order_value = models.DecimalField(
        _("Maximum Order Value"), max_digits=14, decimal_places=2, null=True, blank=True
    )

    # Date range
    valid_from = models.DateField(_("Valid From"), null=True, blank=True)
    valid_until = models.DateField(_("Valid Until"), null=True, blank=True)

    is_default = models.BooleanField(
        _("Default Rule"), default=False,
        help_text=_("Fallback applied when no other rule matches")
    )
    priority = models.PositiveIntegerField(
        _("Priority"), default=100,
        help_text=_("Lower values win")
    )
    is_active = models.BooleanField(_("Active"), default=True)

    class Meta:
        db_table = 'commissions_rule'
        verbose_name = _("Commission Rule")
        verbose_name_plural = _("Commission Rules")
        ordering = ['priority', 'name']

    def __str__(self):
        return self.name

    @property
    def status(self):
        if not self.is_active:
            return 'inactive'
        if self.valid_until and self.valid_until < timezone.localdate():
            return 'expired'
        return 'active'

    def clean(self):
        super().clean()
        errors = {}

        if self.scope == 'global':
            if self.scope_targets:
                errors['scope_targets'] = _("Global rules cannot have scope targets.")
        elif not self.scope_targets:
            errors['scope_targets'] = _("Select at least one target for this scope.")
        if not isinstance(self.scope_targets, list):
            errors['scope_targets'] = _("Scope targets must be a list of ids.")

        if self.rate is not None and self.rate < 0:
            errors['rate'] = _("Rate cannot be negative.")
        if self.fixed_amount is not None and self.fixed_amount < 0:
            errors['fixed_amount'] = _("Fixed amount cannot be negative.")

        if self.rate_type == 'tiered':
            try:
                validate_bands(bands_from_dicts(self.tiers))
            except CalculationError as exc:
                errors['tiers'] = str(exc)

        if (self.min_order_value is not None and self.max_order_value is not None
                and self.min_order_value > self.max_order_value):
            errors['max_order_value'] = _("Maximum order value must not be below the minimum.")

        if self.valid_from and self.valid_until and self.valid_from > self.valid_until:
            errors['valid_until'] = _("Valid until must not be before valid from.")

        if self.is_default and self.scope != 'global':
            errors['is_default'] = _("Only global rules can be the default rule.")

        if errors:
            raise ValidationError(errors)

    # -- engine bridge -------------------------------------------------------

    @property
    def rate_spec(self):
        if self.rate_type == 'percentage':
            return Percentage(self.rate)
        if self.rate_type == 'fixed':
            return Fixed(self.fixed_amount)
        if self.rate_type == 'tiered':
            return Tiered(bands_from_dicts(self.tiers))
        raise ValueError(f"Unknown rate type: {self.rate_type!r}")

    def to_engine_rule(self) -> EngineRule:
        bounds = None
        if self.min_order_value is not None or self.max_order_value is not None:
            bounds = OrderValueBounds(self.min_order_value, self.max_order_value)
        return EngineRule(
            id=self.pk,
            scope=build_scope(self.scope, self.scope_targets or ()),
            rate_spec=self.rate_spec,
            active=self.is_active and not self.is_deleted,
            priority=self.priority,
            bounds=bounds,
            updated_at=self.updated_at,
            name=self.name,
            is_default=self.is_default,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
        )


# =============================================================================
# Transactions
# =============================================================================

class CommissionTransaction(BaseModel):
    """Commission owed on a single order."""

    STATUS_CHOICES = [
        ('pending', _("Pending")),
        ('paid', _("Paid")),
        ('disputed', _("Disputed")),
        ('cancelled', _("Cancelled")),
    ]

    TRANSITIONS = {
        'pending': {'paid', 'disputed', 'cancelled'},
        'disputed': {'paid', 'cancelled'},
        'paid': set(),
        'cancelled': set(),
    }

    order_id = models.CharField(_("Order"), max_length=64, unique=True)
    vendor_id = models.CharField(_("Vendor"), max_length=64, blank=True)
    customer_id = models.CharField(_("Customer"), max_length=64, blank=True)
    product_id = models.CharField(_("Product"), max_length=64, blank=True)
    category_id = models.CharField(_("Category"), max_length=64, blank=True)

    order_amount = models.DecimalField(_("Order Amount"), max_digits=14, decimal_places=2)
    # Fixed fees on tiny orders produce display rates far above 100%.
    commission_rate = models.DecimalField(
        _("Commission Rate (%)"), max_digits=24, decimal_places=4
    )
    commission_amount = models.DecimalField(
        _("Commission Amount"), max_digits=14, decimal_places=4
    )

    rule = models.ForeignKey(
        CommissionRule, on_delete=models.PROTECT,
        related_name='transactions', verbose_name=_("Rule")
    )

    status = models.CharField(
        _("Status"), max_length=20, choices=STATUS_CHOICES, default='pending'
    )
    notes = models.TextField(_("Notes"), blank=True)

    class Meta:
        db_table = 'commissions_transaction'
        verbose_name = _("Commission Transaction")
        verbose_name_plural = _("Commission Transactions")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['vendor_id', 'status']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"{self.order_id}: {self.commission_amount} ({self.status})"

    def can_transition_to(self, status):
        return status in self.TRANSITIONS.get(self.status, set())
