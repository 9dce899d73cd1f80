"""Marketplace commissions forms."""

from django import forms
from django.utils.translation import gettext_lazy as _

from .models import (
    CommissionsSettings,
    CommissionRule,
    CommissionTransaction,
)


class CommissionRuleForm(forms.ModelForm):
    """Rule authoring form; model ``clean`` validates scope, bounds and tier bands."""

    class Meta:
        model = CommissionRule
        fields = [
            'name', 'description', 'scope', 'scope_targets',
            'rate_type', 'rate', 'fixed_amount', 'tiers',
            'min_order_value', 'max_order_value',
            'valid_from', 'valid_until',
            'is_default', 'priority', 'is_active',
        ]
        widgets = {
            'name': forms.TextInput(attrs={'class': 'input'}),
            'description': forms.Textarea(attrs={'class': 'textarea', 'rows': 2}),
            'scope': forms.Select(attrs={'class': 'select'}),
            'rate_type': forms.Select(attrs={'class': 'select'}),
            'rate': forms.NumberInput(attrs={'class': 'input', 'step': '0.01', 'min': '0'}),
            'fixed_amount': forms.NumberInput(attrs={'class': 'input', 'step': '0.01', 'min': '0'}),
            'min_order_value': forms.NumberInput(attrs={'class': 'input', 'step': '0.01', 'min': '0'}),
            'max_order_value': forms.NumberInput(attrs={'class': 'input', 'step': '0.01', 'min': '0'}),
            'valid_from': forms.DateInput(attrs={'class': 'input', 'type': 'date'}),
            'valid_until': forms.DateInput(attrs={'class': 'input', 'type': 'date'}),
            'priority': forms.NumberInput(attrs={'class': 'input', 'min': '0'}),
            'is_default': forms.CheckboxInput(attrs={'class': 'toggle'}),
            'is_active': forms.CheckboxInput(attrs={'class': 'toggle'}),
        }

    def clean_tiers(self):
        tiers = self.cleaned_data.get('tiers') or []
        if not isinstance(tiers, list):
            raise forms.ValidationError(_("Tiers must be a list of bands."))
        return tiers

    def clean(self):
        cleaned = super().clean()
        # Only the field matching the rate type is meaningful.
        rate_type = cleaned.get('rate_type')
        if rate_type == 'tiered' and not cleaned.get('tiers'):
            self.add_error('tiers', _("Tiered rules need at least one band."))
        if rate_type != 'tiered':
            cleaned['tiers'] = []
        return cleaned


class BulkStatusForm(forms.Form):
    rule_ids = forms.CharField(help_text=_("Comma-separated rule ids"))
    is_active = forms.BooleanField(required=False)
    reason = forms.CharField(required=False, max_length=500)

    def clean_rule_ids(self):
        raw = self.cleaned_data['rule_ids']
        try:
            ids = [int(part) for part in raw.split(',') if part.strip()]
        except ValueError:
            raise forms.ValidationError(_("Rule ids must be integers."))
        if not ids:
            raise forms.ValidationError(_("Select at least one rule."))
        return ids


class CalculateForm(forms.Form):
    """Order context posted by the admin calculator and the order subsystem."""

    amount = forms.DecimalField(min_value=0, max_digits=14, decimal_places=2)
    vendor_id = forms.CharField(required=False, max_length=64)
    category_id = forms.CharField(required=False, max_length=64)
    product_id = forms.CharField(required=False, max_length=64)
    placed_on = forms.DateField(required=False)


class RecordTransactionForm(CalculateForm):
    order_id = forms.CharField(max_length=64)
    customer_id = forms.CharField(required=False, max_length=64)
    notes = forms.CharField(required=False, widget=forms.Textarea)


class TransactionStatusForm(forms.Form):
    status = forms.ChoiceField(choices=[
        c for c in CommissionTransaction.STATUS_CHOICES if c[0] != 'pending'
    ])
    reason = forms.CharField(required=False, max_length=500)


class CommissionsSettingsForm(forms.ModelForm):
    class Meta:
        model = CommissionsSettings
        fields = ['currency_code', 'currency_decimal_places', 'require_default_rule']
        widgets = {
            'currency_code': forms.TextInput(attrs={'class': 'input'}),
            'currency_decimal_places': forms.NumberInput(attrs={'class': 'input', 'min': '0', 'max': '4'}),
            'require_default_rule': forms.CheckboxInput(attrs={'class': 'toggle'}),
        }
