"""Marketplace commissions views (JSON endpoints for the admin surface)."""

import logging
from datetime import date

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from .engine import CommissionEngineError
from .forms import (
    BulkStatusForm,
    CalculateForm,
    CommissionRuleForm,
    CommissionsSettingsForm,
    RecordTransactionForm,
    TransactionStatusForm,
)
from .models import CommissionRule, CommissionTransaction
from .services import CommissionService

logger = logging.getLogger(__name__)

_MONEY_KEYS = ('total_commissions', 'total_order_value', 'average_commission')


def _rule_json(rule):
    return {
        'id': rule.pk,
        'name': rule.name,
        'description': rule.description,
        'scope': rule.scope,
        'scope_targets': rule.scope_targets,
        'rate_type': rule.rate_type,
        'rate': str(rule.rate),
        'fixed_amount': str(rule.fixed_amount),
        'tiers': rule.tiers,
        'min_order_value': str(rule.min_order_value) if rule.min_order_value is not None else None,
        'max_order_value': str(rule.max_order_value) if rule.max_order_value is not None else None,
        'valid_from': str(rule.valid_from) if rule.valid_from else None,
        'valid_until': str(rule.valid_until) if rule.valid_until else None,
        'is_default': rule.is_default,
        'priority': rule.priority,
        'is_active': rule.is_active,
        'status': rule.status,
        'updated_at': rule.updated_at.isoformat() if rule.updated_at else None,
    }


def _transaction_json(trans):
    return {
        'id': trans.pk,
        'order_id': trans.order_id,
        'vendor_id': trans.vendor_id,
        'customer_id': trans.customer_id,
        'product_id': trans.product_id,
        'category_id': trans.category_id,
        'order_amount': str(trans.order_amount),
        'rule_id': trans.rule_id,
        'commission_rate': str(trans.commission_rate),
        'commission_amount': str(trans.commission_amount),
        'status': trans.status,
        'created_at': trans.created_at.isoformat() if trans.created_at else None,
    }


def _engine_error(exc):
    return JsonResponse(
        {'success': False, 'error': str(exc), 'code': exc.code},
        status=422
    )


def _order_from(form):
    data = form.cleaned_data
    return CommissionService.build_order(
        data['amount'],
        vendor_id=data.get('vendor_id'),
        category_id=data.get('category_id'),
        product_id=data.get('product_id'),
        placed_on=data.get('placed_on'),
    )


# =============================================================================
# Rules
# =============================================================================

@login_required
@require_GET
def rule_list(request):
    active = request.GET.get('active', '')
    rules = CommissionService.get_rules(
        active_only=active in ('1', 'true'),
        scope=request.GET.get('scope') or None,
        rate_type=request.GET.get('type') or None,
        vendor_id=request.GET.get('vendor') or None,
        category_id=request.GET.get('category') or None,
    )
    return JsonResponse({'rules': [_rule_json(r) for r in rules], 'total': len(rules)})


@login_required
@require_POST
def rule_create(request):
    form = CommissionRuleForm(request.POST)
    if form.is_valid():
        rule = form.save()
        logger.info("Created commission rule %s via admin", rule.pk)
        return JsonResponse({'success': True, 'id': rule.pk}, status=201)
    return JsonResponse({'success': False, 'errors': form.errors}, status=400)


@login_required
@require_GET
def rule_detail(request, pk):
    rule = get_object_or_404(CommissionRule, pk=pk)
    data = _rule_json(rule)
    data['transaction_count'] = rule.transactions.count()
    return JsonResponse(data)


@login_required
@require_POST
def rule_edit(request, pk):
    rule = get_object_or_404(CommissionRule, pk=pk)
    form = CommissionRuleForm(request.POST, instance=rule)
    if not form.is_valid():
        return JsonResponse({'success': False, 'errors': form.errors}, status=400)

    success, error = CommissionService.update_rule(rule, **form.cleaned_data)
    if not success:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True})


@login_required
@require_POST
def rule_delete(request, pk):
    rule = get_object_or_404(CommissionRule, pk=pk)
    success, error = CommissionService.delete_rule(rule)
    if not success:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True})


@login_required
@require_POST
def rule_toggle(request, pk):
    rule = get_object_or_404(CommissionRule, pk=pk)
    is_active, error = CommissionService.toggle_rule(rule)
    if error:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True, 'is_active': is_active})


@login_required
@require_POST
def rule_bulk_status(request):
    form = BulkStatusForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'success': False, 'errors': form.errors}, status=400)

    rules, error = CommissionService.bulk_update_status(
        form.cleaned_data['rule_ids'],
        form.cleaned_data['is_active'],
        reason=form.cleaned_data['reason'],
    )
    if error:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({
        'success': True,
        'updated_count': len(rules),
        'updated_rules': [_rule_json(r) for r in rules],
    })


# =============================================================================
# Transactions
# =============================================================================

@login_required
@require_GET
def transaction_list(request):
    transactions = CommissionService.get_transactions(
        status=request.GET.get('status') or None,
        vendor_id=request.GET.get('vendor') or None,
    )
    return JsonResponse({'transactions': [_transaction_json(t) for t in transactions]})


@login_required
@require_POST
def transaction_status(request, pk):
    trans = get_object_or_404(CommissionTransaction, pk=pk)
    form = TransactionStatusForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'success': False, 'errors': form.errors}, status=400)

    success, error = CommissionService.update_transaction_status(
        trans, form.cleaned_data['status'], reason=form.cleaned_data['reason']
    )
    if not success:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True, 'status': trans.status})


# =============================================================================
# Settings
# =============================================================================

@login_required
def settings(request):
    comm_settings = CommissionService.get_settings()
    if request.method == 'POST':
        form = CommissionsSettingsForm(request.POST, instance=comm_settings)
        if form.is_valid():
            form.save()
            return JsonResponse({'success': True})
        return JsonResponse({'success': False, 'errors': form.errors}, status=400)

    return JsonResponse({
        'currency_code': comm_settings.currency_code,
        'currency_decimal_places': comm_settings.currency_decimal_places,
        'require_default_rule': comm_settings.require_default_rule,
    })


# =============================================================================
# API Endpoints
# =============================================================================

@login_required
@require_POST
def api_calculate(request):
    """Preview the commission for an order without recording it."""
    form = CalculateForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'success': False, 'errors': form.errors}, status=400)

    order = _order_from(form)
    try:
        resolution = CommissionService.calculate_commission(order)
    except CommissionEngineError as e:
        return _engine_error(e)

    rule = resolution.rule
    return JsonResponse({
        'success': True,
        'order_value': str(order.amount),
        'commission_amount': str(resolution.commission_amount),
        'commission_rate': str(resolution.commission_rate),
        'applied_rule': {
            'id': rule.id,
            'name': rule.name,
            'type': rule.rate_spec.kind,
        },
    })


@login_required
@require_POST
def api_record_transaction(request):
    """Resolve and persist a pending commission transaction for an order."""
    form = RecordTransactionForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'success': False, 'errors': form.errors}, status=400)

    order = _order_from(form)
    try:
        trans = CommissionService.record_transaction(
            order,
            order_id=form.cleaned_data['order_id'],
            customer_id=form.cleaned_data.get('customer_id', ''),
            notes=form.cleaned_data.get('notes', ''),
        )
    except CommissionEngineError as e:
        return _engine_error(e)

    return JsonResponse({'success': True, 'transaction': _transaction_json(trans)})


@login_required
@require_GET
def api_report(request):
    try:
        start_date = request.GET.get('start_date')
        end_date = request.GET.get('end_date')
        report = CommissionService.get_commission_report(
            start_date=date.fromisoformat(start_date) if start_date else None,
            end_date=date.fromisoformat(end_date) if end_date else None,
            vendor_id=request.GET.get('vendor') or None,
            category_id=request.GET.get('category') or None,
            include_breakdown=request.GET.get('breakdown') in ('1', 'true'),
        )
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    summary = report['summary']
    data = {
        'period': {k: str(v) for k, v in report['period'].items()},
        'summary': {
            'total_commissions': str(summary['total_commissions']),
            'total_order_value': str(summary['total_order_value']),
            'average_commission_rate': str(summary['average_commission_rate']),
            'order_count': summary['order_count'],
        },
    }
    if 'breakdown' in report:
        data['breakdown'] = {
            'by_rule': [
                {k: (str(v) if k in _MONEY_KEYS else v)
                 for k, v in row.items()}
                for row in report['breakdown']['by_rule']
            ],
            'by_vendor': [
                {k: (str(v) if k in _MONEY_KEYS else v)
                 for k, v in row.items()}
                for row in report['breakdown']['by_vendor']
            ],
        }
    return JsonResponse(data)


@login_required
@require_GET
def api_analytics(request):
    analytics = CommissionService.get_rule_analytics()
    default_rule = analytics['default_rule']
    return JsonResponse({
        'total_rules': analytics['total_rules'],
        'active_rules': analytics['active_rules'],
        'inactive_rules': analytics['inactive_rules'],
        'rule_types': analytics['rule_types'],
        'default_rule': _rule_json(default_rule) if default_rule else None,
    })
