"""
Fixtures for marketplace commissions tests.
"""
import pytest
from decimal import Decimal


@pytest.fixture
def commissions_settings(db):
    """Create commissions settings."""
    from marketplace_commissions.models import CommissionsSettings

    settings, _ = CommissionsSettings.all_objects.get_or_create(
        pk=1,
        defaults={
            'currency_code': 'NGN',
            'currency_decimal_places': 2,
            'require_default_rule': True,
        }
    )
    return settings


@pytest.fixture
def default_rule(db, commissions_settings):
    """Global safety-net rule."""
    from marketplace_commissions.models import CommissionRule

    return CommissionRule.objects.create(
        name='Default Commission',
        scope='global',
        rate_type='percentage',
        rate=Decimal('10.00'),
        is_default=True,
        priority=1000,
        is_active=True,
    )


@pytest.fixture
def category_rule(db, commissions_settings):
    """Electronics category percentage rule."""
    from marketplace_commissions.models import CommissionRule

    return CommissionRule.objects.create(
        name='Electronics Commission',
        scope='category',
        scope_targets=['electronics'],
        rate_type='percentage',
        rate=Decimal('5.00'),
        priority=10,
        is_active=True,
    )


@pytest.fixture
def fixed_rule(db, commissions_settings):
    """Fixed fee for a single vendor."""
    from marketplace_commissions.models import CommissionRule

    return CommissionRule.objects.create(
        name='Vendor Flat Fee',
        scope='vendor',
        scope_targets=['vendor-42'],
        rate_type='fixed',
        rate=Decimal('0'),
        fixed_amount=Decimal('500.00'),
        priority=20,
        is_active=True,
    )


@pytest.fixture
def tiered_rule(db, commissions_settings):
    """High-value orders tiered rule."""
    from marketplace_commissions.models import CommissionRule

    return CommissionRule.objects.create(
        name='High-Value Orders',
        scope='global',
        rate_type='tiered',
        rate=Decimal('0'),
        tiers=[
            {'min_value': 500000, 'max_value': 1000000, 'rate': 4.0},
            {'min_value': 1000000, 'max_value': 2000000, 'rate': 3.5},
            {'min_value': 2000000, 'max_value': 999999999, 'rate': 3.0},
        ],
        min_order_value=Decimal('500000'),
        priority=5,
        is_active=True,
    )


@pytest.fixture
def commission_transaction(db, category_rule):
    """A pending commission transaction."""
    from marketplace_commissions.models import CommissionTransaction

    return CommissionTransaction.objects.create(
        order_id='ORD-001',
        vendor_id='vendor-1',
        customer_id='cust-1',
        product_id='prod-1',
        category_id='electronics',
        order_amount=Decimal('250000.00'),
        commission_rate=Decimal('5.00'),
        commission_amount=Decimal('12500.00'),
        rule=category_rule,
        status='pending',
    )


@pytest.fixture
def staff_client(client, django_user_model):
    """Client logged in as a marketplace administrator."""
    user = django_user_model.objects.create_user(username='admin', password='secret')
    client.force_login(user)
    return client
