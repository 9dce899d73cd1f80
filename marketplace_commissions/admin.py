from django.contrib import admin
from .models import (
    CommissionsSettings,
    CommissionRule,
    CommissionTransaction,
)


@admin.register(CommissionsSettings)
class CommissionsSettingsAdmin(admin.ModelAdmin):
    list_display = ['id', 'currency_code', 'currency_decimal_places', 'require_default_rule', 'updated_at']
    readonly_fields = ['created_at', 'updated_at']

    def has_add_permission(self, request):
        # Only allow one settings instance
        return not CommissionsSettings.all_objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CommissionRule)
class CommissionRuleAdmin(admin.ModelAdmin):
    list_display = ['name', 'scope', 'rate_type', 'rate', 'fixed_amount', 'is_default', 'is_active', 'priority', 'updated_at']
    list_filter = ['scope', 'rate_type', 'is_active', 'is_default']
    search_fields = ['name', 'description']
    ordering = ['priority', 'name']
    readonly_fields = ['created_at', 'updated_at']

    def has_delete_permission(self, request, obj=None):
        # Rules are archived through the service, never hard-deleted
        return False


@admin.register(CommissionTransaction)
class CommissionTransactionAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'order_id', 'vendor_id', 'order_amount',
        'commission_rate', 'commission_amount', 'status', 'created_at'
    ]
    list_filter = ['status']
    search_fields = ['order_id', 'vendor_id', 'customer_id']
    date_hierarchy = 'created_at'
    readonly_fields = [
        'order_id', 'order_amount', 'rule', 'commission_rate',
        'commission_amount', 'created_at', 'updated_at'
    ]
