from django.urls import path
from . import views

app_name = 'commissions'

urlpatterns = [
    # Rules
    path('rules/', views.rule_list, name='rule_list'),
    path('rules/create/', views.rule_create, name='rule_create'),
    path('rules/bulk-status/', views.rule_bulk_status, name='rule_bulk_status'),
    path('rules/<int:pk>/', views.rule_detail, name='rule_detail'),
    path('rules/<int:pk>/edit/', views.rule_edit, name='rule_edit'),
    path('rules/<int:pk>/delete/', views.rule_delete, name='rule_delete'),
    path('rules/<int:pk>/toggle/', views.rule_toggle, name='rule_toggle'),

    # Transactions
    path('transactions/', views.transaction_list, name='transaction_list'),
    path('transactions/<int:pk>/status/', views.transaction_status, name='transaction_status'),

    # Settings
    path('settings/', views.settings, name='settings'),

    # API
    path('api/calculate/', views.api_calculate, name='api_calculate'),
    path('api/transactions/', views.api_record_transaction, name='api_record_transaction'),
    path('api/report/', views.api_report, name='api_report'),
    path('api/analytics/', views.api_analytics, name='api_analytics'),
]
