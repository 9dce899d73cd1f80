from django.apps import AppConfig


class MarketplaceCommissionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "marketplace_commissions"
    label = "commissions"
    verbose_name = "Marketplace Commissions"
