from django.apps import AppConfig


class StampbookConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "stampbook"
    verbose_name = "Stampbook - Loyalty Stamp Ledger"
