from django.apps import AppConfig


class PrintOrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.print_orders"
    label = "print_orders"
    verbose_name = "Print orders"
