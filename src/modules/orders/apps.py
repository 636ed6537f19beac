from django.apps import AppConfig


class OrdersConfig(AppConfig):
    """Order records app.

    Event handlers are subscribed per use case on an injected bus (see
    ``modules.orders.handlers.build_order_event_bus``), not at start-up.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"
