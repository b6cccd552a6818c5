from django.apps import AppConfig


class TicketingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ticketing"

    def ready(self) -> None:
        """Connect signal receivers. No work starts here; beat drives the periodic jobs."""
        import ticketing.signals  # noqa: F401
