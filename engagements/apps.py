from django.apps import AppConfig


class EngagementsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "engagements"
    verbose_name = "Engagements"

    def ready(self):
        # Import signal handlers so new engagements get their periods.
        from . import signals  # noqa: F401
