from django.apps import AppConfig


class TicketsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tickets'
    verbose_name = 'Service desk tickets'

    def ready(self):
        from . import notifications  # noqa: F401
