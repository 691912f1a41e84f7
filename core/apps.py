from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Sessões de Login'

    def ready(self):
        # Registrar signals de login/logout
        import core.signals  # noqa: F401
