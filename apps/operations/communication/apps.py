from django.apps import AppConfig


class CommunicationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.operations.communication'
    label = 'communication'

    def ready(self):
        from apps.operations.communication import signals  # noqa: F401
