from django.apps import AppConfig


class CollectionsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.operations.collections'
    label = 'fee_collections'
