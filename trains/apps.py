from django.apps import AppConfig


class TrainsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'trains'
