"""Django app configuration for photos app."""

from django.apps import AppConfig


class PhotosConfig(AppConfig):
    """Configuration for photos app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.photos'
    verbose_name = 'Photos'
