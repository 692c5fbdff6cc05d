"""
Django Labworks app configuration.
"""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class LabworksConfig(AppConfig):
    """Labworks application configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "labworks"
    verbose_name = _("Laboratory production")

    def ready(self):
        """Import signal handlers when app is ready."""
        # Import handlers to register them
        from labworks.signals import handlers  # noqa: F401
