from django.apps import AppConfig


class ConfigurationConfig(AppConfig):
    name = "configuration"
    verbose_name = "Configuration"

    def ready(self):
        # Connects the post_save receiver which refreshes cached values
        from configuration import signals  # NOQA: F401
