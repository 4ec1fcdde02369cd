from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from configuration.models import Configuration
from configuration.utils import (
    cache_configuration_value,
    clear_cached_configuration_value,
)


@receiver(post_save, sender=Configuration)
def update_cached_configuration_value(
    sender: type[Configuration], *, instance: Configuration, **kwargs
) -> None:
    """
    Post-save signal handler that updates the cached configuration value.

    If ``Configuration.get_value()`` cannot parse the new value, the stale
    cache entry is dropped instead so the next read hits the database and
    surfaces the error to the caller.
    """
    try:
        value = instance.get_value()
    except ValueError:
        clear_cached_configuration_value(instance.key)
        return
    cache_configuration_value(instance.key, value)


@receiver(post_delete, sender=Configuration)
def remove_cached_configuration_value(
    sender: type[Configuration], *, instance: Configuration, **kwargs
) -> None:
    clear_cached_configuration_value(instance.key)
