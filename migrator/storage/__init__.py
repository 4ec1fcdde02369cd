from logging import getLogger
from typing import Optional

from django.db import models

from configuration.utils import configuration_value
from migrator.storage.base import PulledFile, StorageBackend
from migrator.storage.shared_disk import SharedDiskStorage

logger = getLogger(__name__)


class StorageType(models.TextChoices):
    SHARED_DISK = "shared_disk", SharedDiskStorage.label


# Values of the storage_type configuration key and the class each selects
STORAGE_BACKENDS: dict[str, type[StorageBackend]] = {
    StorageType.SHARED_DISK: SharedDiskStorage,
}


def get_storage_class(storage_type) -> Optional[type[StorageBackend]]:
    return STORAGE_BACKENDS.get(storage_type)


def get_selected_storage() -> Optional[StorageBackend]:
    """
    Build the storage backend chosen by the ``storage_type`` configuration
    value.

    Returns:
        StorageBackend | None: None if no storage type is configured or the
        configured value is not a known type.
    """
    storage_type = configuration_value("storage_type", default="")
    if not storage_type:
        return None

    storage_class = get_storage_class(storage_type)
    if storage_class is None:
        logger.warning("Unknown storage type %r has been configured", storage_type)
        return None

    return storage_class()


__all__ = [
    "PulledFile",
    "STORAGE_BACKENDS",
    "SharedDiskStorage",
    "StorageBackend",
    "StorageType",
    "get_selected_storage",
    "get_storage_class",
]
