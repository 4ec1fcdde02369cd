import os
from abc import ABC, abstractmethod
from logging import getLogger
from typing import Optional

logger = getLogger(__name__)


class PulledFile:
    """
    A local working copy of a blob fetched from storage.

    Deleting it only removes the copy; the blob stays in storage.
    """

    def __init__(self, path: str, name: str):
        self.path = path
        self.name = name

    def __repr__(self):
        return f"PulledFile(path={self.path!r}, name={self.name!r})"

    def open(self, mode="rb"):  # NOQA: A003
        return open(self.path, mode)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def delete(self) -> bool:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        return True


class StorageBackend(ABC):
    """
    Moves named backup files between instances.

    None of the operations raise for storage problems. They return
    False/None and leave a message in the error slot, which is reset at the
    start of every call, so it has to be read straight after a failed call.
    Constructing a backend never raises either; whether it can be used is
    asked through ``ready_for_push`` and ``ready_for_pull``.
    """

    #: Human readable name shown in configuration and reports
    label = ""

    def __init__(self):
        self._error = ""

    def get_error(self) -> str:
        return self._error

    def clear_error(self) -> None:
        self._error = ""

    def set_error(self, message) -> None:
        self._error = str(message)
        logger.warning("%s: %s", type(self).__name__, self._error)

    @abstractmethod
    def ready_for_push(self) -> bool:
        """Whether the settings needed to push files are present."""

    @abstractmethod
    def ready_for_pull(self) -> bool:
        """Whether the settings needed to pull files are present."""

    @abstractmethod
    def push_file(self, filename: str, source_path: str) -> bool:
        """Store the local file at ``source_path`` as ``filename``."""

    @abstractmethod
    def pull_file(self, filename: str) -> Optional[PulledFile]:
        """Fetch ``filename`` into a local working copy."""

    @abstractmethod
    def delete_file(self, filename: str) -> bool:
        """Remove ``filename`` from storage."""

    @abstractmethod
    def file_exists(self, filename: str) -> bool:
        """Whether ``filename`` can currently be pulled."""
