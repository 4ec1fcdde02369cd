import os
import shutil
import uuid
from logging import getLogger
from typing import Optional

from django.conf import settings

from configuration.utils import configuration_value
from migrator.storage.base import PulledFile, StorageBackend

logger = getLogger(__name__)


class SharedDiskStorage(StorageBackend):
    """
    Transfers backup files through a directory both instances can see, such
    as an NFS mount.

    The source instance copies backups into ``save_to``; the destination
    instance reads them from ``restore_from``. Both usually point at the same
    share. Readiness only checks that the directory is configured; missing
    directories and permission problems show up on the first push or pull.
    """

    label = "Shared disk storage"

    def __init__(self, save_to=None, restore_from=None, working_dir=None):
        super().__init__()
        if save_to is None:
            save_to = configuration_value("save_to", default="")
        if restore_from is None:
            restore_from = configuration_value("restore_from", default="")
        self.save_to = (save_to or "").strip()
        self.restore_from = (restore_from or "").strip()
        self.working_dir = working_dir or os.path.join(
            settings.COURSE_MIGRATION_TEMP_DIR, "pulled"
        )

    def __repr__(self):
        return "SharedDiskStorage(save_to=%r, restore_from=%r)" % (
            self.save_to,
            self.restore_from,
        )

    def ready_for_push(self) -> bool:
        return bool(self.save_to)

    def ready_for_pull(self) -> bool:
        return bool(self.restore_from)

    def _configured_directories(self):
        # Same share on both sides is common, so avoid visiting it twice
        directories = []
        for directory in (self.restore_from, self.save_to):
            if directory and directory not in directories:
                directories.append(directory)
        return directories

    def push_file(self, filename: str, source_path: str) -> bool:
        self.clear_error()
        if not self.ready_for_push():
            self.set_error("The [save to] directory has not been configured")
            return False

        destination = os.path.join(self.save_to, filename)
        try:
            shutil.copyfile(source_path, destination)
        except OSError as exc:
            self.set_error(exc)
            return False

        logger.info("Copied %s to %s", source_path, destination)
        return True

    def pull_file(self, filename: str) -> Optional[PulledFile]:
        self.clear_error()
        if not self.ready_for_pull():
            self.set_error("The [restore from] directory has not been configured")
            return None

        source = os.path.join(self.restore_from, filename)
        if not os.path.isfile(source) or not os.access(source, os.R_OK):
            self.set_error(
                "Cannot read file. Either the file does not exist or there is a "
                f"permission problem. ({source})"
            )
            return None

        working_copy = os.path.join(self.working_dir, f"{uuid.uuid4().hex}-{filename}")
        try:
            os.makedirs(self.working_dir, exist_ok=True)
            shutil.copyfile(source, working_copy)
        except OSError as exc:
            self.set_error(exc)
            return None

        logger.info("Pulled %s into %s", source, working_copy)
        return PulledFile(working_copy, filename)

    def delete_file(self, filename: str) -> bool:
        self.clear_error()
        deleted = False
        for directory in self._configured_directories():
            path = os.path.join(directory, filename)
            if not os.path.isfile(path):
                continue
            try:
                os.remove(path)
            except OSError as exc:
                self.set_error(exc)
                return False
            logger.info("Deleted %s", path)
            deleted = True

        if not deleted:
            self.set_error(f"File {filename} does not exist in storage")
        return deleted

    def file_exists(self, filename: str) -> bool:
        self.clear_error()
        return any(
            os.path.isfile(os.path.join(directory, filename))
            for directory in self._configured_directories()
        )
