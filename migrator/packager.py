"""
Content packagers turn a course into a backup archive and back.

The migration workers only see the ``ContentPackager`` interface. The class
used is set by the ``COURSE_MIGRATION_CONTENT_PACKAGER`` setting.
"""

import json
import os
import tempfile
import zipfile
from abc import ABC, abstractmethod
from logging import getLogger

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from django.utils.module_loading import import_string
from django.utils.text import slugify

from migrator.exceptions import ExtractFailedError, RestoreProcedureError

logger = getLogger(__name__)

ARCHIVE_FORMAT_VERSION = 1
MANIFEST_NAME = "manifest.json"
COURSE_NAME = "course.json"


class ArchiveFile:
    """
    A backup archive written to the local working area.

    ``name`` is the packager's default file name; ``path`` is where the
    bytes are until ``delete`` is called.
    """

    def __init__(self, path, name):
        self.path = path
        self.name = name

    def __repr__(self):
        return f"ArchiveFile(path={self.path!r}, name={self.name!r})"

    def delete(self):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        logger.debug("Deleted local archive %s", self.path)
        return True


class ContentPackager(ABC):
    @abstractmethod
    def default_name(self, course, include_users=False, anonymize=False):
        pass

    @abstractmethod
    def create_archive(self, course, *, include_users=False, anonymize=False):
        """Write an archive of ``course`` and return it as an ``ArchiveFile``."""

    @abstractmethod
    def extract(self, archive_path, destination_dir):
        """Unpack an archive. Raises ``ExtractFailedError``."""

    @abstractmethod
    def restore(self, extracted_dir, course):
        """
        Fill ``course`` from an extracted archive. Raises
        ``RestoreProcedureError``.
        """


class ZipContentPackager(ContentPackager):
    """
    Stores the course settings as JSON inside a zip file.

    Enrolments are never written. The ``include_users`` and ``anonymize``
    flags are recorded in the manifest so the name and contents agree, but
    user records never leave the source instance.
    """

    def __init__(self, working_dir=None):
        self.working_dir = working_dir or os.path.join(
            settings.COURSE_MIGRATION_TEMP_DIR, "archives"
        )

    def default_name(self, course, include_users=False, anonymize=False):
        users_flag = "an" if anonymize else ("" if include_users else "nu")
        parts = [
            "backup-course",
            str(course.pk),
            slugify(course.shortname) or "course",
            timezone.now().strftime("%Y%m%d-%H%M"),
        ]
        if users_flag:
            parts.append(users_flag)
        return "-".join(parts) + ".zip"

    def create_archive(self, course, *, include_users=False, anonymize=False):
        name = self.default_name(
            course, include_users=include_users, anonymize=anonymize
        )
        os.makedirs(self.working_dir, exist_ok=True)
        handle, path = tempfile.mkstemp(dir=self.working_dir, suffix=".zip")
        os.close(handle)

        manifest = {
            "format_version": ARCHIVE_FORMAT_VERSION,
            "source_course_id": course.pk,
            "users": bool(include_users),
            "anonymize": bool(anonymize),
            "created": timezone.now().isoformat(),
        }
        course_data = {
            "fullname": course.fullname,
            "shortname": course.shortname,
            "summary": course.summary,
            "visible": course.visible,
        }

        try:
            with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                zf.writestr(MANIFEST_NAME, json.dumps(manifest))
                zf.writestr(COURSE_NAME, json.dumps(course_data))
        except Exception:
            os.remove(path)
            raise

        logger.info("Created archive %s for course %s", path, course.pk)
        return ArchiveFile(path, name)

    def extract(self, archive_path, destination_dir):
        try:
            with zipfile.ZipFile(archive_path) as zf:
                if MANIFEST_NAME not in zf.namelist():
                    raise ExtractFailedError(
                        f"{os.path.basename(archive_path)} is not a course backup"
                    )
                zf.extractall(destination_dir)
        except (zipfile.BadZipFile, OSError) as exc:
            raise ExtractFailedError(f"Cannot extract backup file: {exc}") from exc

    def _read_json(self, extracted_dir, name):
        try:
            with open(os.path.join(extracted_dir, name), encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as exc:
            raise RestoreProcedureError(f"Cannot read {name}: {exc}") from exc

    def restore(self, extracted_dir, course):
        manifest = self._read_json(extracted_dir, MANIFEST_NAME)
        if manifest.get("format_version") != ARCHIVE_FORMAT_VERSION:
            raise RestoreProcedureError(
                "Unsupported backup format version "
                f"{manifest.get('format_version')!r}"
            )

        data = self._read_json(extracted_dir, COURSE_NAME)
        if not data.get("fullname") or not data.get("shortname"):
            raise RestoreProcedureError("The backup has no course name")

        course.fullname = data["fullname"]
        course.shortname = self.available_shortname(course, data["shortname"])
        course.summary = data.get("summary", "")
        course.visible = bool(data.get("visible", True))
        try:
            course.save()
        except DatabaseError as exc:
            raise RestoreProcedureError(str(exc)) from exc

        logger.info(
            "Restored course %s from backup of course %s",
            course.pk,
            manifest.get("source_course_id"),
        )
        return course

    @staticmethod
    def available_shortname(course, shortname):
        """
        Return ``shortname`` or, if another course already uses it, the first
        free ``shortname_N``.
        """
        others = type(course).objects.exclude(pk=course.pk)
        candidate = shortname
        suffix = 1
        while others.filter(shortname=candidate).exists():
            candidate = f"{shortname}_{suffix}"
            suffix += 1
        return candidate


def get_content_packager():
    return import_string(settings.COURSE_MIGRATION_CONTENT_PACKAGER)()
