import os
import tempfile
from unittest import mock

from django.test import TestCase

from coursemigration.models import Course
from migrator import events
from migrator.exceptions import RestoreProcedureError, RetryableRestoreError
from migrator.models import MigrationJob
from migrator.packager import ZipContentPackager
from migrator.storage import PulledFile
from migrator.tasks.restore import (
    backup_file_available,
    course_restore_task,
    remove_stale_course,
    restore_course,
)

from .utils import (
    create_category,
    create_course,
    create_migration_job,
    set_boolean_configuration,
    set_configuration,
)


class RestoreCourseTests(TestCase):
    def setUp(self):
        self.category = create_category(name="Destination")
        self.job = create_migration_job(
            action=MigrationJob.Action.RESTORE,
            status=MigrationJob.Status.IN_PROGRESS,
            destination_category=self.category,
            filename="12-backup.zip",
        )

        self.storage = mock.MagicMock()
        self.storage.ready_for_pull.return_value = True
        self.storage.pull_file.return_value = mock.MagicMock(
            spec=PulledFile, path="/tmp/pulled.zip"
        )
        self.storage.file_exists.return_value = True
        self.storage.delete_file.return_value = True

        self.packager = mock.MagicMock()

    def run_restore(self, **kwargs):
        options = {"storage": self.storage, "packager": self.packager}
        options.update(kwargs)
        return restore_course(self.job, **options)

    def test_success(self):
        handler = mock.MagicMock()
        events.restore_completed.connect(handler)
        self.addCleanup(events.restore_completed.disconnect, handler)

        self.assertTrue(self.run_restore())

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, MigrationJob.Status.COMPLETED)
        self.assertIsNotNone(self.job.course_id)
        course = Course.objects.get(pk=self.job.course_id)
        self.assertEqual(course.category, self.category)

        self.storage.pull_file.assert_called_once_with("12-backup.zip")
        self.storage.pull_file.return_value.delete.assert_called_once_with()
        extract_dir = self.packager.extract.call_args.args[1]
        # The scratch directory is gone once the attempt is over
        self.assertFalse(os.path.exists(extract_dir))
        self.packager.restore.assert_called_once_with(extract_dir, course)
        self.storage.delete_file.assert_not_called()

        handler.assert_called_once()
        self.assertEqual(handler.call_args.kwargs["course_id"], course.pk)
        self.assertEqual(handler.call_args.kwargs["category_id"], self.category.pk)

    def test_success_with_cleanup_options(self):
        set_boolean_configuration("hidden_course", True)
        set_boolean_configuration("successful_delete", True)

        self.assertTrue(self.run_restore())

        self.job.refresh_from_db()
        self.assertFalse(Course.objects.get(pk=self.job.course_id).visible)
        self.storage.delete_file.assert_called_once_with("12-backup.zip")

    def test_default_category_is_used(self):
        default = create_category(name="Default")
        set_configuration("default_category", default.pk, "number")
        self.job.destination_category_id = 9999
        self.job.save()

        self.assertTrue(self.run_restore())

        self.job.refresh_from_db()
        self.assertEqual(Course.objects.get(pk=self.job.course_id).category, default)

    def test_failure_with_file_available_retries(self):
        self.packager.restore.side_effect = RestoreProcedureError("Bad backup")
        handler = mock.MagicMock()
        events.restore_failed.connect(handler)
        self.addCleanup(events.restore_failed.disconnect, handler)

        with self.assertRaises(RetryableRestoreError) as cm:
            self.run_restore()

        self.assertEqual(cm.exception.migration_job_id, self.job.pk)
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, MigrationJob.Status.RETRYING)
        self.assertEqual(self.job.retry_count, 1)
        self.assertEqual(self.job.error, "Cannot restore the course. Bad backup")
        self.assertTrue(handler.call_args.kwargs["retrying"])

    def test_failure_with_retries_exhausted(self):
        self.packager.restore.side_effect = RestoreProcedureError("Bad backup")

        self.assertFalse(self.run_restore(retries_exhausted=True))

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, MigrationJob.Status.FAILED)

    def test_failure_with_file_gone(self):
        self.storage.pull_file.return_value = None
        self.storage.get_error.return_value = "Cannot read file."
        self.storage.file_exists.return_value = False

        self.assertFalse(self.run_restore())

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, MigrationJob.Status.FAILED)
        self.assertEqual(
            self.job.error,
            "Cannot restore the course. File can not be pulled from the storage. "
            "Error: Cannot read file.",
        )
        self.packager.extract.assert_not_called()

    def test_failure_deletes_file_when_configured(self):
        set_boolean_configuration("fail_restore_delete", True)
        self.packager.extract.side_effect = RestoreProcedureError("Corrupt")
        self.storage.file_exists.return_value = False

        self.assertFalse(self.run_restore())

        self.storage.delete_file.assert_called_once_with("12-backup.zip")
        self.storage.pull_file.return_value.delete.assert_called_once_with()

    def test_storage_not_configured(self):
        self.assertFalse(self.run_restore(storage=None))
        self.job.refresh_from_db()
        self.assertEqual(
            self.job.error,
            "Cannot restore the course. A storage class has not been configured",
        )
        self.assertEqual(self.job.status, MigrationJob.Status.FAILED)

    def test_storage_not_ready(self):
        self.storage.ready_for_pull.return_value = False

        self.assertFalse(self.run_restore())

        self.job.refresh_from_db()
        self.assertEqual(
            self.job.error,
            "Cannot restore the course. Unable to restore course. The [restore "
            "from] directory has not been configured",
        )

    def test_missing_category(self):
        self.job.destination_category_id = 9999
        self.job.save()
        self.storage.file_exists.return_value = False

        self.assertFalse(self.run_restore())

        self.job.refresh_from_db()
        self.assertIn("category 9999 does not exist", self.job.error)
        self.assertIsNone(self.job.course_id)

    def test_restart_removes_previous_course(self):
        stale = create_course(category=self.category)
        self.job.course = stale
        self.job.status = MigrationJob.Status.RETRYING
        self.job.save()

        self.assertTrue(self.run_restore())

        self.job.refresh_from_db()
        self.assertFalse(Course.objects.filter(pk=stale.pk).exists())
        self.assertNotEqual(self.job.course_id, stale.pk)
        self.assertEqual(
            self.job.error, f"Migration task was restarted. Previous course ID {stale.pk}."
        )


class RemoveStaleCourseTests(TestCase):
    def test_deletes_course(self):
        course = create_course()
        job = create_migration_job(action=MigrationJob.Action.RESTORE)
        self.assertTrue(remove_stale_course(job, course.pk))
        self.assertFalse(Course.objects.filter(pk=course.pk).exists())

    def test_missing_course(self):
        job = create_migration_job(action=MigrationJob.Action.RESTORE)
        self.assertFalse(remove_stale_course(job, 9999))

    @mock.patch("migrator.tasks.restore.course_cleanup_task")
    @mock.patch("migrator.tasks.restore.delete_course")
    def test_failure_queues_cleanup(self, delete_course, cleanup_task):
        delete_course.side_effect = RuntimeError("locked")
        job = create_migration_job(action=MigrationJob.Action.RESTORE)

        self.assertFalse(remove_stale_course(job, 42))

        cleanup_task.delay.assert_called_once_with(course_id=42)


class BackupFileAvailableTests(TestCase):
    def test_backup_file_available(self):
        storage = mock.MagicMock()
        storage.ready_for_pull.return_value = True
        storage.file_exists.return_value = True

        self.assertTrue(backup_file_available(storage, "a.zip"))
        self.assertFalse(backup_file_available(None, "a.zip"))
        self.assertFalse(backup_file_available(storage, ""))

        storage.ready_for_pull.return_value = False
        self.assertFalse(backup_file_available(storage, "a.zip"))


class CourseRestoreTaskTests(TestCase):
    def setUp(self):
        self.restore_from = tempfile.TemporaryDirectory()
        self.addCleanup(self.restore_from.cleanup)
        set_configuration("restore_from", self.restore_from.name)

        self.category = create_category(name="Destination")
        source = create_course(fullname="Ancient History", shortname="ancient")
        packager = ZipContentPackager(working_dir=self.restore_from.name)
        archive = packager.create_archive(source)
        self.filename = "1-backup.zip"
        os.rename(archive.path, os.path.join(self.restore_from.name, self.filename))

    def test_restore_from_shared_disk(self):
        job = create_migration_job(
            action=MigrationJob.Action.RESTORE,
            destination_category=self.category,
            filename=self.filename,
        )

        self.assertTrue(course_restore_task(migration_job_id=job.pk))

        job.refresh_from_db()
        self.assertEqual(job.status, MigrationJob.Status.COMPLETED)
        course = Course.objects.get(pk=job.course_id)
        self.assertEqual(course.fullname, "Ancient History")
        self.assertEqual(course.shortname, "ancient_1")
        self.assertEqual(course.category, self.category)

    def test_finished_job_is_skipped(self):
        job = create_migration_job(
            action=MigrationJob.Action.RESTORE,
            status=MigrationJob.Status.COMPLETED,
            filename=self.filename,
        )

        self.assertIsNone(course_restore_task(migration_job_id=job.pk))

        job.refresh_from_db()
        self.assertEqual(job.status, MigrationJob.Status.COMPLETED)
        self.assertIsNone(job.course_id)

    @mock.patch("migrator.tasks.restore.get_content_packager")
    def test_failed_attempt_is_raised_for_retry(self, get_content_packager):
        get_content_packager.return_value.restore.side_effect = RestoreProcedureError(
            "Bad backup"
        )
        job = create_migration_job(
            action=MigrationJob.Action.RESTORE,
            destination_category=self.category,
            filename=self.filename,
        )

        with self.assertRaises(RetryableRestoreError):
            course_restore_task(migration_job_id=job.pk)

        job.refresh_from_db()
        self.assertEqual(job.status, MigrationJob.Status.RETRYING)
        # The half restored course is kept for the next attempt to remove
        self.assertIsNotNone(job.course_id)
