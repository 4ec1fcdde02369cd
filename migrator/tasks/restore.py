from logging import getLogger

from django.conf import settings

from configuration.utils import configuration_value
from coursemigration.celery import app
from coursemigration.contextmanagers import scratch_directory
from coursemigration.logging import MigrationLogger
from coursemigration.models import Course, delete_course
from migrator import events
from migrator.exceptions import (
    MigrationError,
    PullFailedError,
    RetryableRestoreError,
    StorageNotConfiguredError,
    StorageNotReadyError,
)
from migrator.helpers import get_restore_category
from migrator.models import MigrationJob
from migrator.packager import get_content_packager
from migrator.storage import get_selected_storage

from .cleanup import course_cleanup_task
from .decorators import migration_job_task

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)

RESTORE_ERROR_PREFIX = "Cannot restore the course. "


@app.task(
    bind=True,
    autoretry_for=(RetryableRestoreError,),
    retry_backoff=60,
    retry_backoff_max=6 * 60 * 60,
    retry_jitter=True,
    max_retries=settings.COURSE_MIGRATION_RESTORE_MAX_RETRIES,
)
def course_restore_task(self, migration_job_id=None):
    return run_course_restore(self, migration_job_id=migration_job_id)


@migration_job_task(MigrationJob.Action.RESTORE)
def run_course_restore(self, job):
    # On the last allowed attempt a failure has to be final
    retries_exhausted = (
        self.max_retries is not None and self.request.retries >= self.max_retries
    )
    return restore_course(
        job,
        storage=get_selected_storage(),
        packager=get_content_packager(),
        retries_exhausted=retries_exhausted,
    )


def restore_course(job, *, storage, packager, retries_exhausted=False):
    """
    Restore the job's backup file into a new course.

    A course left by an earlier attempt is deleted first, so a restore never
    completes on top of a half restored course.

    Every attempt extracts into its own scratch directory, which is removed
    whatever the outcome. When an attempt fails and the backup file is still
    in storage the job moves to "retrying" and ``RetryableRestoreError`` is
    raised for the task to retry; otherwise the job fails.

    Args:
        job (MigrationJob): A restore job which is not finished.
        storage (StorageBackend | None): None means no storage is configured.
        packager (ContentPackager): Extracts and restores the archive.
        retries_exhausted (bool): No further retry will be scheduled.

    Returns:
        bool: True if the course was restored, False if the job failed.

    Raises:
        RetryableRestoreError: The attempt failed and should be retried.
    """
    if job.course_id:
        stale_course_id = job.course_id
        job.append_error(
            f"Migration task was restarted. Previous course ID {stale_course_id}.",
            do_save=False,
        )
        remove_stale_course(job, stale_course_id)
        job.course = None
        job.save()

    job.transition_to(MigrationJob.Status.IN_PROGRESS)
    job_logger = structured_logger.bind(job=job)

    try:
        with scratch_directory(settings.COURSE_MIGRATION_TEMP_DIR, "restore") as path:
            if storage is None:
                raise StorageNotConfiguredError(
                    "A storage class has not been configured"
                )
            if not storage.ready_for_pull():
                raise StorageNotReadyError(
                    "Unable to restore course. The [restore from] directory has "
                    "not been configured"
                )

            pulled = storage.pull_file(job.filename)
            if pulled is None:
                raise PullFailedError(
                    "File can not be pulled from the storage. Error: "
                    f"{storage.get_error()}"
                )
            try:
                packager.extract(pulled.path, path)
            finally:
                # Only the working copy; the file in storage is untouched
                pulled.delete()

            category = get_restore_category(job.destination_category_id)
            course = Course.objects.create_shell(category)
            # Saved straight away so a later attempt can find and remove it
            job.course = course
            job.save()
            job_logger.info(
                "Created course for restore.",
                event_code="restore_course_created",
                course_id=course.pk,
                category_id=category.pk,
            )

            packager.restore(path, course)
    except Exception as exc:
        if not isinstance(exc, MigrationError):
            logger.exception("Unexpected error while restoring %s", job)
        return fail_restore(job, storage, str(exc), retries_exhausted)

    job.transition_to(MigrationJob.Status.COMPLETED)

    if configuration_value("hidden_course", default=False):
        course.visible = False
        course.save()

    if configuration_value("successful_delete", default=False):
        if not storage.delete_file(job.filename):
            logger.warning(
                "Unable to delete %s after restoring it: %s",
                job.filename,
                storage.get_error(),
            )

    events.emit_event(
        events.restore_completed,
        sender=MigrationJob,
        migration_job_id=job.pk,
        course_id=course.pk,
        category_id=category.pk,
        filename=job.filename,
    )
    return True


def fail_restore(job, storage, message, retries_exhausted=False):
    error = f"{RESTORE_ERROR_PREFIX}{message}"
    job.append_error(error, do_save=False)

    if storage is not None and configuration_value("fail_restore_delete", default=False):
        if not storage.delete_file(job.filename):
            logger.warning(
                "Unable to delete %s after the restore failed: %s",
                job.filename,
                storage.get_error(),
            )

    retrying = not retries_exhausted and backup_file_available(storage, job.filename)
    if retrying:
        job.transition_to(MigrationJob.Status.RETRYING)
    else:
        job.transition_to(MigrationJob.Status.FAILED)

    events.emit_event(
        events.restore_failed,
        sender=MigrationJob,
        migration_job_id=job.pk,
        filename=job.filename,
        error=error,
        retrying=retrying,
    )

    if retrying:
        raise RetryableRestoreError(error, migration_job_id=job.pk)
    return False


def backup_file_available(storage, filename):
    if storage is None or not filename or not storage.ready_for_pull():
        return False
    return storage.file_exists(filename)


def remove_stale_course(job, course_id):
    """
    Delete the course an earlier attempt created. Failures are logged and
    handed to ``course_cleanup_task`` instead of stopping the restore.
    """
    try:
        deleted = delete_course(course_id)
    except Exception as exc:
        structured_logger.warning(
            "Stale course could not be deleted, queueing cleanup.",
            event_code="stale_course_delete_failed",
            reason=str(exc) or type(exc).__name__,
            reason_code="course_delete_error",
            job=job,
            course_id=course_id,
        )
        try:
            course_cleanup_task.delay(course_id=course_id)
        except Exception:
            logger.exception("Unable to queue cleanup of course %s", course_id)
        return False

    if not deleted:
        logger.info("Previous course %s of %s no longer exists", course_id, job)
    return deleted
