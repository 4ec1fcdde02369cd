from logging import getLogger

from configuration.utils import configuration_value
from coursemigration.celery import app
from coursemigration.logging import MigrationLogger
from coursemigration.models import Course
from migrator import events
from migrator.exceptions import (
    MigrationError,
    NotifyFailedError,
    PushFailedError,
    StorageNotConfiguredError,
    StorageNotReadyError,
)
from migrator.models import MigrationJob
from migrator.packager import get_content_packager
from migrator.remote import RestoreApi
from migrator.storage import get_selected_storage

from .decorators import migration_job_task

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)


@app.task(bind=True)
def course_backup_task(self, migration_job_id=None):
    return run_course_backup(self, migration_job_id=migration_job_id)


@migration_job_task(MigrationJob.Action.BACKUP)
def run_course_backup(self, job):
    return backup_course(
        job, storage=get_selected_storage(), packager=get_content_packager()
    )


def backup_course(job, *, storage, packager, notifier=None):
    """
    Back up the job's course, push the archive to storage and ask the
    destination instance to restore it.

    Expected failures fail the job and return False. Anything else also
    fails the job and is re-raised.

    Args:
        job (MigrationJob): A backup job which is not finished.
        storage (StorageBackend | None): None means no storage is configured.
        packager (ContentPackager): Produces the archive.
        notifier (RestoreApi | None): Built from configuration when None.

    Returns:
        bool: True if the job completed.
    """
    job.transition_to(MigrationJob.Status.IN_PROGRESS)
    job_logger = structured_logger.bind(job=job)
    archive = None

    try:
        if storage is None:
            raise StorageNotConfiguredError("A storage class has not been configured")
        if not storage.ready_for_push():
            raise StorageNotReadyError(
                "Unable to backup course. The [save to] directory has not been "
                "configured"
            )
        if notifier is None:
            notifier = RestoreApi()

        course = Course.objects.filter(pk=job.course_id).first()
        if course is None:
            raise MigrationError(f"Course {job.course_id} does not exist")

        # The archive must never carry enrolments or other user data
        archive = packager.create_archive(course, include_users=False, anonymize=False)
        filename = job.backup_filename(archive.name)

        if not storage.push_file(filename, archive.path):
            raise PushFailedError(
                "Error in copying file to destination directory: "
                f"{storage.get_error()}."
            )

        job.filename = filename
        job.save()
        job_logger.info(
            "Backup pushed to storage.", event_code="backup_pushed", filename=filename
        )

        if not notifier.request_restore(filename, job.destination_category_id or 0):
            if configuration_value("fail_backup_delete", default=False):
                if not storage.delete_file(filename):
                    logger.warning(
                        "Unable to delete %s after the restore request failed: %s",
                        filename,
                        storage.get_error(),
                    )
            raise NotifyFailedError("Restore request WS call failed.")
    except MigrationError as exc:
        fail_backup(job, str(exc))
        return False
    except Exception as exc:
        logger.exception("Unexpected error while backing up %s", job)
        fail_backup(job, f"Unexpected error during backup: {exc}")
        raise
    finally:
        if archive is not None:
            archive.delete()

    job.transition_to(MigrationJob.Status.COMPLETED)
    events.emit_event(
        events.backup_completed,
        sender=MigrationJob,
        migration_job_id=job.pk,
        course_id=job.course_id,
        filename=job.filename,
    )
    return True


def fail_backup(job, message):
    job.fail(message)
    events.emit_event(
        events.backup_failed,
        sender=MigrationJob,
        migration_job_id=job.pk,
        course_id=job.course_id,
        error=message,
    )
