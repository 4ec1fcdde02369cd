from functools import wraps
from logging import getLogger

from coursemigration.contextmanagers import cache_lock
from coursemigration.logging import MigrationLogger
from migrator import events
from migrator.exceptions import InvalidTaskDataError
from migrator.models import MigrationJob

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)

JOB_LOCK_DURATION = 60 * 60  # One hour

FAILED_EVENTS = {
    MigrationJob.Action.BACKUP: (events.backup_failed, {"course_id": None}),
    MigrationJob.Action.RESTORE: (
        events.restore_failed,
        {"filename": None, "retrying": False},
    ),
}


def job_lock_id(migration_job_id):
    return f"migration_job_lock_{migration_job_id}"


def migration_job_task(action):
    """
    Decorator for the functions which do the work of a backup or restore
    task.

    The wrapped function is called as ``f(self, job, **kwargs)`` where
    ``self`` is the Celery task and ``job`` the MigrationJob, reloaded from
    the database while holding a per-job cache lock so no other worker
    changes it at the same time.

    The wrapper itself is called with the Celery task and the
    ``migration_job_id`` the task was queued with. It raises
    ``InvalidTaskDataError`` when that id is missing or unknown, after
    emitting the action's failure event. Jobs which are already completed or
    failed are skipped, as are jobs another worker holds the lock for.
    """
    failed_event, empty_payload = FAILED_EVENTS[action]

    def decorator(f):
        @wraps(f)
        def inner(self, migration_job_id=None, **kwargs):
            if not migration_job_id:
                message = "Invalid data. Error: missing one of the required parameters."
                events.emit_event(
                    failed_event,
                    sender=f,
                    migration_job_id=None,
                    error=message,
                    **empty_payload,
                )
                raise InvalidTaskDataError(message)

            if not MigrationJob.objects.filter(
                pk=migration_job_id, action=action
            ).exists():
                message = f"Invalid id. Error: could not find record for {action}."
                events.emit_event(
                    failed_event,
                    sender=f,
                    migration_job_id=migration_job_id,
                    error=message,
                    **empty_payload,
                )
                raise InvalidTaskDataError(message)

            task_id = self.request.id
            with cache_lock(
                job_lock_id(migration_job_id),
                task_id or "direct",
                JOB_LOCK_DURATION,
            ) as acquired:
                if not acquired:
                    structured_logger.warning(
                        "Migration job is being processed by another worker.",
                        event_code="migration_job_locked",
                        reason=(
                            f"{action.label} task, Migration id: {migration_job_id} "
                            "is already running."
                        ),
                        reason_code="job_locked",
                        migration_job_id=migration_job_id,
                    )
                    return None

                job = MigrationJob.objects.get(pk=migration_job_id)
                if job.is_finished:
                    structured_logger.warning(
                        "Migration job was already finished and will not be repeated.",
                        event_code="migration_job_already_finished",
                        reason=f"Job status is {job.status}",
                        reason_code="job_finished",
                        job=job,
                    )
                    return None

                if task_id:
                    job.task_id = task_id
                    job.save()

                logger.info("Starting %s for %s", f.__name__, job)
                return f(self, job, **kwargs)

        return inner

    return decorator
