"""
Periodic sweeps which hand "not started" jobs to the backup and restore
workers.

Each sweep runs under a cache lock so concurrent beat schedulers never sweep
at the same time. A job is queued first and only then marked "in progress",
with a conditional update which leaves alone any job a fast worker has
already moved on. If queueing fails a job which is still "not started" fails
with the broker's error, so no job is left "in progress" without a task.
"""

import uuid
from logging import getLogger

from django.conf import settings

from configuration.utils import configuration_value
from coursemigration.celery import app
from coursemigration.contextmanagers import cache_lock
from coursemigration.logging import MigrationLogger
from coursemigration.models import Course
from migrator import events
from migrator.exceptions import CategoryResolutionError
from migrator.helpers import get_restore_category
from migrator.models import MigrationJob

from .backup import course_backup_task
from .restore import course_restore_task

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)

SWEEP_LOCK_DURATION = 60 * 5  # 5 minutes


def get_batch_limit(key):
    try:
        limit = int(configuration_value(key, default=0) or 0)
    except (TypeError, ValueError):
        limit = 0
    if limit <= 0:
        limit = settings.COURSE_MIGRATION_BATCH_LIMIT
    return limit


def dispatch_job(job, task):
    """
    Queue ``task`` for ``job`` and mark the job as in progress.

    Returns:
        bool: False if queueing raised. A job still "not started" then fails;
        a job a worker has already moved on is left as it is.
    """
    try:
        result = task.delay(migration_job_id=job.pk)
    except Exception as exc:
        message = f"Cannot create adhoc task: {exc}"
        structured_logger.error(
            "Unable to queue migration task.",
            event_code="migration_task_dispatch_failed",
            reason=str(exc) or type(exc).__name__,
            reason_code="dispatch_error",
            job=job,
        )
        job.refresh_from_db()
        if job.status != MigrationJob.Status.NOT_STARTED:
            # The message may have been published anyway; a worker owns the job
            logger.warning(
                "Migration job %s is %s after a failed dispatch, leaving it alone",
                job.pk,
                job.status,
            )
            return False
        job.fail(message)
        return False

    MigrationJob.objects.mark_dispatched(job.pk, result.id)
    structured_logger.info(
        "Migration task queued.",
        event_code="migration_task_dispatched",
        job=job,
        task_id=result.id,
    )
    return True


@app.task(ignore_result=True)
def create_backup_tasks():
    with cache_lock("create_backup_tasks", uuid.uuid4().hex, SWEEP_LOCK_DURATION) as acquired:
        if not acquired:
            logger.info("Backup sweep already running, skipping this run")
            return 0
        return dispatch_backup_jobs(get_batch_limit("backup_batch_limit"))


def dispatch_backup_jobs(limit, task=course_backup_task):
    """
    Queue backup tasks for the oldest ``limit`` not started backup jobs.

    Jobs whose course no longer exists fail here instead of being queued.

    Returns:
        int: Number of tasks queued.
    """
    dispatched = 0
    jobs = list(MigrationJob.objects.awaiting_dispatch(MigrationJob.Action.BACKUP, limit))
    logger.info("%s backup jobs found", len(jobs))

    for job in jobs:
        if not job.course_id or not Course.objects.filter(pk=job.course_id).exists():
            message = (
                f"Error in creating backup task. Migration id: {job.pk} "
                f"error message: Course {job.course_id} does not exist"
            )
            job.fail(message)
            events.emit_event(
                events.backup_failed,
                sender=MigrationJob,
                migration_job_id=job.pk,
                course_id=job.course_id,
                error=message,
            )
            continue

        if dispatch_job(job, task):
            dispatched += 1
            logger.info(
                "Successfully created a backup task. Migration id: %s", job.pk
            )

    return dispatched


@app.task(ignore_result=True)
def create_restore_tasks():
    with cache_lock("create_restore_tasks", uuid.uuid4().hex, SWEEP_LOCK_DURATION) as acquired:
        if not acquired:
            logger.info("Restore sweep already running, skipping this run")
            return 0
        return dispatch_restore_jobs(get_batch_limit("restore_batch_limit"))


def dispatch_restore_jobs(limit, task=course_restore_task):
    """
    Queue restore tasks for the oldest ``limit`` not started restore jobs.

    The destination category is resolved first, falling back to the default
    category, and stored on the job. Jobs for which neither exists fail.

    Returns:
        int: Number of tasks queued.
    """
    dispatched = 0
    jobs = list(
        MigrationJob.objects.awaiting_dispatch(MigrationJob.Action.RESTORE, limit)
    )
    logger.info("%s restore jobs found", len(jobs))

    for job in jobs:
        try:
            category = get_restore_category(job.destination_category_id)
        except CategoryResolutionError as exc:
            message = f"Invalid categoryid: {exc}"
            job.fail(message)
            events.emit_event(
                events.restore_failed,
                sender=MigrationJob,
                migration_job_id=job.pk,
                filename=job.filename,
                error=message,
                retrying=False,
            )
            continue

        if job.destination_category_id != category.pk:
            job.destination_category = category
            job.save()

        if dispatch_job(job, task):
            dispatched += 1
            logger.info(
                "Successfully created a restore task. Migration id: %s", job.pk
            )

    return dispatched
