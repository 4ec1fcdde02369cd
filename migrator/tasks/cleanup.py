from logging import getLogger

from django.db import DatabaseError

from coursemigration.celery import app
from coursemigration.logging import MigrationLogger
from coursemigration.models import Course, Enrolment, delete_course

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)


@app.task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=60,
    retry_backoff_max=60 * 60,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def course_cleanup_task(self, course_id=None):
    """
    Delete a course left behind by an aborted restore.

    The first attempt deletes the whole course at once. Retries remove the
    enrolments one at a time first and report the first one which could not
    be deleted, so the next retry starts from a smaller course.
    """
    if not course_id:
        return False

    if not Course.objects.filter(pk=course_id).exists():
        logger.info("Course %s no longer exists, nothing to clean up", course_id)
        return False

    if self.request.retries:
        failures = []
        for enrolment in Enrolment.objects.filter(course_id=course_id):
            try:
                enrolment.delete()
            except DatabaseError as exc:
                logger.warning(
                    "Unable to delete enrolment %s of course %s: %s",
                    enrolment.pk,
                    course_id,
                    exc,
                )
                failures.append(exc)
        if failures:
            raise failures[0]

    deleted = delete_course(course_id)
    structured_logger.info(
        "Stale course cleaned up.",
        event_code="stale_course_cleaned_up",
        course_id=course_id,
        attempt=self.request.retries + 1,
    )
    return deleted
