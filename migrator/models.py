"""
Persistence for migration jobs.

A MigrationJob records the intent to migrate one course, where that
migration has got to, and every error hit along the way. Jobs are created
with the status "not started", moved to "in progress" by the scheduler
sweeps and finished by the backup or restore worker. They are never
deleted here; the rows are the migration report.
"""

import secrets
from logging import getLogger

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import Q
from django.utils import timezone

from migrator.exceptions import IllegalStatusTransition

logger = getLogger(__name__)

ERROR_DELIMITER = "\n"


class MigrationJobQuerySet(models.QuerySet):
    def create_job(
        self,
        action,
        course_id=None,
        destination_category_id=None,
        filename="",
        user=None,
    ):
        return self.create(
            action=action,
            course_id=course_id or None,
            destination_category_id=destination_category_id or None,
            filename=filename or "",
            created_by=user,
            modified_by=user,
        )

    def find_all(
        self, action=None, status=None, created_after=None, created_before=None
    ):
        """
        Filter jobs for reporting. Every argument is optional and the
        creation time range is inclusive at both ends.
        """
        queryset = self
        if action:
            queryset = queryset.filter(action=action)
        if status:
            queryset = queryset.filter(status=status)
        if created_after:
            queryset = queryset.filter(created__gte=created_after)
        if created_before:
            queryset = queryset.filter(created__lte=created_before)
        return queryset.order_by("created", "pk")

    def awaiting_dispatch(self, action, limit):
        return self.filter(
            action=action, status=MigrationJob.Status.NOT_STARTED
        ).order_by("created", "pk")[:limit]

    def mark_dispatched(self, pk, task_id=None):
        """
        Move a job which has just been queued from "not started" to
        "in progress".

        The update only applies while the job is still "not started": a worker
        which already picked the job up may have moved it on, and its status
        must win.

        Returns:
            bool: True if this call changed the status.
        """
        updated = self.filter(pk=pk, status=MigrationJob.Status.NOT_STARTED).update(
            status=MigrationJob.Status.IN_PROGRESS,
            task_id=task_id,
            modified=timezone.now(),
        )
        return bool(updated)


class MigrationJob(models.Model):
    class Action(models.TextChoices):
        BACKUP = "backup", "Backup"
        RESTORE = "restore", "Restore"

    class Status(models.TextChoices):
        NOT_STARTED = "not_started", "Not started"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        RETRYING = "retrying", "Retrying"

    # Completed and failed jobs are terminal
    ALLOWED_TRANSITIONS = {
        Status.NOT_STARTED: frozenset({Status.IN_PROGRESS, Status.FAILED}),
        Status.IN_PROGRESS: frozenset(
            {Status.COMPLETED, Status.FAILED, Status.RETRYING}
        ),
        Status.RETRYING: frozenset({Status.IN_PROGRESS, Status.FAILED}),
        Status.COMPLETED: frozenset(),
        Status.FAILED: frozenset(),
    }

    action = models.CharField(max_length=10, choices=Action.choices)

    # No database constraints: the ids must survive the course or category
    # being deleted so the job still reports what it referred to
    course = models.ForeignKey(
        "coursemigration.Course",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="+",
        help_text="Course to back up, or the course created by a restore",
    )
    destination_category = models.ForeignKey(
        "coursemigration.Category",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="+",
        help_text="Category the course is restored into",
    )

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.NOT_STARTED
    )
    filename = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Name of the backup file in storage",
    )
    errors = models.JSONField(
        help_text="Every error recorded for this job, oldest first",
        encoder=DjangoJSONEncoder,
        default=list,
        blank=True,
    )

    task_id = models.UUIDField(
        help_text="UUID of the last Celery task to process this job",
        null=True,
        blank=True,
    )
    last_started = models.DateTimeField(
        help_text="Last time when a worker started processing this job",
        null=True,
        blank=True,
    )
    retry_count = models.IntegerField(
        help_text="Number of times the restore was retried", default=0
    )

    created = models.DateTimeField(auto_now_add=True, db_index=True)
    modified = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    objects = MigrationJobQuerySet.as_manager()

    class Meta:
        ordering = ("created", "pk")
        indexes = [
            models.Index(
                fields=["action", "status", "created"],
                name="migrator_job_dispatch_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(action__in=["backup", "restore"]),
                name="migrator_migrationjob_action_valid",
            ),
            models.CheckConstraint(
                condition=Q(
                    status__in=[
                        "not_started",
                        "in_progress",
                        "completed",
                        "failed",
                        "retrying",
                    ]
                ),
                name="migrator_migrationjob_status_valid",
            ),
        ]
        permissions = [
            ("restore_course", "Can request a course restore"),
        ]

    def __str__(self):
        return "MigrationJob(id=%s, action=%s, status=%s)" % (
            self.pk,
            self.action,
            self.status,
        )

    @property
    def error(self):
        """
        All recorded error messages joined into one string, or None.
        """
        if not self.errors:
            return None
        return ERROR_DELIMITER.join(record["message"] for record in self.errors)

    @property
    def is_finished(self):
        return self.status in (self.Status.COMPLETED, self.Status.FAILED)

    def append_error(self, message, do_save=True):
        # Errors are only ever added; earlier attempts stay in the trail
        self.errors.append({"timestamp": timezone.now(), "message": str(message)})
        if do_save:
            self.save()

    def can_transition_to(self, status):
        return status == self.status or status in self.ALLOWED_TRANSITIONS.get(
            self.status, ()
        )

    def transition_to(self, status, do_save=True):
        """
        Move the job to ``status``.

        Re-asserting the current status is allowed and does nothing else.

        Raises:
            IllegalStatusTransition: if the two statuses are not connected.
        """
        status = self.Status(status)
        if status == self.status:
            return
        if not self.can_transition_to(status):
            raise IllegalStatusTransition(self.status, status)

        logger.info("Migration job %s: %s -> %s", self.pk, self.status, status)
        if status == self.Status.IN_PROGRESS:
            self.last_started = timezone.now()
        elif status == self.Status.RETRYING:
            self.retry_count += 1
        self.status = status
        if do_save:
            self.save()

    def fail(self, message, do_save=True):
        self.append_error(message, do_save=False)
        self.transition_to(self.Status.FAILED, do_save=do_save)

    def backup_filename(self, packager_name):
        return f"{self.pk}-{packager_name}"


def generate_service_token():
    return secrets.token_hex(32)


class ServiceToken(models.Model):
    """
    A token the source instance sends with restore requests.

    Requests act as ``user``, so that user needs the
    ``migrator.restore_course`` permission.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="migration_service_tokens",
    )
    token = models.CharField(
        max_length=128, unique=True, default=generate_service_token
    )
    name = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created = models.DateTimeField(auto_now_add=True)
    last_used = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.name or f"Service token for {self.user}"
