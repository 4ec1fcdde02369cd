class MigrationError(Exception):
    """
    Base class for expected failures while migrating a course.

    The message is recorded verbatim in the job's error trail, so it should
    read well to an operator looking at the migration report.
    """


class StorageNotConfiguredError(MigrationError):
    pass


class StorageNotReadyError(MigrationError):
    pass


class PushFailedError(MigrationError):
    pass


class PullFailedError(MigrationError):
    pass


class ExtractFailedError(MigrationError):
    pass


class CategoryResolutionError(MigrationError):
    pass


class RestoreProcedureError(MigrationError):
    pass


class RestoreApiNotConfiguredError(MigrationError):
    pass


class NotifyFailedError(MigrationError):
    pass


class InvalidCourseListError(MigrationError):
    """An uploaded course list could not be read at all."""


class InvalidTaskDataError(MigrationError):
    """
    A worker task was queued without a usable migration job id.

    This is treated as a hard failure of the task and is never retried.
    """


class RetryableRestoreError(MigrationError):
    """
    Raised by a restore attempt which failed while its backup file is still
    available in storage.

    This is the only failure a worker lets escape; the Celery task retries
    on it with backoff.
    """

    def __init__(self, message, migration_job_id=None):
        super().__init__(message)
        self.migration_job_id = migration_job_id


class IllegalStatusTransition(ValueError):
    """
    A migration job was asked to move between two statuses which are not
    connected. This is a programming error, not a migration failure.
    """

    def __init__(self, current, requested):
        super().__init__(
            f"Cannot change migration job status from {current} to {requested}"
        )
        self.current = current
        self.requested = requested
