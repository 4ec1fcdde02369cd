"""
Signals announcing migration lifecycle events.

Every signal is sent through ``emit_event``, which also writes a structured
log entry whose ``event_code`` is the signal's name. Payloads are plain ids
and strings and never carry service tokens.

Signals:
    backup_completed (Signal): A backup was pushed and the destination
        accepted the restore request.
        Keyword arguments:
            migration_job_id (int), course_id (int), filename (str)

    backup_failed (Signal): A backup job failed.
        Keyword arguments:
            migration_job_id (int | None), course_id (int | None),
            error (str)

    restore_completed (Signal): A course was restored.
        Keyword arguments:
            migration_job_id (int), course_id (int), category_id (int),
            filename (str)

    restore_failed (Signal): A restore attempt failed. ``retrying`` tells
        whether another attempt will follow.
        Keyword arguments:
            migration_job_id (int | None), filename (str | None),
            error (str), retrying (bool)

    http_request_failed (Signal): A request to the destination instance
        failed.
        Keyword arguments:
            url (str), error (str), both with the token redacted

    file_uploaded (Signal): A course list was uploaded for bulk import.
        Keyword arguments:
            filename (str), user_id (int | None)

    file_processed (Signal): An uploaded course list was processed.
        Keyword arguments:
            filename (str), row_count (int), success (int), failed (int),
            error_count (int), user_id (int | None)
"""

from django.dispatch import Signal

from coursemigration.logging import MigrationLogger

structured_logger = MigrationLogger.get_logger(__name__)

backup_completed: Signal = Signal()
backup_failed: Signal = Signal()
restore_completed: Signal = Signal()
restore_failed: Signal = Signal()
http_request_failed: Signal = Signal()
file_uploaded: Signal = Signal()
file_processed: Signal = Signal()

EVENT_NAMES = {
    backup_completed: "backup_completed",
    backup_failed: "backup_failed",
    restore_completed: "restore_completed",
    restore_failed: "restore_failed",
    http_request_failed: "http_request_failed",
    file_uploaded: "file_uploaded",
    file_processed: "file_processed",
}

FAILURE_EVENTS = frozenset({backup_failed, restore_failed, http_request_failed})


def emit_event(signal, sender=None, **payload):
    """
    Send ``signal`` and log it.

    Failure events are logged as warnings with the payload's ``error`` as the
    reason.
    """
    event_code = EVENT_NAMES[signal]
    if signal in FAILURE_EVENTS:
        structured_logger.warning(
            f"Migration event {event_code}.",
            event_code=event_code,
            reason=payload.get("error") or "Unknown error",
            reason_code=event_code,
            **{key: value for key, value in payload.items() if key != "error"},
        )
    else:
        structured_logger.info(
            f"Migration event {event_code}.", event_code=event_code, **payload
        )
    return signal.send(sender=sender or emit_event, **payload)
