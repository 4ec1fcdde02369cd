import warnings
from types import MappingProxyType
from typing import Any, Callable, Optional

import structlog

# Default global registry for semantic context extractors
_DEFAULT_EXTRACTORS: dict[str, Callable[[Any], dict[str, Any]]] = {}


def get_logging_user_id(user: Any) -> str:
    """
    Return a consistent identifier for logging purposes.

    Args:
        user (Any): A Django user object (possibly anonymous).

    Returns:
        user_id (str): User's ID, or "anonymous" if unauthenticated or the
                       user has no ID.
    """
    if not getattr(user, "is_authenticated", False):
        return "anonymous"

    user_id = getattr(user, "id", None)
    if user_id is None:
        return "anonymous"

    return str(user_id)


def _register_default_extractor(
    context_key: str, extractor_function: Callable[[Any], dict[str, Any]]
):
    _DEFAULT_EXTRACTORS[context_key] = extractor_function


_register_default_extractor("user", lambda user: {"user_id": get_logging_user_id(user)})

_register_default_extractor(
    "category",
    lambda category: {
        "category_id": getattr(category, "pk", None),
    },
)

_register_default_extractor(
    "course",
    lambda course: {
        "course_id": getattr(course, "pk", None),
        "category_id": getattr(course, "category_id", None),
    },
)

# Jobs only carry the raw ids so extracting them never queries a course or
# category which may have been deleted
_register_default_extractor(
    "job",
    lambda job: {
        "migration_job_id": getattr(job, "pk", None),
        "migration_action": getattr(job, "action", None),
        "migration_status": getattr(job, "status", None),
        "course_id": getattr(job, "course_id", None),
        "category_id": getattr(job, "destination_category_id", None),
        "filename": getattr(job, "filename", None) or None,
    },
)

# Freeze default extractors to prevent mutation
_DEFAULT_EXTRACTORS = MappingProxyType(_DEFAULT_EXTRACTORS)


class MigrationLogger:
    """
    A structured logging wrapper around structlog that enforces consistent
    logging conventions across the course migration services.

    Features:
        - Requires 'message' and 'event_code' for all logs, and 'reason'/'reason_code'
          for warnings/errors.
        - Automatically extracts common context from objects like MigrationJob,
          Course, Category and User.
        - Allows semantic binding of objects (e.g., job=job) which are expanded
          at log time.

    Usage:
    -----

    Create a logger:
        ```python
        structured_logger = MigrationLogger.get_logger(__name__)
        ```

    Log an info-level event:
        ```python
        structured_logger.info(
            "Backup pushed to storage.",
            event_code="backup_pushed",
            job=job,
        )
        ```

    Log a warning with reason:
        ```python
        structured_logger.warning(
            "Stale course could not be deleted.",
            event_code="stale_course_delete_failed",
            reason=str(exc),
            reason_code="course_delete_error",
            job=job,
        )
        ```

    Bind a logger for repeated use:
        ```python
        job_logger = structured_logger.bind(job=job)
        job_logger.info("Restore started.", event_code="restore_started")
        ```

    Special Context Expansion:
    --------------------------

    - `user` -> `user_id`
    - `category` -> `category_id`
    - `course` -> `course_id`, `category_id`
    - `job` -> `migration_job_id`, `migration_action`, `migration_status`,
      `course_id`, `category_id`, `filename`

    Explicit values passed (e.g., `course_id=...`) override extracted ones.
    Fields with `None` values are omitted from the final log output.

    Per-logger extractors can be added with `register_extractor()`; they
    override the global default for that logger only.
    """

    def __init__(self, logger, context: Optional[dict[str, Any]] = None):
        self._logger = logger
        self._context = context or {}
        self._extractors = dict(_DEFAULT_EXTRACTORS)

    @classmethod
    def get_logger(cls, name: str) -> "MigrationLogger":
        """
        Factory method to create a MigrationLogger from a given logger name.

        Args:
            name (str): The module name; it is namespaced under "structlog.".

        Returns:
            MigrationLogger: A logger instance with enriched behavior.
        """
        return cls(structlog.get_logger(f"structlog.{name}"))

    def register_extractor(
        self, key: str, extractor: Callable[[Any], dict[str, Any]]
    ) -> None:
        """
        Register a custom context extractor for this logger instance only.

        Args:
            key (str): The context key to extract (e.g., "custom_object").
            extractor (Callable): A function that returns a dict of fields to log.
        """
        self._extractors[key] = extractor
        if key in _DEFAULT_EXTRACTORS:
            warnings.warn(
                f"Extractor for '{key}' overrides a default extractor for this "
                f"logger only.",
                UserWarning,
                stacklevel=2,
            )

    def unregister_extractor(self, key: str) -> None:
        self._extractors.pop(key, None)

    def log(
        self,
        level: str,
        message: str,
        *,
        event_code: str,
        reason: Optional[str] = None,
        reason_code: Optional[str] = None,
        **context: Any,
    ) -> None:
        """
        Emit structured logs with standardized context. This shouldn't be called
        directly under ordinary circumstances, with one of the level methods (
        debug, info, warning, error) used instead.

        Raises:
            ValueError: If required fields are missing for the given log level.
        """
        if not message:
            raise ValueError("Log message is required.")
        if not event_code:
            raise ValueError("Structured logs must include an 'event_code' field.")
        if level in ("warning", "error") and (not reason or not reason_code):
            raise ValueError(
                "Warnings and errors must include both 'reason' and 'reason_code'."
            )

        context_data = {"event_code": event_code}
        if reason:
            context_data["reason"] = reason
        if reason_code:
            context_data["reason_code"] = reason_code

        bound_context = self._context

        for context_key, extractor_function in self._extractors.items():
            context_object = context.pop(context_key, bound_context.get(context_key))
            if context_object:
                extracted_fields = extractor_function(context_object)
                for key, value in extracted_fields.items():
                    if value is not None:
                        context_data.setdefault(key, value)

        for key, value in bound_context.items():
            if key not in self._extractors and key not in context and value is not None:
                context_data[key] = value

        # Explicit values win over anything extracted or bound
        for key, value in context.items():
            if value is not None:
                context_data[key] = value

        getattr(self._logger, level)(message, **context_data)

    def debug(self, message: str, *, event_code: str, **kwargs):
        """Emit a debug-level structured log."""
        self.log("debug", message, event_code=event_code, **kwargs)

    def info(self, message: str, *, event_code: str, **kwargs):
        """Emit an info-level structured log."""
        self.log("info", message, event_code=event_code, **kwargs)

    def warning(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit a warning-level structured log. Requires reason and reason_code."""
        self.log(
            "warning",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def error(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit an error-level structured log. Requires reason and reason_code."""
        self.log(
            "error",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def bind(self, **kwargs: Any) -> "MigrationLogger":
        """
        Return a new MigrationLogger with additional context permanently bound.
        """
        new_context = self._context.copy()
        new_context.update(kwargs)
        return MigrationLogger(self._logger, context=new_context)
