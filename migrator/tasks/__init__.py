from .backup import course_backup_task  # NOQA: F401
from .cleanup import course_cleanup_task  # NOQA: F401
from .restore import course_restore_task  # NOQA: F401
from .scheduler import create_backup_tasks, create_restore_tasks  # NOQA: F401
