"""
Read-only projection of migration jobs for the migration report.
"""

from coursemigration.models import Category, Course
from migrator.models import MigrationJob


def missing_label(value, kind="course"):
    return f"{value} ({kind} is missing)"


def migration_report(action=None, status=None, created_after=None, created_before=None):
    """
    List jobs matching the filters, oldest first, as plain dicts.

    Courses and categories are looked up in bulk; a job pointing at one
    which has been deleted still reports its id.
    """
    jobs = list(
        MigrationJob.objects.find_all(
            action=action,
            status=status,
            created_after=created_after,
            created_before=created_before,
        )
    )

    course_names = dict(
        Course.objects.filter(
            pk__in={job.course_id for job in jobs if job.course_id}
        ).values_list("pk", "fullname")
    )
    category_names = dict(
        Category.objects.filter(
            pk__in={
                job.destination_category_id
                for job in jobs
                if job.destination_category_id
            }
        ).values_list("pk", "name")
    )

    rows = []
    for job in jobs:
        if not job.course_id:
            course_name = ""
        else:
            course_name = course_names.get(job.course_id) or missing_label(
                job.course_id
            )

        if not job.destination_category_id:
            category_name = ""
        else:
            category_name = category_names.get(
                job.destination_category_id
            ) or missing_label(job.destination_category_id, "category")

        rows.append(
            {
                "id": job.pk,
                "action": job.action,
                "action_label": job.get_action_display(),
                "status": job.status,
                "status_label": job.get_status_display(),
                "course_id": job.course_id,
                "course_name": course_name,
                "destination_category_id": job.destination_category_id,
                "destination_category_name": category_name,
                "filename": job.filename,
                "error": job.error,
                "retry_count": job.retry_count,
                "created": job.created,
                "modified": job.modified,
            }
        )
    return rows
