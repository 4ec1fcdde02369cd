"""
Create backup jobs from a CSV course list.

Usage:
    python manage.py upload_course_list courses.csv
    python manage.py upload_course_list courses.csv --delimiter semicolon \
        --encoding latin-1 --username admin

The file needs a header row with ``courseid`` or ``url`` and ``categoryid``
columns. Rows which fail validation are reported and skipped.
"""

import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from migrator.events import emit_event, file_processed, file_uploaded
from migrator.exceptions import InvalidCourseListError
from migrator.upload import DELIMITERS, process_course_list, read_course_list


class Command(BaseCommand):
    help = "Create backup migration jobs from a CSV course list"  # NOQA: A003

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the CSV file")
        parser.add_argument(
            "--delimiter",
            default="comma",
            choices=sorted(DELIMITERS),
            help="Column delimiter (default=%(default)s)",
        )
        parser.add_argument(
            "--encoding",
            default="utf-8",
            help="File encoding (default=%(default)s)",
        )
        parser.add_argument(
            "--username",
            default=None,
            help="User recorded as the creator of the jobs",
        )

    def handle(self, *, path, delimiter, encoding, username, **options):
        user = None
        if username:
            try:
                user = get_user_model().objects.get(username=username)
            except get_user_model().DoesNotExist as exc:
                raise CommandError(f"User '{username}' does not exist") from exc

        try:
            with open(path, "rb") as f:
                content = f.read()
        except OSError as exc:
            raise CommandError(f"Cannot open {path}: {exc}") from exc

        filename = os.path.basename(path)
        user_id = user.pk if user else None
        emit_event(file_uploaded, sender=self.__class__, filename=filename, user_id=user_id)

        try:
            columns, rows = read_course_list(content, encoding, delimiter)
        except InvalidCourseListError as exc:
            raise CommandError(str(exc)) from exc

        results = process_course_list(columns, rows, user=user)

        emit_event(
            file_processed,
            sender=self.__class__,
            filename=filename,
            row_count=results.row_count,
            success=results.success,
            failed=results.failed,
            error_count=results.error_count,
            user_id=user_id,
        )

        if results.success or results.row_count:
            self.stdout.write(self.style.SUCCESS(results.result_message))
        else:
            self.stdout.write(self.style.WARNING(results.result_message))
