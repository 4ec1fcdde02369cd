"""
Bulk creation of backup jobs from an uploaded course list.

The list is CSV with a header row. It needs one column from each group in
``VALID_COLUMN_GROUPS``: the course is given either by id (``courseid``) or
by a course URL with an ``id`` query parameter (``url``), and the
destination by ``categoryid``. Header matching ignores case; if a file has
both columns of a group, the one which comes first in the file is used.

Every data row is checked on its own. A bad row is counted and reported by
row number and column name, and never stops the rows around it.
"""

import csv
import io
from logging import getLogger
from urllib.parse import parse_qs, urlsplit

from django.db import DatabaseError, transaction

from migrator.exceptions import InvalidCourseListError
from migrator.models import MigrationJob

logger = getLogger(__name__)

VALID_COLUMN_GROUPS = {
    "course_id": ("courseid", "url"),
    "destination_category_id": ("categoryid",),
}

INTEGER_COLUMNS = ("courseid", "categoryid")

DELIMITERS = {
    "comma": ",",
    "semicolon": ";",
    "tab": "\t",
    "colon": ":",
}


class UploadResults:
    def __init__(self):
        self.row_count = 0
        self.success = 0
        self.failed = 0
        self.errors = []
        self.jobs = []
        self.result_message = ""

    def __repr__(self):
        return (
            "UploadResults(row_count=%s, success=%s, failed=%s, error_count=%s)"
            % (self.row_count, self.success, self.failed, self.error_count)
        )

    @property
    def error_count(self):
        return len(self.errors)

    def build_result_message(self):
        lines = [
            "File successfully processed.",
            "",
            f"Total rows: {self.row_count}",
            f"Success: {self.success}",
            f"Failed: {self.failed}",
            f"Errors in CSV file: {self.error_count}",
        ]
        if self.errors:
            lines.append("")
            lines.extend(self.errors)
        self.result_message = "\n".join(lines)
        return self.result_message


def read_course_list(content, encoding="utf-8", delimiter="comma"):
    """
    Split an uploaded course list into its header and data rows.

    Args:
        content (bytes | str): The uploaded file.
        encoding (str): Used to decode ``content`` when it is bytes.
        delimiter (str): A key of ``DELIMITERS`` or a single character.

    Returns:
        tuple[list[str], list[list[str]]]: Column names and rows. Blank lines
        are dropped.

    Raises:
        InvalidCourseListError: The file cannot be decoded or has no header.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode(encoding)
        except (LookupError, UnicodeDecodeError) as exc:
            raise InvalidCourseListError(
                f"Cannot read the file as {encoding}: {exc}"
            ) from exc
    content = content.lstrip("\ufeff")

    delimiter = DELIMITERS.get(delimiter, delimiter)
    if len(delimiter) != 1:
        raise InvalidCourseListError(f"Unsupported delimiter {delimiter!r}")

    reader = csv.reader(io.StringIO(content), delimiter=delimiter)
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        raise InvalidCourseListError("The file is empty")

    columns = [column.strip() for column in rows[0]]
    return columns, rows[1:]


def csv_required_columns(columns):
    """
    Find the column to use for each of ``VALID_COLUMN_GROUPS``.

    Returns:
        tuple[bool, str | None, dict]: Whether every group was found, the
        error message if not, and for each group found the
        ``(column_name, column_index)`` to read.
    """
    columns = [column.lower() for column in columns]
    errors = []
    fields = {}

    for group, valid_columns in VALID_COLUMN_GROUPS.items():
        matches = [column for column in columns if column in valid_columns]
        if not matches:
            errors.append(
                "CSV file must include one of %s as column headings"
                % ", ".join(valid_columns)
            )
        else:
            fields[group] = (matches[0], columns.index(matches[0]))

    message = " AND ".join(errors) if errors else None
    return not errors, message, fields


def parse_integer(value):
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def course_id_from_url(url):
    query = parse_qs(urlsplit(str(url).strip()).query)
    values = query.get("id")
    if not values:
        return None
    return parse_integer(values[0])


def process_row(row, fields, row_number):
    """
    Validate one data row.

    Args:
        row (list[str]): The cells of the row.
        fields (dict): As returned by ``csv_required_columns``.
        row_number (int): Position of the row among the data rows, from 1.

    Returns:
        tuple[bool, dict, list[str]]: Whether the row is valid, the values
        for each group and the error messages for the row.
    """
    data = {}
    messages = []

    for group, (column_name, column_index) in fields.items():
        value = row[column_index] if column_index < len(row) else ""

        if column_name == "url":
            data[group] = course_id_from_url(value)
            if data[group] is None or data[group] <= 0:
                messages.append(
                    f"Invalid course URL for {column_name} found on row {row_number}"
                )
        elif column_name in INTEGER_COLUMNS:
            data[group] = parse_integer(value)
            if data[group] is None:
                messages.append(
                    f"Non integer value for {column_name} found on row {row_number}"
                )
            elif data[group] <= 0:
                # Ids start at 1
                messages.append(
                    f"Non positive value for {column_name} found on row {row_number}"
                )

    return not messages, data, messages


def process_course_list(columns, rows, user=None):
    """
    Create a "not started" backup job for every valid row.

    Returns:
        UploadResults: Counts, error messages and the created jobs. When
        required columns are missing no rows are processed and the result
        message is the column error.
    """
    results = UploadResults()

    status, message, fields = csv_required_columns(columns)
    if not status:
        results.result_message = message
        return results

    for row_number, row in enumerate(rows, start=1):
        results.row_count += 1
        valid, data, messages = process_row(row, fields, row_number)
        if not valid:
            results.errors.extend(messages)
            results.failed += 1
            continue

        try:
            with transaction.atomic():
                job = MigrationJob.objects.create_job(
                    MigrationJob.Action.BACKUP,
                    course_id=data["course_id"],
                    destination_category_id=data["destination_category_id"],
                    user=user,
                )
        except DatabaseError as exc:
            logger.warning("Unable to create migration job for row %s: %s", row_number, exc)
            results.errors.append(f"Cannot save row {row_number}: {exc}")
            results.failed += 1
            continue

        results.jobs.append(job)
        results.success += 1

    results.build_result_message()
    return results
