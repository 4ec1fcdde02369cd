from django.test import TestCase

from migrator.exceptions import InvalidCourseListError
from migrator.models import MigrationJob
from migrator.upload import (
    course_id_from_url,
    csv_required_columns,
    process_course_list,
    process_row,
    read_course_list,
)

from .utils import create_user


class ReadCourseListTests(TestCase):
    def test_reads_header_and_rows(self):
        columns, rows = read_course_list(b"courseid,categoryid\n1,2\n\n3,4\n")
        self.assertEqual(columns, ["courseid", "categoryid"])
        self.assertEqual(rows, [["1", "2"], ["3", "4"]])

    def test_byte_order_mark_is_ignored(self):
        columns, _ = read_course_list("\ufeffcourseid,categoryid\n".encode("utf-8"))
        self.assertEqual(columns, ["courseid", "categoryid"])

    def test_named_delimiter(self):
        columns, rows = read_course_list(
            "courseid;categoryid\n1;2\n", delimiter="semicolon"
        )
        self.assertEqual(columns, ["courseid", "categoryid"])
        self.assertEqual(rows, [["1", "2"]])

    def test_errors(self):
        with self.assertRaisesRegex(InvalidCourseListError, "empty"):
            read_course_list(b"\n\n")
        with self.assertRaisesRegex(InvalidCourseListError, "Cannot read the file"):
            read_course_list(b"\xff\xfe\xfa", encoding="utf-8")
        with self.assertRaisesRegex(InvalidCourseListError, "Unsupported delimiter"):
            read_course_list(b"a,b\n", delimiter="pipes")


class RequiredColumnsTests(TestCase):
    def test_valid(self):
        status, message, fields = csv_required_columns(["CourseID", "CategoryID"])
        self.assertTrue(status)
        self.assertIsNone(message)
        self.assertEqual(
            fields,
            {
                "course_id": ("courseid", 0),
                "destination_category_id": ("categoryid", 1),
            },
        )

    def test_first_column_of_group_wins(self):
        _, _, fields = csv_required_columns(["categoryid", "url", "courseid"])
        self.assertEqual(fields["course_id"], ("url", 1))

    def test_missing_columns(self):
        status, message, fields = csv_required_columns(["name"])
        self.assertFalse(status)
        self.assertEqual(
            message,
            "CSV file must include one of courseid, url as column headings AND "
            "CSV file must include one of categoryid as column headings",
        )
        self.assertEqual(fields, {})


class ProcessRowTests(TestCase):
    def test_course_id_from_url(self):
        self.assertEqual(
            course_id_from_url("https://lms.example/course/view.php?id=42"), 42
        )
        self.assertIsNone(course_id_from_url("https://lms.example/course/view.php"))
        self.assertIsNone(course_id_from_url("https://lms.example/?id=abc"))

    def test_process_row(self):
        fields = {
            "course_id": ("courseid", 0),
            "destination_category_id": ("categoryid", 1),
        }
        self.assertEqual(
            process_row(["5", " 7 "], fields, 1),
            (True, {"course_id": 5, "destination_category_id": 7}, []),
        )

        valid, _, messages = process_row(["five"], fields, 3)
        self.assertFalse(valid)
        self.assertEqual(
            messages,
            [
                "Non integer value for courseid found on row 3",
                "Non integer value for categoryid found on row 3",
            ],
        )

    def test_invalid_url(self):
        fields = {"course_id": ("url", 0)}
        valid, _, messages = process_row(["not a url"], fields, 2)
        self.assertFalse(valid)
        self.assertEqual(messages, ["Invalid course URL for url found on row 2"])

        valid, _, messages = process_row(
            ["https://lms.example/course/view.php?id=0"], fields, 4
        )
        self.assertFalse(valid)
        self.assertEqual(messages, ["Invalid course URL for url found on row 4"])

    def test_non_positive_ids(self):
        fields = {
            "course_id": ("courseid", 0),
            "destination_category_id": ("categoryid", 1),
        }
        valid, _, messages = process_row(["0", "-3"], fields, 2)
        self.assertFalse(valid)
        self.assertEqual(
            messages,
            [
                "Non positive value for courseid found on row 2",
                "Non positive value for categoryid found on row 2",
            ],
        )


class ProcessCourseListTests(TestCase):
    def test_creates_backup_jobs(self):
        user = create_user()
        columns, rows = read_course_list(
            b"url,categoryid\n"
            b"https://lms.example/course/view.php?id=10,3\n"
            b"https://lms.example/course/view.php?id=11,x\n"
            b"12,4\n"
        )

        results = process_course_list(columns, rows, user=user)

        self.assertEqual(results.row_count, 3)
        self.assertEqual(results.success, 1)
        self.assertEqual(results.failed, 2)
        self.assertEqual(
            results.errors,
            [
                "Non integer value for categoryid found on row 2",
                "Invalid course URL for url found on row 3",
            ],
        )
        job = MigrationJob.objects.get()
        self.assertEqual(results.jobs, [job])
        self.assertEqual(job.action, MigrationJob.Action.BACKUP)
        self.assertEqual(job.status, MigrationJob.Status.NOT_STARTED)
        self.assertEqual(job.course_id, 10)
        self.assertEqual(job.destination_category_id, 3)
        self.assertEqual(job.created_by, user)

        self.assertTrue(
            results.result_message.startswith(
                "File successfully processed.\n\nTotal rows: 3\nSuccess: 1\n"
                "Failed: 2\nErrors in CSV file: 2"
            )
        )

    def test_missing_columns(self):
        results = process_course_list(["name"], [["x"]])
        self.assertEqual(results.row_count, 0)
        self.assertIn("must include one of courseid, url", results.result_message)
        self.assertFalse(MigrationJob.objects.exists())
