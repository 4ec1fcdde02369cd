from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from coursemigration.models import Course, Enrolment
from migrator.tasks.cleanup import course_cleanup_task

from .utils import create_course, create_enrolment


class CourseCleanupTaskTests(TestCase):
    def test_deletes_course_and_enrolments(self):
        course = create_course()
        create_enrolment(course=course)
        create_enrolment(course=course)

        self.assertTrue(course_cleanup_task(course_id=course.pk))

        self.assertFalse(Course.objects.filter(pk=course.pk).exists())
        self.assertFalse(Enrolment.objects.filter(course_id=course.pk).exists())

    def test_missing_course(self):
        self.assertFalse(course_cleanup_task(course_id=9999))
        self.assertFalse(course_cleanup_task())

    def test_retry_deletes_enrolments_one_at_a_time(self):
        course = create_course()
        create_enrolment(course=course)
        create_enrolment(course=course)

        with mock.patch.object(Enrolment, "delete", autospec=True) as delete:
            with mock.patch(
                "migrator.tasks.cleanup.delete_course", return_value=True
            ) as delete_course:
                course_cleanup_task.push_request(retries=1)
                try:
                    self.assertTrue(course_cleanup_task.run(course_id=course.pk))
                finally:
                    course_cleanup_task.pop_request()

        self.assertEqual(delete.call_count, 2)
        delete_course.assert_called_once_with(course.pk)

    def test_retry_raises_first_enrolment_failure(self):
        course = create_course()
        create_enrolment(course=course)

        with mock.patch.object(
            Enrolment, "delete", side_effect=DatabaseError("deadlock")
        ):
            course_cleanup_task.push_request(retries=1)
            try:
                with self.assertRaisesRegex(DatabaseError, "deadlock"):
                    course_cleanup_task.run(course_id=course.pk)
            finally:
                course_cleanup_task.pop_request()

        self.assertTrue(Course.objects.filter(pk=course.pk).exists())
