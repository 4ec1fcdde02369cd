import uuid
from logging import getLogger

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from coursemigration.logging import MigrationLogger

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)


class Category(models.Model):
    name = models.CharField(max_length=255)
    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        related_name="children",
        null=True,
        blank=True,
    )
    created_on = models.DateTimeField(editable=False, auto_now_add=True)
    updated_on = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "categories"
        ordering = ("name",)

    def __str__(self):
        return self.name


class CourseManager(models.Manager):
    def create_shell(self, category: Category) -> "Course":
        """
        Create the empty course a restore fills in.

        The shell is hidden until the restore procedure copies the real
        course settings into it.
        """
        stamp = timezone.now().strftime("%Y%m%d%H%M%S%f")
        return self.create(
            category=category,
            fullname="Course restore in progress",
            shortname=f"restore-{stamp}-{uuid.uuid4().hex[:6]}",
            visible=False,
        )


class Course(models.Model):
    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="courses"
    )
    fullname = models.CharField(max_length=254)
    shortname = models.CharField(max_length=255, unique=True)
    summary = models.TextField(blank=True)
    visible = models.BooleanField(default=True)
    created_on = models.DateTimeField(editable=False, auto_now_add=True)
    updated_on = models.DateTimeField(auto_now=True)

    objects = CourseManager()

    class Meta:
        ordering = ("fullname",)

    def __str__(self):
        return self.fullname


class Enrolment(models.Model):
    class Role(models.TextChoices):
        STUDENT = "student", "Student"
        TEACHER = "teacher", "Teacher"

    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name="enrolments"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="enrolments"
    )
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.STUDENT)
    created_on = models.DateTimeField(editable=False, auto_now_add=True)

    class Meta:
        unique_together = (("course", "user"),)

    def __str__(self):
        return f"{self.user} in {self.course} ({self.role})"


def delete_course(course_id: int) -> bool:
    """
    Delete a course and everything enrolled in it.

    Returns:
        bool: False if there was no course with that id.
    """
    with transaction.atomic():
        deleted, per_model = Course.objects.filter(pk=course_id).delete()

    if not deleted:
        return False

    structured_logger.info(
        "Course deleted.",
        event_code="course_deleted",
        course_id=course_id,
        enrolments_deleted=per_model.get(Enrolment._meta.label, 0),
    )
    return True
