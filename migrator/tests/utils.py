from secrets import token_hex

from django.contrib.auth.models import Permission, User

from configuration.models import Configuration
from coursemigration.models import Category, Course, Enrolment
from migrator.models import MigrationJob, ServiceToken


def create_category(*, name="Test Category", parent=None, do_save=True, **kwargs):
    category = Category(name=name, parent=parent, **kwargs)
    if do_save:
        category.save()
    return category


def create_course(
    *,
    category=None,
    fullname="Test Course",
    shortname=None,
    summary="Course summary",
    visible=True,
    do_save=True,
    **kwargs,
):
    if category is None:
        category = create_category()
    if shortname is None:
        shortname = f"test-course-{token_hex(4)}"
    course = Course(
        category=category,
        fullname=fullname,
        shortname=shortname,
        summary=summary,
        visible=visible,
        **kwargs,
    )
    if do_save:
        course.save()
    return course


def create_user(*, username=None, password=None, **kwargs):
    if username is None:
        username = f"user-{token_hex(4)}"
    user = User.objects.create_user(username=username, password=password, **kwargs)
    return user


def create_enrolment(*, course=None, user=None, role=Enrolment.Role.STUDENT):
    if course is None:
        course = create_course()
    if user is None:
        user = create_user()
    return Enrolment.objects.create(course=course, user=user, role=role)


def create_migration_job(
    *,
    action=MigrationJob.Action.BACKUP,
    status=MigrationJob.Status.NOT_STARTED,
    course=None,
    destination_category=None,
    filename="",
    do_save=True,
    **kwargs,
):
    if course is not None:
        kwargs["course"] = course
    if destination_category is not None:
        kwargs["destination_category"] = destination_category
    job = MigrationJob(action=action, status=status, filename=filename, **kwargs)
    if do_save:
        job.save()
    return job


def create_service_token(*, user=None, can_restore=True, **kwargs):
    if user is None:
        user = create_user()
    if can_restore:
        user.user_permissions.add(
            Permission.objects.get(
                codename="restore_course", content_type__app_label="migrator"
            )
        )
    return ServiceToken.objects.create(user=user, **kwargs)


def set_configuration(key, value, data_type=Configuration.DataType.TEXT):
    """
    Store a configuration value, replacing the seeded row if there is one.
    """
    config, _ = Configuration.objects.update_or_create(
        key=key, defaults={"value": str(value), "data_type": data_type}
    )
    return config


def set_boolean_configuration(key, value):
    return set_configuration(
        key, "true" if value else "false", Configuration.DataType.BOOLEAN
    )
