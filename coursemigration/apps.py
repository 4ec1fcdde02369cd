from django.apps.config import AppConfig


class CourseMigrationAppConfig(AppConfig):
    name = "coursemigration"
    verbose_name = "Course platform"
