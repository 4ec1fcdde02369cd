import tempfile
from types import SimpleNamespace
from unittest import mock

from django.test import TestCase

import coursemigration.celery as celery_mod
from coursemigration.celery import app, import_all_submodules
from migrator.exceptions import RetryableRestoreError
from migrator.tasks import course_restore_task


class CourseMigrationCeleryTests(TestCase):
    def test_returns_early_for_non_package(self):
        mock_pkg = SimpleNamespace(__name__="not_a_pkg")

        with (
            mock.patch.object(
                celery_mod.importlib, "import_module", return_value=mock_pkg
            ) as mock_import,
            mock.patch.object(celery_mod.pkgutil, "walk_packages") as mock_walk,
        ):
            import_all_submodules("not_a_pkg")

        mock_import.assert_called_once_with("not_a_pkg")
        mock_walk.assert_not_called()

    def test_imports_all_submodules_for_package(self):
        sub1 = SimpleNamespace(name="dummy_pkg.sub1")
        sub2 = SimpleNamespace(name="dummy_pkg.sub2")

        with tempfile.TemporaryDirectory() as td:
            mock_pkg = SimpleNamespace(__name__="dummy_pkg", __path__=[td])

            with (
                mock.patch.object(
                    celery_mod.importlib, "import_module", return_value=mock_pkg
                ) as mock_import,
                mock.patch.object(
                    celery_mod.pkgutil, "walk_packages", return_value=[sub1, sub2]
                ),
            ):
                import_all_submodules("dummy_pkg")

        self.assertEqual(
            [call.args[0] for call in mock_import.call_args_list],
            ["dummy_pkg", "dummy_pkg.sub1", "dummy_pkg.sub2"],
        )

    def test_migration_tasks_are_registered(self):
        import_all_submodules("migrator.tasks")
        for name in (
            "migrator.tasks.backup.course_backup_task",
            "migrator.tasks.restore.course_restore_task",
            "migrator.tasks.cleanup.course_cleanup_task",
            "migrator.tasks.scheduler.create_backup_tasks",
            "migrator.tasks.scheduler.create_restore_tasks",
        ):
            self.assertIn(name, app.tasks)

    def test_restore_task_retry_options(self):
        self.assertEqual(course_restore_task.max_retries, 5)
        self.assertEqual(course_restore_task.autoretry_for, (RetryableRestoreError,))
