import os
import tempfile
from unittest import TestCase
from unittest.mock import patch

from coursemigration.contextmanagers import (
    DEFAULT_LOCK_DURATION,
    cache_lock,
    scratch_directory,
)


class CacheLockTests(TestCase):
    def setUp(self):
        self.lock_id = "test-lock"
        self.oid = "worker-1"

        self.cache_patch = patch("coursemigration.contextmanagers.cache")
        self.mock_cache = self.cache_patch.start()
        self.addCleanup(self.cache_patch.stop)

        self.time_patch = patch("coursemigration.contextmanagers.time.monotonic")
        self.mock_monotonic = self.time_patch.start()
        self.addCleanup(self.time_patch.stop)

        self.start_time = 100.0
        self.mock_monotonic.return_value = self.start_time

    def test_acquires_and_releases_lock(self):
        self.mock_cache.add.return_value = True

        with cache_lock(self.lock_id, self.oid) as acquired:
            self.assertTrue(acquired)
            self.mock_cache.add.assert_called_once_with(
                self.lock_id, self.oid, DEFAULT_LOCK_DURATION
            )

        self.mock_cache.delete.assert_called_once_with(self.lock_id)

    def test_does_not_release_if_lock_not_acquired(self):
        self.mock_cache.add.return_value = False

        with cache_lock(self.lock_id, self.oid) as acquired:
            self.assertFalse(acquired)

        self.mock_cache.delete.assert_not_called()

    def test_does_not_release_if_expired(self):
        self.mock_cache.add.return_value = True
        self.mock_monotonic.side_effect = [
            self.start_time,
            self.start_time + DEFAULT_LOCK_DURATION + 1,
        ]

        with cache_lock(self.lock_id, self.oid):
            pass

        self.mock_cache.delete.assert_not_called()

    def test_releases_on_exception(self):
        self.mock_cache.add.return_value = True

        with self.assertRaises(RuntimeError):
            with cache_lock(self.lock_id, self.oid):
                raise RuntimeError("boom")

        self.mock_cache.delete.assert_called_once_with(self.lock_id)


class ScratchDirectoryTests(TestCase):
    def setUp(self):
        self.base_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.base_dir.cleanup)

    def test_directory_is_removed(self):
        with scratch_directory(self.base_dir.name, "restore") as path:
            self.assertTrue(os.path.isdir(path))
            self.assertTrue(os.path.basename(path).startswith("restore_"))
            with open(os.path.join(path, "file.txt"), "w") as f:
                f.write("x")

        self.assertFalse(os.path.exists(path))

    def test_directory_is_removed_on_exception(self):
        with self.assertRaises(ValueError):
            with scratch_directory(self.base_dir.name, "restore") as path:
                raise ValueError("failed")

        self.assertFalse(os.path.exists(path))

    def test_each_call_gets_a_new_directory(self):
        with scratch_directory(self.base_dir.name, "restore") as first:
            with scratch_directory(self.base_dir.name, "restore") as second:
                self.assertNotEqual(first, second)

    def test_missing_base_dir_is_created(self):
        base = os.path.join(self.base_dir.name, "nested", "backup")
        with scratch_directory(base, "restore") as path:
            self.assertTrue(os.path.isdir(path))
