# Based on code from
# https://docs.celeryq.dev/en/v5.5.0/tutorials/task-cookbook.html#ensuring-a-task-is-only-executed-one-at-a-time

import logging
import os
import shutil
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager

from django.core.cache import cache

logger = logging.getLogger(__name__)

DEFAULT_LOCK_DURATION = 60 * 10  # 10 minutes


@contextmanager
def cache_lock(
    lock_id: str,
    oid: str,
    lock_duration: int = DEFAULT_LOCK_DURATION,
) -> Generator[bool, None, None]:
    """
    Context manager to acquire a distributed cache-based lock.

    Used to keep two scheduler instances from sweeping at the same time and
    two workers from transitioning the same migration job concurrently.

    Args:
        lock_id (str): Unique key identifying the lock in the cache.
        oid (str): Identifier for the owner of the lock. Stored as the cache
            value but not otherwise used.
        lock_duration (int): How long to hold the lock in seconds. Defaults
            to 10 minutes.

    Yields:
        bool: True if the lock was acquired, False otherwise.
    """
    status = False
    try:
        timeout_at = time.monotonic() + lock_duration
        # cache.add does nothing and returns False if the key already exists
        status = cache.add(lock_id, oid, lock_duration)
        yield status
    finally:
        if status and time.monotonic() < timeout_at:
            # An expired lock may already belong to someone else
            cache.delete(lock_id)


@contextmanager
def scratch_directory(base_dir: str, prefix: str) -> Generator[str, None, None]:
    """
    Create a directory named ``{prefix}_{random hex}`` under ``base_dir`` and
    remove it with everything inside when the block exits, whether it exits
    normally or by an exception.

    Each call gets a new name, so directories are never shared between
    attempts.
    """
    path = os.path.join(base_dir, f"{prefix}_{uuid.uuid4().hex}")
    os.makedirs(path)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed scratch directory %s", path)
