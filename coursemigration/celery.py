import importlib
import os
import pkgutil

import sentry_sdk
from celery import Celery
from sentry_sdk.integrations.celery import CeleryIntegration

SENTRY_BACKEND_DSN = os.environ.get("SENTRY_BACKEND_DSN", None)

if SENTRY_BACKEND_DSN:
    COURSE_MIGRATION_ENVIRONMENT = os.environ.get(
        "COURSE_MIGRATION_ENVIRONMENT", None
    )
    sentry_sdk.init(
        SENTRY_BACKEND_DSN,
        environment=COURSE_MIGRATION_ENVIRONMENT,
        integrations=[CeleryIntegration()],
    )

app = Celery("coursemigration")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()


def import_all_submodules(package_name: str):
    """
    Import a package and recursively import all submodules.
    Used at Celery startup so every task module under a tasks package is
    registered, since autodiscovery only imports ``tasks`` itself.
    """
    pkg = importlib.import_module(package_name)
    if not hasattr(pkg, "__path__"):
        return
    for mod in pkgutil.walk_packages(pkg.__path__, pkg.__name__ + "."):
        importlib.import_module(mod.name)


@app.on_after_finalize.connect
def _load_all_task_modules(sender, **kwargs):
    import_all_submodules("migrator.tasks")
