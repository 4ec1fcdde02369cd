from .settings_template import *  # NOQA ignore=F405
from .settings_template import DATABASES, LOGGING

DEBUG = True

DATABASES["default"].update({"PASSWORD": "", "USER": "postgres"})

ALLOWED_HOSTS = ["127.0.0.1", "0.0.0.0", "localhost"]  # nosec

LOGGING["handlers"]["stream"]["level"] = "DEBUG"
LOGGING["loggers"]["coursemigration"] = {"handlers": ["stream"], "level": "DEBUG"}
LOGGING["loggers"]["migrator"] = {"handlers": ["stream"], "level": "DEBUG"}
LOGGING["loggers"]["structlog"] = {
    "handlers": ["structlog_console"],
    "level": "DEBUG",
    "propagate": False,
}
