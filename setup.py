#!/usr/bin/env python
import re

from setuptools import find_packages, setup

# Read without importing: the package imports Celery at load time
with open("coursemigration/__init__.py", "r") as f:
    VERSION = ".".join(
        re.search(r"^VERSION = \((\d+), (\d+), (\d+)\)", f.read(), re.M).groups()
    )

INSTALL_REQUIREMENTS = [
    "Django>=5.1",
    "celery>=5.3",
    "django-celery-beat",
    "django-ninja>=1.0",
    "django-redis",
    "django-structlog",
    "psycopg[binary]",
    "requests",
    "sentry-sdk",
    "structlog",
]
TEST_REQUIREMENTS = ["pytest", "pytest-django"]
SCRIPTS = ["manage.py"]
DESCRIPTION = "Course backup and restore migration between learning platform instances"
CLASSIFIERS = """\
Environment :: Web Environment
Framework :: Django
Programming Language :: Python
Programming Language :: Python :: 3
""".splitlines()

with open("README.md", "r") as f:
    LONG_DESCRIPTION = f.read()


setup(
    name="coursemigration",
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    packages=find_packages(),
    include_package_data=True,
    scripts=SCRIPTS,
    install_requires=INSTALL_REQUIREMENTS,
    extras_require={"test": TEST_REQUIREMENTS},
    python_requires=">=3.10",
    classifiers=CLASSIFIERS,
)
