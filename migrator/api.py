import os
from datetime import datetime
from typing import Optional

from django.http import HttpRequest
from django.utils.timezone import now
from ninja import NinjaAPI, Schema
from ninja.errors import AuthenticationError
from ninja.security import APIKeyQuery, django_auth

from coursemigration.logging import MigrationLogger
from migrator.exceptions import CategoryResolutionError
from migrator.helpers import get_restore_category
from migrator.models import MigrationJob, ServiceToken
from migrator.reports import migration_report

structured_logger = MigrationLogger.get_logger(__name__)

api = NinjaAPI(version=None, urls_namespace="api")


class ApiError(Exception):
    """
    An error answered as ``{"exception": code, "message": message}``, the
    body the restore request client understands.
    """

    def __init__(self, status, code, message):
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message


@api.exception_handler(ApiError)
def api_error(request: HttpRequest, exc: ApiError):
    return api.create_response(
        request, {"exception": exc.code, "message": exc.message}, status=exc.status
    )


@api.exception_handler(AuthenticationError)
def authentication_error(request: HttpRequest, exc: AuthenticationError):
    return api.create_response(
        request,
        {"exception": "invalid_token", "message": "Invalid token - token not found"},
        status=401,
    )


class ServiceTokenAuth(APIKeyQuery):
    param_name = "wstoken"

    def authenticate(self, request, key):
        if not key:
            return None
        token = (
            ServiceToken.objects.select_related("user")
            .filter(token=key, is_active=True, user__is_active=True)
            .first()
        )
        if token is None:
            structured_logger.warning(
                "Rejected restore request with an unknown service token.",
                event_code="service_token_rejected",
                reason="Unknown or inactive service token",
                reason_code="invalid_token",
            )
            return None
        ServiceToken.objects.filter(pk=token.pk).update(last_used=now())
        return token.user


class MigrationJobOut(Schema):
    id: int  # noqa: A003
    action: str
    action_label: str
    status: str
    status_label: str
    course_id: Optional[int]
    course_name: str
    destination_category_id: Optional[int]
    destination_category_name: str
    filename: str
    error: Optional[str]
    retry_count: int
    created: datetime
    modified: datetime


def valid_filename(filename):
    return (
        bool(filename)
        and filename not in (".", "..")
        and os.path.basename(filename) == filename
        and "\\" not in filename
    )


@api.get("/request-restore", auth=ServiceTokenAuth())
def request_restore(request: HttpRequest, filename: str = "", categoryid: int = 0):
    """
    Called by the source instance once a backup file is in storage. Creates a
    "not started" restore job; the restore sweep picks it up.

    Answers ``null`` on success.
    """
    user = request.auth

    if not valid_filename(filename):
        raise ApiError(400, "invalid_parameter", f"Invalid filename: {filename!r}")

    try:
        category = get_restore_category(categoryid)
    except CategoryResolutionError as exc:
        raise ApiError(404, "invalid_category", f"Invalid categoryid: {exc}") from exc

    if not user.has_perm("migrator.restore_course"):
        structured_logger.warning(
            "Restore request denied.",
            event_code="restore_request_denied",
            reason="Missing migrator.restore_course permission",
            reason_code="permission_denied",
            user=user,
            category=category,
        )
        raise ApiError(
            403,
            "required_capability_exception",
            "Sorry, but you do not currently have permissions to do that "
            "(Restore courses).",
        )

    job = MigrationJob.objects.create_job(
        MigrationJob.Action.RESTORE,
        destination_category_id=category.pk,
        filename=filename,
        user=user,
    )
    structured_logger.info(
        "Restore job created from request.",
        event_code="restore_job_requested",
        job=job,
        user=user,
    )
    return None


@api.get("/migration-jobs", auth=django_auth, response=list[MigrationJobOut])
def migration_jobs(
    request: HttpRequest,
    action: Optional[str] = None,
    status: Optional[str] = None,
    created_after: Optional[datetime] = None,
    created_before: Optional[datetime] = None,
):
    """Report on migration jobs, for staff only."""
    if not request.user.is_staff:
        raise ApiError(403, "permission_denied", "Staff access is required.")
    if action and action not in MigrationJob.Action.values:
        raise ApiError(400, "invalid_parameter", f"Invalid action: {action}")
    if status and status not in MigrationJob.Status.values:
        raise ApiError(400, "invalid_parameter", f"Invalid status: {status}")

    return migration_report(
        action=action,
        status=status,
        created_after=created_after,
        created_before=created_before,
    )
