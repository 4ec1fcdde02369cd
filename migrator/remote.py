"""
Client for the destination instance's restore request endpoint.
"""

import re
from logging import getLogger

import requests
from django.conf import settings

from configuration.utils import configuration_value
from coursemigration.logging import MigrationLogger
from migrator import events
from migrator.exceptions import NotifyFailedError, RestoreApiNotConfiguredError

logger = getLogger(__name__)
structured_logger = MigrationLogger.get_logger(__name__)

WS_FUNCTION = "coursemigration_request_restore"
WS_FORMAT = "json"
REDACTED = "XXX"

HTTP_ERROR_TEMPLATE = "Error attempting to make HTTP request: {}."

_WSTOKEN_VALUE = re.compile(r"(?<=wstoken=)[^&\s]*")


def redact_token(text, token=None):
    """
    Hide the service token in ``text``: the value of any ``wstoken=`` query
    parameter, and the token itself wherever else it appears.
    """
    text = _WSTOKEN_VALUE.sub(REDACTED, str(text))
    if token:
        text = text.replace(token, REDACTED)
    return text


class RestoreApi:
    """
    Asks the destination instance to restore a backup file which has already
    been transferred.

    The endpoint answers a successful request with a JSON ``null``. Anything
    else is a failure: a non-200 status, a JSON object with an
    ``exception``, or any other body.
    """

    def __init__(self, session=None, url=None, token=None, timeout=None):
        if url is None:
            url = configuration_value("destination_ws_url", default="")
        if token is None:
            token = configuration_value("ws_token", default="")
        if not url or not token:
            raise RestoreApiNotConfiguredError(
                HTTP_ERROR_TEMPLATE.format("Plugin is not configured")
            )

        self.url = url
        self.token = token
        self.timeout = timeout or settings.COURSE_MIGRATION_REQUEST_TIMEOUT
        self.session = session or requests.Session()

    def build_url(self, filename, category_id):
        params = {
            "wstoken": self.token,
            "wsfunction": WS_FUNCTION,
            "filename": filename,
            "categoryid": int(category_id or 0),
            "format": WS_FORMAT,
        }
        return requests.Request("GET", self.url, params=params).prepare().url

    def validate_response(self, response):
        if response.status_code != 200:
            raise NotifyFailedError(
                HTTP_ERROR_TEMPLATE.format(f"Invalid HTTP code: {response.status_code}")
            )

        content = response.text.strip()
        if content == "null":
            return

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("exception"):
            raise NotifyFailedError(HTTP_ERROR_TEMPLATE.format(data.get("message", "")))

        raise NotifyFailedError(HTTP_ERROR_TEMPLATE.format("Unexpected response"))

    def request_restore(self, filename, category_id) -> bool:
        """
        Send the restore request.

        Returns:
            bool: True if the destination accepted the request. Failures are
            reported through the ``http_request_failed`` event, never raised.
        """
        url = self.build_url(filename, category_id)
        try:
            response = self.session.get(url, timeout=self.timeout)
            self.validate_response(response)
        except NotifyFailedError as exc:
            error = str(exc)
        except requests.RequestException as exc:
            error = HTTP_ERROR_TEMPLATE.format(exc)
        else:
            structured_logger.info(
                "Restore request accepted by the destination instance.",
                event_code="restore_request_accepted",
                filename=filename,
                category_id=category_id,
            )
            return True

        events.emit_event(
            events.http_request_failed,
            sender=type(self),
            url=redact_token(url, self.token),
            error=redact_token(error, self.token),
        )
        return False
