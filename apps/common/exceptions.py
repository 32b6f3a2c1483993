import logging
import uuid

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidState(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The resource is not in a state that allows this operation."
    default_code = "invalid_state"


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The resource already exists."
    default_code = "conflict"


class TransactionFailed(APIException):
    """Raised when an atomic write group fails; the cause is logged, never returned."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "The operation could not be completed. No changes were saved."
    default_code = "transaction_failed"


class InvalidIdentifier(ValidationError):
    default_detail = "Malformed identifier."
    default_code = "invalid_id"


def parse_uuid(value, field="id"):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidIdentifier({field: f"'{value}' is not a valid identifier."})


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if response.status_code >= 500:
        view = context.get("view")
        logger.error("Request to %s failed: %s", view.__class__.__name__ if view else "unknown view", exc.__class__.__name__)

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {}

    response.data = {
        "code": getattr(exc, "default_code", "error"),
        "detail": detail,
        "fields": fields,
    }
    return response
