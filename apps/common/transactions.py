import logging
from contextlib import contextmanager

from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.http import Http404
from rest_framework.exceptions import APIException

from apps.common.exceptions import TransactionFailed

logger = logging.getLogger(__name__)


@contextmanager
def atomic_operation(name):
    """``transaction.atomic`` that reports unexpected failures as ``TransactionFailed``.

    API errors raised inside the block propagate unchanged after rollback.
    Anything else is logged with its cause and replaced by a generic 500 so
    no internals reach the client.
    """
    try:
        with transaction.atomic():
            yield
    except (APIException, Http404, PermissionDenied):
        raise
    except Exception as exc:
        logger.exception("%s failed and was rolled back", name)
        raise TransactionFailed() from exc
