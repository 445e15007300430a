import logging

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

__all__ = [
    'InvalidParams', 'NotFound', 'NotAllowed', 'Forbidden',
    'RateLimited', 'EnqueueError', 'exception_handler', 'validated',
]

Forbidden = PermissionDenied


class InvalidParams(APIException):
    """Malformed or missing request parameters."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Invalid parameters.'
    default_code = 'invalid_params'


class NotAllowed(APIException):
    """The requested action is not in the permitted allow-list."""
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    default_detail = 'This action is not allowed.'
    default_code = 'not_allowed'


class RateLimited(APIException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = 'Too many attempts. Try again later.'
    default_code = 'rate_limited'


class EnqueueError(APIException):
    """The job broker refused or could not accept a job."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Background job could not be queued.'
    default_code = 'enqueue_failed'


def exception_handler(exc, context):
    response = drf_exception_handler(exc, context)
    if response is not None and response.status_code >= 500:
        view = context.get('view')
        logger.error("API error in %s: %s", view.__class__.__name__ if view else None, exc)
    return response


def validated(serializer):
    """Run ``serializer`` validation, surfacing failures as 422."""
    if not serializer.is_valid():
        raise InvalidParams(serializer.errors)
    return serializer.validated_data
