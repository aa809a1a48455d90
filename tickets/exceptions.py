from rest_framework import exceptions, status
from rest_framework.views import exception_handler


class AuthorizationDenied(exceptions.PermissionDenied):
    default_detail = "You are not allowed to perform this action."
    default_code = 'authorization_denied'


class ValidationFailed(exceptions.APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Validation failed."
    default_code = 'validation_failed'

    def __init__(self, detail=None, field=None, code=None):
        # field-level form: {"field": ["message"]}
        if field is not None and isinstance(detail, str):
            detail = {field: [detail]}
        super().__init__(detail, code)


class NotFound(exceptions.NotFound):
    default_code = 'not_found'


class ConflictDetected(exceptions.APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "The requested zoom slot conflicts with existing bookings."
    default_code = 'conflict'

    def __init__(self, conflicts, detail=None):
        self.conflicts = list(conflicts)
        super().__init__(detail)


class RaceLost(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The record was changed by another request. Reload and retry."
    default_code = 'race_lost'


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    if isinstance(exc, ConflictDetected):
        response.data = {'detail': response.data.get('detail'), 'conflicts': exc.conflicts}

    return response
