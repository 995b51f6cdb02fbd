import logging

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


def validation_details(errors, prefix=()) -> list[dict]:
    """Flatten serializer errors into ``[{field, path, message}]`` entries."""
    out = []
    if isinstance(errors, dict):
        for key, value in errors.items():
            out.extend(validation_details(value, prefix + (key,)))
    elif isinstance(errors, list):
        if errors and all(not isinstance(e, (dict, list)) for e in errors):
            for message in errors:
                out.append(_detail(prefix, message))
        else:
            for index, value in enumerate(errors):
                if value:
                    out.extend(validation_details(value, prefix + (index,)))
    else:
        out.append(_detail(prefix, errors))
    return out


def _detail(path, message) -> dict:
    path = [p for p in path if p != 'non_field_errors'] or []
    field = '.'.join(str(p) for p in path) if path else None
    return {'field': field, 'path': list(path), 'message': str(message)}


def api_exception_handler(exc, context):
    """Shape every error as ``{"error": ...}``.

    Validation errors add a ``details`` list; anything DRF does not know
    becomes a logged 500 carrying the exception message.
    """
    resp = drf_exception_handler(exc, context)
    if resp is None:
        request = context.get('request')
        logger.error("unhandled error on %s %s", getattr(request, 'method', '?'),
                     getattr(request, 'path', '?'), exc_info=exc)
        return Response({'error': 'Internal server error', 'details': str(exc)},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, exceptions.ValidationError):
        resp.data = {'error': 'Invalid data', 'details': validation_details(exc.detail)}
        return resp

    if isinstance(exc, Http404):
        message = 'Not found'
    elif isinstance(resp.data, dict) and 'detail' in resp.data:
        message = str(resp.data['detail'])
    else:
        message = str(resp.data)
    resp.data = {'error': message}
    return resp
