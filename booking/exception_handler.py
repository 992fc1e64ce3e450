"""
REST framework exception handler.

Wraps every API error in the ``{"success": false, "message": ...}``
envelope and hides storage errors behind a generic 500.
"""

import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)

STORAGE_ERROR_MESSAGE = 'Internal error. Please try again later.'


def api_exception_handler(exc, context):
    if isinstance(exc, DatabaseError):
        view = context.get('view')
        logger.exception("Storage failure in %s", view.__class__.__name__ if view else 'unknown view')
        set_rollback()
        return Response(
            {'success': False, 'message': STORAGE_ERROR_MESSAGE},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = response.data
    if isinstance(detail, dict) and set(detail) == {'detail'}:
        response.data = {'success': False, 'message': str(detail['detail'])}
    else:
        response.data = {
            'success': False,
            'message': 'Invalid request data.',
            'errors': detail,
        }
    return response
