import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


# ============================================
# REST EXCEPTION HANDLER
# ============================================

def api_exception_handler(exc, context):
    """
    Map domain errors to JSON responses.

    Django ``ValidationError`` becomes 400; exceptions carrying
    ``status_code``/``code``/``message`` (the library errors) keep their
    status. Everything else goes to DRF's default handler, which already
    covers ``PermissionDenied`` and ``Http404``.
    """
    if isinstance(exc, ValidationError):
        if hasattr(exc, 'error_dict'):
            detail = exc.message_dict
        else:
            detail = exc.messages
        return Response({'detail': detail, 'code': 'invalid'}, status=status.HTTP_400_BAD_REQUEST)

    status_code = getattr(exc, 'status_code', None)
    message = getattr(exc, 'message', None)
    code = getattr(exc, 'code', None)
    if status_code and message is not None and isinstance(code, str):
        if status_code >= 500:
            logger.error("Unhandled domain error: %s", exc, exc_info=True)
        return Response({'detail': str(message), 'code': code}, status=status_code)

    return exception_handler(exc, context)


# ============================================
# ERROR HANDLERS
# ============================================

def custom_page_not_found_view(request, exception):
    return JsonResponse({'detail': 'Page Not Found', 'code': 'not_found'}, status=404)


def custom_error_view(request):
    return JsonResponse({'detail': 'Internal Server Error', 'code': 'server_error'}, status=500)


def custom_permission_denied_view(request, exception):
    return JsonResponse({'detail': 'Access Denied', 'code': 'permission_denied'}, status=403)


def custom_bad_request_view(request, exception):
    return JsonResponse({'detail': 'Bad Request', 'code': 'bad_request'}, status=400)
