import json

from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404
from django.test import RequestFactory, SimpleTestCase
from rest_framework import exceptions

from apps.core.views import (
    api_exception_handler,
    custom_bad_request_view,
    custom_error_view,
    custom_page_not_found_view,
    custom_permission_denied_view,
)
from apps.library.exceptions import InvalidTransition, InvariantViolation, NotFoundError


class ErrorPageTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_404_view(self):
        request = self.factory.get('/')
        request.user = AnonymousUser()
        response = custom_page_not_found_view(request, exception=Http404("Not Found"))
        self.assertEqual(response.status_code, 404)
        self.assertIn(b"Page Not Found", response.content)

    def test_500_view(self):
        request = self.factory.get('/')
        request.user = AnonymousUser()
        response = custom_error_view(request)
        self.assertEqual(response.status_code, 500)
        self.assertIn(b"Internal Server Error", response.content)

    def test_403_view(self):
        request = self.factory.get('/')
        request.user = AnonymousUser()
        response = custom_permission_denied_view(request, exception=Exception("Forbidden"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(json.loads(response.content)['code'], 'permission_denied')

    def test_400_view(self):
        request = self.factory.get('/')
        request.user = AnonymousUser()
        response = custom_bad_request_view(request, exception=Exception("Bad Request"))
        self.assertEqual(response.status_code, 400)
        self.assertIn(b"Bad Request", response.content)


class ApiExceptionHandlerTests(SimpleTestCase):

    def handle(self, exc):
        return api_exception_handler(exc, {})

    def test_library_errors_keep_their_status(self):
        cases = [
            (NotFoundError(), 404, 'not found', 'not_found'),
            (InvalidTransition('already returned'), 409, 'already returned', 'invalid_transition'),
            (InvariantViolation(), 409, 'not available', 'invariant_violation'),
        ]
        for exc, status_code, detail, code in cases:
            with self.subTest(code=code):
                response = self.handle(exc)
                self.assertEqual(response.status_code, status_code)
                self.assertEqual(response.data, {'detail': detail, 'code': code})

    def test_django_validation_error(self):
        response = self.handle(ValidationError({'title': ['Title is required']}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], {'title': ['Title is required']})

        response = self.handle(ValidationError('Digital books are available without an issue request'))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], ['Digital books are available without an issue request'])

    def test_permission_denied_uses_rest_framework_handler(self):
        response = self.handle(PermissionDenied('nope'))
        self.assertEqual(response.status_code, 403)

        response = self.handle(exceptions.NotFound())
        self.assertEqual(response.status_code, 404)

    def test_unexpected_errors_are_not_handled(self):
        self.assertIsNone(self.handle(RuntimeError('boom')))
