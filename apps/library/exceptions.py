from django.core.exceptions import ObjectDoesNotExist
from django.utils.translation import gettext_lazy as _


class LibraryError(Exception):
    """
    Base class for circulation errors surfaced to callers unmodified
    """
    default_message = _("Library operation failed")
    code = 'library_error'
    status_code = 400

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(str(self.message))


class NotFoundError(LibraryError, ObjectDoesNotExist):
    default_message = _("not found")
    code = 'not_found'
    status_code = 404


class InvalidTransition(LibraryError):
    """
    The issue is not in a state that permits the requested action
    """
    default_message = _("This action is not allowed in the current state")
    code = 'invalid_transition'
    status_code = 409

    def __init__(self, message=None, current_status=None, action=None):
        self.current_status = current_status
        self.action = action
        super().__init__(message)


class InvariantViolation(LibraryError):
    """
    A copy-count bound (0 <= available <= total) would be violated
    """
    default_message = _("not available")
    code = 'invariant_violation'
    status_code = 409
