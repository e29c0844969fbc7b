"""
Constants for the library circulation module.
Contains issue statuses, their allowed transitions and the circulation policy.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.utils.translation import gettext_lazy as _


# ============================================================================
# ISSUE STATUS CONSTANTS
# ============================================================================

class IssueStatus:
    """
    Book issue status constants and choices
    """
    REQUESTED = 'requested'
    ISSUED = 'issued'
    RETURNED = 'returned'
    OVERDUE = 'overdue'
    CANCELLED = 'cancelled'

    CHOICES = (
        (REQUESTED, _('Requested')),
        (ISSUED, _('Issued')),
        (RETURNED, _('Returned')),
        (OVERDUE, _('Overdue')),
        (CANCELLED, _('Cancelled')),
    )

    # A copy is out of the library in these states. OVERDUE is only ever a
    # display label, but rows persisted with it are treated as ISSUED.
    ON_LOAN_STATUSES = [ISSUED, OVERDUE]
    OPEN_STATUSES = [REQUESTED, ISSUED, OVERDUE]
    CLOSED_STATUSES = [RETURNED, CANCELLED]

    # Status transitions (from -> to)
    ALLOWED_TRANSITIONS = {
        REQUESTED: [ISSUED, CANCELLED],
        ISSUED: [RETURNED],
        OVERDUE: [RETURNED],
        RETURNED: [],  # Final state
        CANCELLED: [],  # Final state
    }

    @classmethod
    def can_transition(cls, current, target):
        return target in cls.ALLOWED_TRANSITIONS.get(current, [])


# ============================================================================
# CIRCULATION POLICY
# ============================================================================

DEFAULT_LIBRARY_SETTINGS = {
    'LOAN_PERIOD_DAYS': 14,
    'FINE_RATE_PER_DAY': Decimal('2.00'),
    'MAX_FINE_AMOUNT': None,
    'CHECK_AVAILABILITY_ON_REQUEST': False,
}


@dataclass(frozen=True)
class LibraryPolicy:
    loan_period_days: int
    fine_rate_per_day: Decimal
    max_fine_amount: Optional[Decimal]
    check_availability_on_request: bool


def get_library_policy():
    """
    Build the circulation policy from ``settings.LIBRARY`` over the defaults
    """
    configured = {**DEFAULT_LIBRARY_SETTINGS, **getattr(settings, 'LIBRARY', {})}

    max_fine = configured['MAX_FINE_AMOUNT']
    return LibraryPolicy(
        loan_period_days=int(configured['LOAN_PERIOD_DAYS']),
        fine_rate_per_day=Decimal(str(configured['FINE_RATE_PER_DAY'])),
        max_fine_amount=Decimal(str(max_fine)) if max_fine is not None else None,
        check_availability_on_request=bool(configured['CHECK_AVAILABILITY_ON_REQUEST']),
    )
