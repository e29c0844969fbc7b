# apps/library/services/circulation_service.py
import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.logging import get_logger
from apps.core.models import AuditLog
from apps.core.permissions.roles import Role, require_role
from apps.core.services.audit_service import AuditService

from ..constants import IssueStatus, get_library_policy
from ..exceptions import InvalidTransition, InvariantViolation, LibraryError, NotFoundError
from ..fines import calculate_fine
from ..models import Book, BookIssue
from .catalog_service import CatalogService

logger = get_logger(__name__)

BORROWER_ROLES = [Role.STUDENT] + Role.LIBRARY_STAFF


class CirculationService:
    """
    Issue/return state machine and fine policy.

    Approve and return flip the issue status with a compare-and-swap UPDATE
    and move the available count through ``CatalogService`` inside one
    transaction; if either step fails neither is kept.
    """

    @staticmethod
    def get_issue(issue_id, for_update: bool = False) -> BookIssue:
        queryset = BookIssue.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=issue_id)
        except (BookIssue.DoesNotExist, ValueError, ValidationError):
            raise NotFoundError(_("Issue not found"))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @classmethod
    def request(cls, book_id, student_id, actor, today: Optional[datetime.date] = None,
                request=None) -> BookIssue:
        """
        Queue a borrow request for a physical book.

        No copy is reserved here; the count only moves on approval. With
        ``CHECK_AVAILABILITY_ON_REQUEST`` on, a book with no copy on the
        shelf is refused up front.
        """
        require_role(actor, BORROWER_ROLES, 'request books')
        student_id = str(student_id)
        if actor.role == Role.STUDENT and student_id != actor.user_id:
            raise PermissionDenied(_("Students may only request books for themselves"))

        policy = get_library_policy()
        today = today or timezone.localdate()

        try:
            with transaction.atomic():
                # Lock the book row so requests for the same book queue up
                book = CatalogService.get_book(book_id, for_update=True)

                if book.is_digital:
                    raise ValidationError(_("Digital books are available without an issue request"))

                if BookIssue.objects.open().filter(book=book, student_id=student_id).exists():
                    raise InvalidTransition(
                        _("You have already requested or issued this book"), action='request'
                    )

                if policy.check_availability_on_request and book.available_copies < 1:
                    raise InvariantViolation(_("not available"))

                try:
                    with transaction.atomic():
                        issue = BookIssue.objects.create(
                            book=book,
                            student_id=student_id,
                            book_title=book.title,
                            book_author=book.author,
                            due_date=today + datetime.timedelta(days=policy.loan_period_days),
                            status=IssueStatus.REQUESTED,
                            created_by=actor.user_id,
                            updated_by=actor.user_id,
                        )
                except IntegrityError:
                    raise InvalidTransition(
                        _("You have already requested or issued this book"), action='request'
                    )
        except (LibraryError, ValidationError) as e:
            logger.warning("Request for book %s by %s refused: %s", book_id, student_id, e,
                           extra={'actor': actor})
            raise

        logger.info("Issue %s requested for book %s, due %s", issue.short_id, book.short_id,
                    issue.due_date, extra={'actor': actor})
        AuditService.log_transition(AuditLog.AuditAction.REQUEST, actor, issue, request=request)
        return issue

    @classmethod
    def approve(cls, issue_id, actor, today: Optional[datetime.date] = None,
                request=None) -> BookIssue:
        """
        ``requested -> issued``: hand out a copy.

        Fails with ``InvariantViolation`` when no copy is on the shelf, in
        which case the issue stays ``requested``.
        """
        require_role(actor, Role.LIBRARY_STAFF, 'approve issues')
        today = today or timezone.localdate()

        try:
            with transaction.atomic():
                issue = cls.get_issue(issue_id, for_update=True)
                previous_state = AuditService.serialize_instance(issue)
                cls._check_transition(issue, IssueStatus.ISSUED, 'approve')

                if issue.book_id is None:
                    raise NotFoundError(_("The requested book is no longer in the catalog"))
                if CatalogService.get_book(issue.book_id).is_digital:
                    raise ValidationError(_("Digital books are available without an issue request"))

                updated = BookIssue.objects.filter(
                    pk=issue.pk, status=IssueStatus.REQUESTED
                ).update(
                    status=IssueStatus.ISSUED,
                    issued_date=today,
                    issued_by=actor.user_id,
                    updated_by=actor.user_id,
                    updated_at=timezone.now(),
                )
                if not updated:
                    raise InvalidTransition(current_status=issue.status, action='approve')

                CatalogService.adjust_availability(issue.book_id, -1)
        except (LibraryError, ValidationError) as e:
            logger.warning("Approval of issue %s refused: %s", issue_id, e, extra={'actor': actor})
            raise

        issue.refresh_from_db()
        logger.info("Issue %s approved", issue.short_id, extra={'actor': actor})
        AuditService.log_transition(AuditLog.AuditAction.APPROVE, actor, issue,
                                    previous_state=previous_state, request=request)
        return issue

    @classmethod
    def return_book(cls, issue_id, actor, today: Optional[datetime.date] = None,
                    request=None) -> BookIssue:
        """
        ``issued -> returned``: take the copy back and settle the fine.

        The fine depends only on the due date and the return date and is
        persisted here.
        """
        require_role(actor, Role.LIBRARY_STAFF, 'record returns')
        policy = get_library_policy()
        today = today or timezone.localdate()

        try:
            with transaction.atomic():
                issue = cls.get_issue(issue_id, for_update=True)
                previous_state = AuditService.serialize_instance(issue)
                cls._check_transition(issue, IssueStatus.RETURNED, 'return')

                fine = calculate_fine(
                    issue.due_date, today, policy.fine_rate_per_day, policy.max_fine_amount
                )
                updated = BookIssue.objects.filter(
                    pk=issue.pk, status__in=IssueStatus.ON_LOAN_STATUSES
                ).update(
                    status=IssueStatus.RETURNED,
                    return_date=today,
                    fine_amount=fine,
                    received_by=actor.user_id,
                    updated_by=actor.user_id,
                    updated_at=timezone.now(),
                )
                if not updated:
                    raise InvalidTransition(current_status=issue.status, action='return')

                # Digital books carry no copy count to give back
                if Book.objects.physical().filter(pk=issue.book_id).exists():
                    CatalogService.adjust_availability(issue.book_id, 1)
        except (LibraryError, ValidationError) as e:
            logger.warning("Return of issue %s refused: %s", issue_id, e, extra={'actor': actor})
            raise

        if issue.book_id is None:
            logger.warning("Issue %s returned for a book no longer in the catalog",
                           issue.short_id, extra={'actor': actor})

        issue.refresh_from_db()
        logger.info("Issue %s returned, fine %s", issue.short_id, issue.fine_amount,
                    extra={'actor': actor})
        AuditService.log_transition(AuditLog.AuditAction.RETURN, actor, issue,
                                    previous_state=previous_state, request=request)
        return issue

    @classmethod
    def reject(cls, issue_id, actor, request=None) -> BookIssue:
        """``requested -> cancelled`` by the circulation desk"""
        require_role(actor, Role.LIBRARY_STAFF, 'reject requests')
        return cls._close_request(issue_id, actor, 'reject', AuditLog.AuditAction.REJECT, request)

    @classmethod
    def cancel(cls, issue_id, actor, request=None) -> BookIssue:
        """``requested -> cancelled`` by the student who asked, or the desk"""
        require_role(actor, BORROWER_ROLES, 'cancel requests')
        return cls._close_request(issue_id, actor, 'cancel', AuditLog.AuditAction.CANCEL, request)

    @classmethod
    def _close_request(cls, issue_id, actor, action, audit_action, request) -> BookIssue:
        try:
            with transaction.atomic():
                issue = cls.get_issue(issue_id, for_update=True)
                if actor.role == Role.STUDENT and issue.student_id != actor.user_id:
                    raise PermissionDenied(_("Students may only cancel their own requests"))

                previous_state = AuditService.serialize_instance(issue)
                cls._check_transition(issue, IssueStatus.CANCELLED, action)

                updated = BookIssue.objects.filter(
                    pk=issue.pk, status=IssueStatus.REQUESTED
                ).update(
                    status=IssueStatus.CANCELLED,
                    closed_by=actor.user_id,
                    updated_by=actor.user_id,
                    updated_at=timezone.now(),
                )
                if not updated:
                    raise InvalidTransition(current_status=issue.status, action=action)
        except (LibraryError, ValidationError) as e:
            logger.warning("%s of issue %s refused: %s", action.capitalize(), issue_id, e,
                           extra={'actor': actor})
            raise

        issue.refresh_from_db()
        logger.info("Issue %s closed by %s", issue.short_id, action, extra={'actor': actor})
        AuditService.log_transition(audit_action, actor, issue,
                                    previous_state=previous_state, request=request)
        return issue

    @staticmethod
    def _check_transition(issue, target, action):
        if IssueStatus.can_transition(issue.status, target):
            return

        if issue.status == IssueStatus.RETURNED:
            message = _("already returned")
        elif issue.status == IssueStatus.CANCELLED:
            message = _("This request was cancelled")
        elif issue.status in IssueStatus.ON_LOAN_STATUSES:
            message = _("This book is already issued")
        else:
            message = _("This book has not been issued yet")
        raise InvalidTransition(message, current_status=issue.status, action=action)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @classmethod
    def status_of(cls, issue_id, as_of: Optional[datetime.date] = None) -> str:
        """
        Displayed status; ``overdue`` is derived from the due date and never
        stored by this service.
        """
        return cls.get_issue(issue_id).display_status(as_of)

    @staticmethod
    def list_issues(actor, student_id=None, status: Optional[str] = None,
                    as_of: Optional[datetime.date] = None):
        """
        Issues visible to the actor, newest request first.

        Students only ever see their own. ``status`` filters on the
        displayed status, so ``overdue`` and ``issued`` are split by date.
        """
        require_role(actor, BORROWER_ROLES, 'view issues')
        as_of = as_of or timezone.localdate()
        queryset = BookIssue.objects.select_related('book')

        if actor.role == Role.STUDENT:
            if student_id is not None and str(student_id) != actor.user_id:
                raise PermissionDenied(_("Students may only view their own issues"))
            student_id = actor.user_id

        if student_id is not None:
            queryset = queryset.for_student(student_id)

        if status == IssueStatus.OVERDUE:
            queryset = queryset.overdue(as_of)
        elif status == IssueStatus.ISSUED:
            queryset = queryset.on_loan().filter(due_date__gte=as_of)
        elif status:
            if status not in dict(IssueStatus.CHOICES):
                raise ValidationError({'status': _("Unknown status %(status)s") % {'status': status}})
            queryset = queryset.filter(status=status)

        return queryset.order_by('-requested_at')

    @staticmethod
    def summarize_issues(issues: Iterable[BookIssue],
                         as_of: Optional[datetime.date] = None) -> Dict[str, Any]:
        """
        Counts shown on a "my books" view: copies out, how many are overdue,
        open requests and the fines charged so far.
        """
        as_of = as_of or timezone.localdate()
        counts = dict.fromkeys(
            [IssueStatus.ISSUED, IssueStatus.OVERDUE, IssueStatus.REQUESTED], 0
        )
        total_fine = Decimal('0.00')

        for issue in issues:
            status = issue.display_status(as_of)
            if status in counts:
                counts[status] += 1
            total_fine += issue.fine_amount or Decimal('0.00')

        return {**counts, 'total_fine': total_fine}

    @staticmethod
    def library_stats(as_of: Optional[datetime.date] = None) -> Dict[str, Any]:
        """Figures for the circulation desk dashboard"""
        as_of = as_of or timezone.localdate()
        copies = Book.objects.aggregate(
            total=Sum('total_copies'),
            available=Sum('available_copies'),
        )
        fines = BookIssue.objects.filter(status=IssueStatus.RETURNED).aggregate(
            total=Sum('fine_amount')
        )
        return {
            'total_books': Book.objects.count(),
            'total_copies': copies['total'] or 0,
            'available_copies': copies['available'] or 0,
            'issued': BookIssue.objects.on_loan().count(),
            'overdue': BookIssue.objects.overdue(as_of).count(),
            'pending_requests': BookIssue.objects.pending().count(),
            'total_fines': fines['total'] or Decimal('0.00'),
        }
