# apps/library/services/catalog_service.py
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils.translation import gettext_lazy as _

from apps.core.logging import get_logger
from apps.core.models import AuditLog
from apps.core.permissions.roles import Role, require_role
from apps.core.services.audit_service import AuditService

from ..constants import IssueStatus
from ..exceptions import InvariantViolation, NotFoundError
from ..models import Book

logger = get_logger(__name__)

EDITABLE_BOOK_FIELDS = (
    'title', 'author', 'subject', 'isbn', 'description',
    'total_copies', 'is_digital', 'digital_url',
)
TEXT_BOOK_FIELDS = ('title', 'author', 'subject', 'isbn', 'description', 'digital_url')


class CatalogService:
    """
    Durable storage of books and sole authority for ``available_copies``.

    ``adjust_availability`` is the only way the available count moves after
    a book is created, and only ``CirculationService`` calls it.
    """

    @staticmethod
    def get_book(book_id, for_update: bool = False) -> Book:
        queryset = Book.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=book_id)
        except (Book.DoesNotExist, ValueError, ValidationError):
            raise NotFoundError(_("Book not found"))

    @classmethod
    def create_book(cls, fields: Dict[str, Any], actor, request=None) -> Book:
        """
        Add a book to the catalog with every copy on the shelf
        """
        require_role(actor, Role.LIBRARY_STAFF, 'add books')
        data = cls._clean_fields(fields)

        book = Book(**data)
        book.available_copies = book.total_copies
        book.created_by = actor.user_id
        book.updated_by = actor.user_id
        book.full_clean()
        book.save()

        logger.info("Book %s created with %s copies", book.short_id, book.total_copies,
                    extra={'actor': actor})
        AuditService.log_creation(actor, book, request=request)
        return book

    @classmethod
    def update_book(cls, book_id, fields: Dict[str, Any], actor, request=None) -> Book:
        """
        Update descriptive fields and ``total_copies``.

        The available count is recomputed from the copies currently out, so
        a new total below that number is refused.
        """
        require_role(actor, Role.LIBRARY_STAFF, 'edit books')
        data = cls._clean_fields(fields, partial=True)

        with transaction.atomic():
            book = cls.get_book(book_id, for_update=True)
            previous_state = AuditService.serialize_instance(book)
            was_digital = book.is_digital

            for name, value in data.items():
                setattr(book, name, value)

            on_loan = book.issues.on_loan().count()
            open_issues = book.issues.open().count()
            if book.is_digital and not was_digital and open_issues:
                raise ValidationError({
                    'is_digital': _("%(count)s requests or loans are still open; close them first") % {
                        'count': open_issues,
                    }
                })
            if book.total_copies < on_loan:
                raise ValidationError({
                    'total_copies': _("%(count)s copies are currently issued") % {'count': on_loan}
                })

            book.available_copies = max(book.total_copies - on_loan, 0)
            book.full_clean()
            book.updated_by = actor.user_id
            book.save()

        logger.info("Book %s updated", book.short_id, extra={'actor': actor})
        AuditService.log_update(actor, book, previous_state=previous_state, request=request)
        return book

    @classmethod
    def delete_book(cls, book_id, actor, request=None) -> None:
        """
        Remove a book. Issue history keeps its title/author snapshot and
        loses the link to the catalog record.
        """
        require_role(actor, Role.LIBRARY_STAFF, 'delete books')

        book = cls.get_book(book_id)
        previous_state = AuditService.serialize_instance(book)
        open_issues = book.issues.open().count()
        book.delete()

        if open_issues:
            logger.warning("Book %s deleted with %s open issues", previous_state['id'][:8],
                           open_issues, extra={'actor': actor})
        else:
            logger.info("Book %s deleted", previous_state['id'][:8], extra={'actor': actor})
        AuditService.log_deletion(actor, book, previous_state=previous_state, request=request,
                                  extra_data={'open_issues': open_issues})

    @staticmethod
    def list_books(search: Optional[str] = None, subject: Optional[str] = None) -> List[Book]:
        """
        Snapshot of the catalog ordered by title
        """
        queryset = Book.objects.search(search)
        if subject:
            queryset = queryset.filter(subject=subject)
        return list(queryset.by_title())

    @staticmethod
    def list_subjects() -> List[str]:
        return list(
            Book.objects.exclude(subject='')
            .order_by('subject')
            .values_list('subject', flat=True)
            .distinct()
        )

    @staticmethod
    def list_digital_books() -> List[Book]:
        return list(Book.objects.digital().by_title())

    @staticmethod
    def adjust_availability(book_id, delta: int) -> int:
        """
        Atomically apply ``available_copies += delta`` for delta in {-1, +1}.

        A single conditional UPDATE, so concurrent callers can never push
        the count outside [0, total_copies]. Returns the new count.
        """
        if delta == -1:
            updated = Book.objects.filter(pk=book_id, available_copies__gte=1).update(
                available_copies=F('available_copies') - 1
            )
        elif delta == 1:
            updated = Book.objects.filter(pk=book_id, available_copies__lt=F('total_copies')).update(
                available_copies=F('available_copies') + 1
            )
        else:
            raise ValueError(f"delta must be -1 or +1, got {delta!r}")

        if not updated:
            if not Book.objects.filter(pk=book_id).exists():
                raise NotFoundError(_("Book not found"))
            if delta < 0:
                raise InvariantViolation(_("not available"))
            raise InvariantViolation(_("All copies of this book are already on the shelf"))

        return Book.objects.values_list('available_copies', flat=True).get(pk=book_id)

    @staticmethod
    def inventory_report() -> List[Dict[str, Any]]:
        """
        Books whose cached available count disagrees with the issue records
        """
        books = Book.objects.physical().annotate(
            on_loan=Count('issues', filter=Q(issues__status__in=IssueStatus.ON_LOAN_STATUSES))
        ).order_by('title')

        drift = []
        for book in books:
            expected = book.total_copies - book.on_loan
            if book.available_copies != expected:
                drift.append({
                    'book_id': str(book.id),
                    'title': book.title,
                    'total_copies': book.total_copies,
                    'on_loan': book.on_loan,
                    'available_copies': book.available_copies,
                    'expected_available': expected,
                })
        return drift

    @classmethod
    def reconcile(cls, book_id, actor=None):
        """
        Recompute ``available_copies`` from the issue records.
        Returns the (previous, current) pair.
        """
        with transaction.atomic():
            book = cls.get_book(book_id, for_update=True)
            on_loan = 0 if book.is_digital else book.issues.on_loan().count()
            expected = book.total_copies - on_loan
            if expected < 0:
                raise InvariantViolation(
                    _("%(count)s copies on loan exceed the %(total)s owned") % {
                        'count': on_loan, 'total': book.total_copies,
                    }
                )

            previous = book.available_copies
            if previous != expected:
                Book.objects.filter(pk=book.pk).update(available_copies=expected)

        if previous != expected:
            logger.warning("Book %s availability reconciled %s -> %s", book.short_id,
                           previous, expected, extra={'actor': actor})
            AuditService.create_audit_entry(
                action=AuditLog.AuditAction.RECONCILE,
                resource_type='Book',
                actor=actor,
                resource_id=str(book.pk),
                resource_name=str(book),
                changes={'available_copies': {'old': previous, 'new': expected}},
                severity=AuditLog.AuditSeverity.WARNING,
            )
        return previous, expected

    @staticmethod
    def _clean_fields(fields: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        if 'available_copies' in fields:
            raise ValidationError({
                'available_copies': _("Available copies are maintained by the circulation desk")
            })

        unknown = set(fields) - set(EDITABLE_BOOK_FIELDS)
        if unknown:
            raise ValidationError(_("Unknown book fields: %(fields)s") % {
                'fields': ', '.join(sorted(unknown))
            })

        data = {}
        for name in EDITABLE_BOOK_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if name in TEXT_BOOK_FIELDS:
                value = (value or '').strip()
            elif name == 'total_copies':
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    raise ValidationError({'total_copies': _("Enter a whole number")})
            elif name == 'is_digital':
                value = bool(value)
            data[name] = value

        if not partial:
            for name in ('title', 'author'):
                if not data.get(name):
                    raise ValidationError({name: _("This field is required")})
        return data
