from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel

from .constants import IssueStatus, get_library_policy
from .fines import calculate_fine
from .managers import BookIssueManager, BookManager


class Book(BaseModel):
    """
    Book catalog and inventory
    """
    title = models.CharField(max_length=500, verbose_name=_("Book Title"))
    author = models.CharField(max_length=255, verbose_name=_("Author"))
    subject = models.CharField(
        max_length=100,
        blank=True,
        db_index=True,
        verbose_name=_("Subject")
    )
    isbn = models.CharField(
        max_length=20,
        blank=True,
        db_index=True,
        verbose_name=_("ISBN")
    )
    description = models.TextField(blank=True, verbose_name=_("Description"))

    # Inventory
    total_copies = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        verbose_name=_("Total Copies")
    )
    available_copies = models.PositiveIntegerField(
        default=1,
        editable=False,
        verbose_name=_("Available Copies"),
        help_text=_("Maintained by the circulation desk; never edited directly")
    )

    # Digital access is unmetered and outside the issue lifecycle
    is_digital = models.BooleanField(default=False, verbose_name=_("Is Digital"))
    digital_url = models.URLField(max_length=500, blank=True, verbose_name=_("Digital URL"))

    objects = BookManager()

    class Meta:
        db_table = "library_books"
        verbose_name = _("Book")
        verbose_name_plural = _("Books")
        ordering = ["title"]
        indexes = [
            models.Index(fields=['title']),
            models.Index(fields=['is_digital', 'available_copies']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_copies__gte=1),
                name="library_book_total_copies_positive",
            ),
            models.CheckConstraint(
                condition=Q(available_copies__lte=F('total_copies')),
                name="library_book_available_within_total",
            ),
        ]

    def __str__(self):
        return f"{self.title} - {self.author}"

    def clean(self):
        errors = {}
        if not (self.title or '').strip():
            errors['title'] = _("Title is required")
        if not (self.author or '').strip():
            errors['author'] = _("Author is required")
        if self.total_copies is None or self.total_copies < 1:
            errors['total_copies'] = _("A book needs at least one copy")
        if errors:
            raise ValidationError(errors)

    @property
    def issued_copies(self):
        return self.total_copies - self.available_copies

    @property
    def can_be_issued(self):
        return not self.is_digital and self.available_copies > 0


class BookIssue(BaseModel):
    """
    One borrowing episode of a physical book by one student
    """
    book = models.ForeignKey(
        Book,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="issues",
        verbose_name=_("Book")
    )
    student_id = models.CharField(
        max_length=100,
        db_index=True,
        verbose_name=_("Student")
    )

    # Snapshot taken at request time; survives deletion of the book
    book_title = models.CharField(max_length=500, blank=True, verbose_name=_("Book Title"))
    book_author = models.CharField(max_length=255, blank=True, verbose_name=_("Book Author"))

    # Issue Details
    requested_at = models.DateTimeField(default=timezone.now, verbose_name=_("Requested At"))
    issued_date = models.DateField(null=True, blank=True, verbose_name=_("Issue Date"))
    due_date = models.DateField(verbose_name=_("Due Date"))
    return_date = models.DateField(null=True, blank=True, verbose_name=_("Return Date"))

    status = models.CharField(
        max_length=20,
        choices=IssueStatus.CHOICES,
        default=IssueStatus.REQUESTED,
        verbose_name=_("Status")
    )

    fine_amount = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=0,
        verbose_name=_("Fine Amount")
    )

    # Desk staff, as opaque actor ids
    issued_by = models.CharField(max_length=100, blank=True, verbose_name=_("Issued By"))
    received_by = models.CharField(max_length=100, blank=True, verbose_name=_("Received By"))
    closed_by = models.CharField(max_length=100, blank=True, verbose_name=_("Closed By"))

    objects = BookIssueManager()

    class Meta:
        db_table = "library_book_issues"
        verbose_name = _("Book Issue")
        verbose_name_plural = _("Book Issues")
        ordering = ["-requested_at"]
        indexes = [
            models.Index(fields=['student_id', 'status']),
            models.Index(fields=['due_date', 'status']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['book', 'student_id'],
                condition=Q(status__in=IssueStatus.OPEN_STATUSES),
                name="library_one_open_issue_per_student",
            ),
        ]

    def __str__(self):
        return f"{self.book_title or self.book_id} - {self.student_id} - {self.status}"

    @property
    def is_open(self):
        return self.status in IssueStatus.OPEN_STATUSES

    def is_overdue(self, as_of=None):
        as_of = as_of or timezone.localdate()
        return self.status in IssueStatus.ON_LOAN_STATUSES and as_of > self.due_date

    def display_status(self, as_of=None):
        """
        Status as shown to users: an issued copy past its due date reads
        as overdue while the persisted status stays issued.
        """
        if self.status in IssueStatus.ON_LOAN_STATUSES:
            return IssueStatus.OVERDUE if self.is_overdue(as_of) else IssueStatus.ISSUED
        return self.status

    def current_fine(self, as_of=None, policy=None):
        """
        Fine the student would owe when returning on ``as_of``.

        Advisory only: nothing is charged until the return is recorded.
        """
        if self.status not in IssueStatus.ON_LOAN_STATUSES:
            return self.fine_amount

        policy = policy or get_library_policy()
        return calculate_fine(
            self.due_date,
            as_of or timezone.localdate(),
            policy.fine_rate_per_day,
            policy.max_fine_amount,
        )
