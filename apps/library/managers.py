from django.db import connections, models
from django.db.models import Q
from django.db.models.functions import Collate
from django.utils import timezone

from .constants import IssueStatus

# Binary collations per database vendor, so titles sort case-sensitively
TITLE_COLLATIONS = {
    'postgresql': 'C',
    'sqlite': 'BINARY',
    'mysql': 'utf8mb4_bin',
}


class BookQuerySet(models.QuerySet):

    def search(self, text):
        """
        Case-insensitive free-text match over title, author, subject and isbn
        """
        text = (text or '').strip()
        if not text:
            return self
        return self.filter(
            Q(title__icontains=text) |
            Q(author__icontains=text) |
            Q(subject__icontains=text) |
            Q(isbn__icontains=text)
        )

    def physical(self):
        return self.filter(is_digital=False)

    def digital(self):
        return self.filter(is_digital=True)

    def by_title(self):
        """Ordered by title as stored: uppercase before lowercase"""
        collation = TITLE_COLLATIONS.get(connections[self.db].vendor)
        if collation is None:
            return self.order_by('title', 'pk')
        return self.order_by(Collate('title', collation), 'pk')


class BookIssueQuerySet(models.QuerySet):

    def open(self):
        return self.filter(status__in=IssueStatus.OPEN_STATUSES)

    def on_loan(self):
        return self.filter(status__in=IssueStatus.ON_LOAN_STATUSES)

    def pending(self):
        return self.filter(status=IssueStatus.REQUESTED)

    def for_student(self, student_id):
        return self.filter(student_id=str(student_id))

    def overdue(self, as_of=None):
        """Copies still out after their due date, as seen on ``as_of``"""
        as_of = as_of or timezone.localdate()
        return self.on_loan().filter(due_date__lt=as_of)


BookManager = models.Manager.from_queryset(BookQuerySet)
BookIssueManager = models.Manager.from_queryset(BookIssueQuerySet)
