import django_filters
from django.utils import timezone

from .constants import IssueStatus
from .models import Book, BookIssue


class BookFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(
        method='filter_search',
        label='Search'
    )
    subject = django_filters.CharFilter(
        field_name='subject',
        lookup_expr='exact',
        label='Subject'
    )

    class Meta:
        model = Book
        fields = ['search', 'subject']

    def filter_search(self, queryset, name, value):
        return queryset.search(value)


class BookIssueFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(
        choices=IssueStatus.CHOICES,
        method='filter_status',
        label='Status'
    )
    student_id = django_filters.CharFilter(
        field_name='student_id',
        label='Student'
    )
    as_of = django_filters.DateFilter(
        method='filter_option',
        label='As of'
    )
    project_fines = django_filters.BooleanFilter(
        method='filter_option',
        label='Show projected fines'
    )

    class Meta:
        model = BookIssue
        fields = ['status', 'student_id', 'as_of', 'project_fines']

    def filter_status(self, queryset, name, value):
        as_of = self.form.cleaned_data.get('as_of') or timezone.localdate()
        if value == IssueStatus.OVERDUE:
            return queryset.overdue(as_of)
        if value == IssueStatus.ISSUED:
            return queryset.on_loan().filter(due_date__gte=as_of)
        return queryset.filter(status=value)

    def filter_option(self, queryset, name, value):
        # as_of and project_fines only shape filter_status and the serializer
        return queryset
