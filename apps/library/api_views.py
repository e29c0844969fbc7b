from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from .exceptions import NotFoundError
from .filters import BookFilter, BookIssueFilter
from .models import Book
from .permissions import IsLibraryStaff, LibraryPermission, get_actor
from .serializers import (
    BookIssueSerializer, BookSerializer, IssueRequestSerializer,
    IssueSummarySerializer, LibraryStatsSerializer
)
from .services import CatalogService, CirculationService


class BookViewSet(viewsets.GenericViewSet):
    """
    Catalog browsing for everyone, catalog maintenance for the desk
    """
    serializer_class = BookSerializer
    permission_classes = [LibraryPermission]
    filter_backends = [DjangoFilterBackend]
    filterset_class = BookFilter
    staff_actions = {'create', 'update', 'partial_update', 'destroy'}

    def get_queryset(self):
        return Book.objects.by_title()

    def list(self, request):
        books = self.filter_queryset(self.get_queryset())
        return Response(self.get_serializer(books, many=True).data)

    def retrieve(self, request, pk=None):
        book = CatalogService.get_book(pk)
        return Response(self.get_serializer(book).data)

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        book = CatalogService.create_book(serializer.validated_data, get_actor(request), request=request)
        return Response(self.get_serializer(book).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None, partial=False):
        book = CatalogService.get_book(pk)
        serializer = self.get_serializer(book, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        book = CatalogService.update_book(pk, serializer.validated_data, get_actor(request), request=request)
        return Response(self.get_serializer(book).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk, partial=True)

    def destroy(self, request, pk=None):
        CatalogService.delete_book(pk, get_actor(request), request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def subjects(self, request):
        return Response(CatalogService.list_subjects())

    @action(detail=False, methods=['get'])
    def digital(self, request):
        books = CatalogService.list_digital_books()
        return Response(self.get_serializer(books, many=True).data)


class BookIssueViewSet(viewsets.GenericViewSet):
    """
    Borrow requests and the circulation desk
    """
    serializer_class = BookIssueSerializer
    permission_classes = [LibraryPermission]
    filter_backends = [DjangoFilterBackend]
    filterset_class = BookIssueFilter
    staff_actions = {'approve', 'reject', 'return_book'}

    def get_queryset(self):
        return CirculationService.list_issues(get_actor(self.request), as_of=self.get_as_of())

    def get_options(self):
        filterset = BookIssueFilter(self.request.query_params, queryset=None)
        if filterset.form.is_valid():
            return filterset.form.cleaned_data
        return {}

    def get_as_of(self):
        return self.get_options().get('as_of') or timezone.localdate()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['as_of'] = self.get_as_of()
        context['project_fines'] = bool(self.get_options().get('project_fines'))
        return context

    def _visible_issue(self, pk):
        issue = CirculationService.get_issue(pk)
        actor = get_actor(self.request)
        if not actor.is_library_staff and issue.student_id != actor.user_id:
            # Other students' issues are indistinguishable from missing ones
            raise NotFoundError()
        return issue

    def list(self, request):
        issues = self.filter_queryset(self.get_queryset())
        return Response(self.get_serializer(issues, many=True).data)

    def retrieve(self, request, pk=None):
        return Response(self.get_serializer(self._visible_issue(pk)).data)

    def create(self, request):
        actor = get_actor(request)
        serializer = IssueRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        issue = CirculationService.request(
            serializer.validated_data['book'],
            serializer.validated_data.get('student_id') or actor.user_id,
            actor,
            request=request,
        )
        return Response(self.get_serializer(issue).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        issue = CirculationService.approve(pk, get_actor(request), request=request)
        return Response(self.get_serializer(issue).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        issue = CirculationService.reject(pk, get_actor(request), request=request)
        return Response(self.get_serializer(issue).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        issue = CirculationService.cancel(pk, get_actor(request), request=request)
        return Response(self.get_serializer(issue).data)

    @action(detail=True, methods=['post'], url_path='return')
    def return_book(self, request, pk=None):
        issue = CirculationService.return_book(pk, get_actor(request), request=request)
        return Response(self.get_serializer(issue).data)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        issues = self.filter_queryset(self.get_queryset())
        summary = CirculationService.summarize_issues(issues, as_of=self.get_as_of())
        return Response(IssueSummarySerializer(summary).data)


@api_view(['GET'])
@permission_classes([IsLibraryStaff])
def library_stats(request):
    """
    Circulation desk dashboard figures
    """
    stats = CirculationService.library_stats()
    return Response(LibraryStatsSerializer(stats).data)
