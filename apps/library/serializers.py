# apps/library/serializers.py
from rest_framework import serializers
from django.utils.translation import gettext_lazy as _

from .models import Book, BookIssue


class BookSerializer(serializers.ModelSerializer):
    """Serializer for catalog entries"""
    issued_copies = serializers.IntegerField(read_only=True)

    class Meta:
        model = Book
        fields = [
            'id', 'title', 'author', 'subject', 'isbn', 'description',
            'total_copies', 'available_copies', 'issued_copies',
            'is_digital', 'digital_url', 'created_at', 'updated_at'
        ]
        read_only_fields = ['available_copies', 'created_at', 'updated_at']

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError(_('Title is required'))
        return value

    def validate_author(self, value):
        if not value.strip():
            raise serializers.ValidationError(_('Author is required'))
        return value


class BookIssueSerializer(serializers.ModelSerializer):
    """
    Serializer for issue records. ``display_status`` is evaluated for the
    ``as_of`` date passed in the context. ``current_fine`` is the charged
    fine once returned; for open issues it stays null unless the context
    asks for ``project_fines``.
    """
    book_id = serializers.UUIDField(read_only=True)
    display_status = serializers.SerializerMethodField()
    current_fine = serializers.SerializerMethodField()

    class Meta:
        model = BookIssue
        fields = [
            'id', 'book_id', 'book_title', 'book_author', 'student_id',
            'requested_at', 'issued_date', 'due_date', 'return_date',
            'status', 'display_status', 'fine_amount', 'current_fine',
            'issued_by', 'received_by', 'closed_by'
        ]
        read_only_fields = fields

    def get_display_status(self, obj):
        return obj.display_status(self.context.get('as_of'))

    def get_current_fine(self, obj):
        if obj.is_open and not self.context.get('project_fines'):
            return None
        return str(obj.current_fine(self.context.get('as_of')))


class IssueRequestSerializer(serializers.Serializer):
    """Input for a borrow request"""
    book = serializers.UUIDField()
    student_id = serializers.CharField(max_length=100, required=False)


class IssueSummarySerializer(serializers.Serializer):
    issued = serializers.IntegerField()
    overdue = serializers.IntegerField()
    requested = serializers.IntegerField()
    total_fine = serializers.DecimalField(max_digits=10, decimal_places=2)


class LibraryStatsSerializer(serializers.Serializer):
    total_books = serializers.IntegerField()
    total_copies = serializers.IntegerField()
    available_copies = serializers.IntegerField()
    issued = serializers.IntegerField()
    overdue = serializers.IntegerField()
    pending_requests = serializers.IntegerField()
    total_fines = serializers.DecimalField(max_digits=12, decimal_places=2)
