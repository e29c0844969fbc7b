from django.contrib import admin

from apps.core.permissions.roles import Actor

from .models import Book, BookIssue
from .services import CatalogService
from .services.catalog_service import EDITABLE_BOOK_FIELDS


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = ('title', 'author', 'subject', 'isbn', 'total_copies', 'available_copies', 'is_digital')
    list_filter = ('subject', 'is_digital')
    search_fields = ('title', 'author', 'isbn', 'subject')
    readonly_fields = ('available_copies', 'created_at', 'updated_at', 'created_by', 'updated_by')

    def save_model(self, request, obj, form, change):
        # Writes go through the catalog service so availability stays consistent
        actor = Actor.from_user(request.user)
        if change:
            fields = {name: form.cleaned_data[name] for name in form.changed_data
                      if name in EDITABLE_BOOK_FIELDS}
            book = CatalogService.update_book(obj.pk, fields, actor, request=request)
        else:
            fields = {name: form.cleaned_data[name] for name in EDITABLE_BOOK_FIELDS
                      if name in form.cleaned_data}
            book = CatalogService.create_book(fields, actor, request=request)
            obj.pk = book.pk
        obj.available_copies = book.available_copies

    def delete_model(self, request, obj):
        CatalogService.delete_book(obj.pk, Actor.from_user(request.user), request=request)

    def delete_queryset(self, request, queryset):
        actor = Actor.from_user(request.user)
        for book_id in queryset.values_list('pk', flat=True):
            CatalogService.delete_book(book_id, actor, request=request)


@admin.register(BookIssue)
class BookIssueAdmin(admin.ModelAdmin):
    list_display = ('book_title', 'student_id', 'status', 'requested_at', 'issued_date', 'due_date',
                    'return_date', 'fine_amount')
    list_filter = ('status', 'issued_date', 'due_date')
    search_fields = ('book_title', 'book_author', 'student_id')
    date_hierarchy = 'requested_at'

    # Transitions only happen through the circulation API
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
