from django.core.exceptions import PermissionDenied, ValidationError

from apps.core.models import AuditLog
from apps.library.constants import IssueStatus
from apps.library.exceptions import InvariantViolation, NotFoundError
from apps.library.models import Book, BookIssue
from apps.library.services import CatalogService, CirculationService

from .base import LibraryTestCase


class CreateBookTests(LibraryTestCase):

    def test_all_copies_start_on_the_shelf(self):
        book = self.create_book(total_copies=4, isbn=' 978-0-13 ')
        self.assertEqual(book.total_copies, 4)
        self.assertEqual(book.available_copies, 4)
        self.assertEqual(book.isbn, '978-0-13')
        self.assertEqual(book.created_by, self.librarian.user_id)

    def test_creation_is_audited(self):
        book = self.create_book()
        entry = AuditLog.objects.get(action=AuditLog.AuditAction.CREATE, resource_id=str(book.pk))
        self.assertEqual(entry.user_id, self.librarian.user_id)
        self.assertEqual(entry.resource_type, 'Book')

    def test_only_library_staff_can_add_books(self):
        for actor in (self.student, self.counselor):
            with self.assertRaises(PermissionDenied):
                CatalogService.create_book({'title': 'Optics', 'author': 'Hecht'}, actor)
        CatalogService.create_book({'title': 'Optics', 'author': 'Hecht'}, self.admin)

    def test_title_and_author_are_required(self):
        with self.assertRaises(ValidationError):
            CatalogService.create_book({'title': '', 'author': 'Hecht'}, self.librarian)
        with self.assertRaises(ValidationError):
            CatalogService.create_book({'title': 'Optics'}, self.librarian)

    def test_total_copies_must_be_positive(self):
        with self.assertRaises(ValidationError):
            CatalogService.create_book({'title': 'Optics', 'author': 'Hecht', 'total_copies': 0},
                                       self.librarian)
        with self.assertRaises(ValidationError):
            CatalogService.create_book({'title': 'Optics', 'author': 'Hecht', 'total_copies': 'many'},
                                       self.librarian)
        self.assertFalse(Book.objects.exists())

    def test_available_copies_cannot_be_set(self):
        with self.assertRaises(ValidationError):
            CatalogService.create_book(
                {'title': 'Optics', 'author': 'Hecht', 'available_copies': 3}, self.librarian
            )

    def test_unknown_fields_are_rejected(self):
        with self.assertRaises(ValidationError):
            CatalogService.create_book({'title': 'Optics', 'author': 'Hecht', 'shelf': 'B2'},
                                       self.librarian)


class UpdateBookTests(LibraryTestCase):

    def test_total_change_recomputes_available(self):
        book = self.create_book(total_copies=3)
        self.issue_book(book)

        book = CatalogService.update_book(book.pk, {'total_copies': 5}, self.librarian)
        self.assertEqual(book.available_copies, 4)
        self.assertAvailability(book, 4)

        book = CatalogService.update_book(book.pk, {'total_copies': 1}, self.librarian)
        self.assertAvailability(book, 0)

    def test_total_below_copies_on_loan_is_refused(self):
        book = self.create_book(total_copies=2)
        self.issue_book(book, self.student)
        self.issue_book(book, self.other_student)

        with self.assertRaises(ValidationError):
            CatalogService.update_book(book.pk, {'total_copies': 1}, self.librarian)
        self.assertEqual(Book.objects.get(pk=book.pk).total_copies, 2)

    def test_descriptive_fields(self):
        book = self.create_book()
        book = CatalogService.update_book(
            book.pk, {'title': 'Concepts of Physics Vol 2', 'subject': 'Science'}, self.librarian
        )
        self.assertEqual(book.title, 'Concepts of Physics Vol 2')
        self.assertEqual(book.author, 'H. C. Verma')
        self.assertEqual(book.updated_by, self.librarian.user_id)

    def test_blank_title_is_refused(self):
        book = self.create_book()
        with self.assertRaises(ValidationError):
            CatalogService.update_book(book.pk, {'title': '  '}, self.librarian)

    def test_cannot_go_digital_while_copies_are_out(self):
        book = self.create_book()
        self.issue_book(book)
        with self.assertRaises(ValidationError):
            CatalogService.update_book(book.pk, {'is_digital': True}, self.librarian)

    def test_cannot_go_digital_with_pending_requests(self):
        book = self.create_book()
        issue = self.request_book(book)
        with self.assertRaises(ValidationError) as ctx:
            CatalogService.update_book(
                book.pk, {'is_digital': True, 'digital_url': 'https://example.com/physics.pdf'},
                self.librarian,
            )
        self.assertIn('is_digital', ctx.exception.message_dict)
        self.assertFalse(Book.objects.get(pk=book.pk).is_digital)

        CirculationService.cancel(issue.pk, self.student)
        book = CatalogService.update_book(
            book.pk, {'is_digital': True, 'digital_url': 'https://example.com/physics.pdf'},
            self.librarian,
        )
        self.assertTrue(book.is_digital)

    def test_digital_book_with_closed_history_stays_editable(self):
        book = self.create_book()
        issue = self.issue_book(book)
        CirculationService.return_book(issue.pk, self.librarian, today=self.today)
        CatalogService.update_book(
            book.pk, {'is_digital': True, 'digital_url': 'https://example.com/physics.pdf'},
            self.librarian,
        )

        book = CatalogService.update_book(book.pk, {'title': 'Concepts of Physics (ebook)'}, self.librarian)
        self.assertEqual(book.title, 'Concepts of Physics (ebook)')

    def test_available_copies_cannot_be_edited(self):
        book = self.create_book(total_copies=2)
        with self.assertRaises(ValidationError):
            CatalogService.update_book(book.pk, {'available_copies': 0}, self.librarian)

    def test_students_cannot_edit(self):
        book = self.create_book()
        with self.assertRaises(PermissionDenied):
            CatalogService.update_book(book.pk, {'title': 'X'}, self.student)

    def test_unknown_book(self):
        with self.assertRaises(NotFoundError):
            CatalogService.update_book('00000000-0000-0000-0000-000000000000', {'title': 'X'},
                                       self.librarian)


class DeleteBookTests(LibraryTestCase):

    def test_history_survives_deletion(self):
        book = self.create_book()
        issue = self.issue_book(book)
        CirculationService.return_book(issue.pk, self.librarian, today=self.today)

        CatalogService.delete_book(book.pk, self.librarian)

        self.assertFalse(Book.objects.filter(pk=book.pk).exists())
        issue.refresh_from_db()
        self.assertIsNone(issue.book_id)
        self.assertEqual(issue.book_title, 'Concepts of Physics')
        self.assertEqual(issue.book_author, 'H. C. Verma')
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.AuditAction.DELETE,
                                                resource_id=str(book.pk)).exists())

    def test_deleting_with_open_issues_keeps_them(self):
        book = self.create_book()
        self.request_book(book)
        CatalogService.delete_book(book.pk, self.librarian)
        self.assertEqual(BookIssue.objects.filter(status=IssueStatus.REQUESTED).count(), 1)

    def test_unknown_book(self):
        with self.assertRaises(NotFoundError):
            CatalogService.delete_book('not-a-uuid', self.librarian)

    def test_students_cannot_delete(self):
        book = self.create_book()
        with self.assertRaises(PermissionDenied):
            CatalogService.delete_book(book.pk, self.student)


class ListBooksTests(LibraryTestCase):

    def setUp(self):
        super().setUp()
        self.create_book(title='Wings of Fire', author='A. P. J. Abdul Kalam', subject='Biography')
        self.create_book(title='Brief History of Time', author='Stephen Hawking', subject='Physics')
        self.create_book(title='Digital Fortress', author='Dan Brown', subject='Fiction',
                         is_digital=True, digital_url='https://example.com/fortress.pdf')

    def test_ordered_by_title(self):
        titles = [book.title for book in CatalogService.list_books()]
        self.assertEqual(titles, ['Brief History of Time', 'Digital Fortress', 'Wings of Fire'])

    def test_title_order_is_case_sensitive(self):
        self.create_book(title='algebra', author='Artin', subject='Mathematics')
        self.create_book(title='Zoology', author='Kotpal', subject='Biology')

        titles = [book.title for book in CatalogService.list_books()]
        self.assertEqual(titles, [
            'Brief History of Time', 'Digital Fortress', 'Wings of Fire', 'Zoology', 'algebra',
        ])

    def test_search_and_subject(self):
        self.assertEqual([b.title for b in CatalogService.list_books(search='hawking')],
                         ['Brief History of Time'])
        self.assertEqual([b.title for b in CatalogService.list_books(subject='Biography')],
                         ['Wings of Fire'])
        self.assertEqual(CatalogService.list_books(search='hawking', subject='Biography'), [])

    def test_subjects_and_digital_books(self):
        self.assertEqual(CatalogService.list_subjects(), ['Biography', 'Fiction', 'Physics'])
        self.assertEqual([b.title for b in CatalogService.list_digital_books()], ['Digital Fortress'])

    def test_list_is_a_snapshot(self):
        books = CatalogService.list_books()
        self.create_book(title='Another Book')
        self.assertEqual(len(books), 3)


class AdjustAvailabilityTests(LibraryTestCase):

    def test_decrement_and_increment(self):
        book = self.create_book(total_copies=2)
        self.assertEqual(CatalogService.adjust_availability(book.pk, -1), 1)
        self.assertEqual(CatalogService.adjust_availability(book.pk, -1), 0)
        self.assertEqual(CatalogService.adjust_availability(book.pk, 1), 1)

    def test_cannot_go_below_zero(self):
        book = self.create_book(total_copies=1)
        CatalogService.adjust_availability(book.pk, -1)
        with self.assertRaises(InvariantViolation):
            CatalogService.adjust_availability(book.pk, -1)
        self.assertEqual(Book.objects.get(pk=book.pk).available_copies, 0)

    def test_cannot_exceed_total(self):
        book = self.create_book(total_copies=2)
        with self.assertRaises(InvariantViolation):
            CatalogService.adjust_availability(book.pk, 1)
        self.assertEqual(Book.objects.get(pk=book.pk).available_copies, 2)

    def test_only_unit_steps(self):
        book = self.create_book(total_copies=3)
        for delta in (0, 2, -2):
            with self.assertRaises(ValueError):
                CatalogService.adjust_availability(book.pk, delta)

    def test_unknown_book(self):
        with self.assertRaises(NotFoundError):
            CatalogService.adjust_availability('00000000-0000-0000-0000-000000000000', -1)


class InventoryTests(LibraryTestCase):

    def test_report_and_reconcile(self):
        book = self.create_book(total_copies=3)
        self.issue_book(book)
        self.assertEqual(CatalogService.inventory_report(), [])

        Book.objects.filter(pk=book.pk).update(available_copies=3)
        report = CatalogService.inventory_report()
        self.assertEqual(len(report), 1)
        self.assertEqual(report[0]['expected_available'], 2)
        self.assertEqual(report[0]['on_loan'], 1)

        self.assertEqual(CatalogService.reconcile(book.pk), (3, 2))
        self.assertAvailability(book, 2)
        self.assertEqual(CatalogService.inventory_report(), [])
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.AuditAction.RECONCILE).exists())

    def test_reconcile_consistent_book_is_a_no_op(self):
        book = self.create_book(total_copies=2)
        self.assertEqual(CatalogService.reconcile(book.pk), (2, 2))
        self.assertFalse(AuditLog.objects.filter(action=AuditLog.AuditAction.RECONCILE).exists())
