# management/commands/load_library_dummy.py
import random

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from faker import Faker

from apps.core.permissions.roles import Actor, Role
from apps.library.exceptions import LibraryError
from apps.library.models import Book, BookIssue
from apps.library.services import CatalogService, CirculationService

fake = Faker()

SUBJECTS = [
    'Mathematics', 'Physics', 'Chemistry', 'Biology', 'History',
    'Geography', 'English', 'Computer Science', 'Economics', 'Fiction',
]


class Command(BaseCommand):
    help = 'Populates the library catalog with dummy books and circulation history'

    def add_arguments(self, parser):
        parser.add_argument(
            '--books',
            type=int,
            default=30,
            help='Number of books to create',
        )
        parser.add_argument(
            '--students',
            type=int,
            default=10,
            help='Number of student ids to spread borrow requests over',
        )
        parser.add_argument(
            '--requests',
            type=int,
            default=20,
            help='Number of borrow requests to create',
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing books and issues before populating',
        )
        parser.add_argument(
            '--seed',
            type=int,
            help='Random seed for repeatable data',
        )

    def handle(self, *args, **options):
        if options['books'] < 1:
            raise CommandError("--books must be at least 1")

        if options['seed'] is not None:
            random.seed(options['seed'])
            Faker.seed(options['seed'])

        self.stdout.write(self.style.HTTP_INFO("Starting to populate library data..."))
        librarian = Actor(user_id='system', role=Role.LIBRARIAN)

        with transaction.atomic():
            if options['clear']:
                self.clear_data()

            books = self.create_books(options['books'], librarian)
            self.create_circulation(books, options['students'], options['requests'], librarian)

        self.stdout.write(self.style.SUCCESS("Successfully populated library data!"))

    def clear_data(self):
        issues, _ = BookIssue.objects.all().delete()
        books, _ = Book.objects.all().delete()
        self.stdout.write(self.style.WARNING(f"Cleared {books} books and {issues} issues"))

    def create_books(self, count, actor):
        books = []
        for _ in range(count):
            is_digital = random.random() < 0.1
            fields = {
                'title': fake.sentence(nb_words=random.randint(2, 5)).rstrip('.'),
                'author': fake.name(),
                'subject': random.choice(SUBJECTS),
                'isbn': fake.isbn13(separator=''),
                'description': fake.paragraph(nb_sentences=2),
                'total_copies': random.randint(1, 5),
                'is_digital': is_digital,
            }
            if is_digital:
                fields['digital_url'] = fake.url()
            books.append(CatalogService.create_book(fields, actor))

        self.stdout.write(f"  Created {len(books)} books")
        return books

    def create_circulation(self, books, students, requests, actor):
        physical = [book for book in books if not book.is_digital]
        if not physical or students < 1:
            return

        student_ids = [f"STU{n:04d}" for n in range(1, students + 1)]
        counts = {'requested': 0, 'issued': 0, 'returned': 0}

        for _ in range(requests):
            book = random.choice(physical)
            try:
                issue = CirculationService.request(book.pk, random.choice(student_ids), actor)
                counts['requested'] += 1

                if random.random() < 0.7:
                    CirculationService.approve(issue.pk, actor)
                    counts['issued'] += 1

                    if random.random() < 0.5:
                        CirculationService.return_book(issue.pk, actor)
                        counts['returned'] += 1
            except LibraryError as e:
                # Duplicate requests and empty shelves are expected with random picks
                self.stdout.write(f"  Skipped {book.title}: {e}")

        self.stdout.write(
            f"  Requests: {counts['requested']}, issued: {counts['issued']}, "
            f"returned: {counts['returned']}"
        )
