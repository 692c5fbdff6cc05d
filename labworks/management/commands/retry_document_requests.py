"""
Retry Annex XIII document requests that failed or were never dispatched.

Usage:
    python manage.py retry_document_requests
    python manage.py retry_document_requests --max-attempts 10
"""

from django.core.management.base import BaseCommand

from labworks.documents import retry_failed_document_requests


class Command(BaseCommand):
    help = "Dispatch FAILED or PENDING compliance document requests again"

    def add_arguments(self, parser):
        parser.add_argument(
            "--max-attempts",
            type=int,
            default=None,
            help="Skip requests that already failed this many times",
        )

    def handle(self, *args, **options):
        sent, failed = retry_failed_document_requests(options["max_attempts"])
        style = self.style.SUCCESS if not failed else self.style.WARNING
        self.stdout.write(style(f"{sent} sent, {failed} still failing"))
