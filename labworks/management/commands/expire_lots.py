"""
Mark lots past their expiry date as EXPIRED.

Usage:
    python manage.py expire_lots
    python manage.py expire_lots --date 2026-03-01
"""

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from labworks.ledger import expire_lots


class Command(BaseCommand):
    help = "Mark AVAILABLE lots past their expiry date as EXPIRED"

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            dest="on",
            help="Reference date (YYYY-MM-DD), defaults to today",
        )

    def handle(self, *args, **options):
        on = None
        if options["on"]:
            try:
                on = date.fromisoformat(options["on"])
            except ValueError:
                raise CommandError(f"Invalid date: {options['on']}")

        expired = expire_lots(today=on)
        for lot in expired:
            self.stdout.write(f"  {lot.material.code} / {lot.lot_number} (expired {lot.expiry_date})")
        self.stdout.write(self.style.SUCCESS(f"{len(expired)} lot(s) marked EXPIRED"))
