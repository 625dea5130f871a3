from django.core.management.base import BaseCommand

from circulation.services import sweep_overdue


class Command(BaseCommand):
    help = 'Mark borrowed and renewed loans whose due date has passed as overdue. Run from cron.'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report the loans without changing them.')

    def handle(self, *args, **options):
        records = sweep_overdue(dry_run=options['dry_run'])
        verb = 'Would mark' if options['dry_run'] else 'Marked'
        self.stdout.write(self.style.SUCCESS(f'{verb} {len(records)} borrow record(s) overdue.'))
