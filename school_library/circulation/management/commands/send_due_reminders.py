from django.core.management.base import BaseCommand

from circulation.services import send_due_reminders


class Command(BaseCommand):
    help = 'Email readers whose loans are due within the next few days.'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=None, help='Look-ahead window (defaults to DUE_SOON_DAYS).')
        parser.add_argument('--dry-run', action='store_true', help='List the loans without sending mail.')

    def handle(self, *args, **options):
        records = send_due_reminders(days=options['days'], dry_run=options['dry_run'])
        verb = 'Would remind' if options['dry_run'] else 'Reminded'
        self.stdout.write(self.style.SUCCESS(f'{verb} {len(records)} reader loan(s).'))
