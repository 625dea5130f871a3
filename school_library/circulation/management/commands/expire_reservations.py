from django.core.management.base import BaseCommand

from circulation.services import expire_reservations


class Command(BaseCommand):
    help = 'Expire pending reservations whose expiry day has fully elapsed. Run from cron.'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report the reservations without changing them.')

    def handle(self, *args, **options):
        reservations = expire_reservations(dry_run=options['dry_run'])
        verb = 'Would expire' if options['dry_run'] else 'Expired'
        self.stdout.write(self.style.SUCCESS(f'{verb} {len(reservations)} reservation(s).'))
