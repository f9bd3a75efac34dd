"""
Management command to release squares held by abandoned checkouts.

Holds have no automatic expiry; a donor who never returns from the payment
provider keeps the squares held until an operator runs this command.

Usage:
    python manage.py release_stale_holds
    python manage.py release_stale_holds --older-than-hours 48 --apply
"""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone
from apps.campaigns.services import release_stale_holds


class Command(BaseCommand):
    help = 'Release held squares whose checkout was abandoned (dry run unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--older-than-hours',
            type=int,
            default=getattr(settings, 'HOLD_EXPIRY_HOURS', 24),
            help='Only release holds older than this many hours',
        )
        parser.add_argument(
            '--campaign',
            help='Only release holds in this campaign (UUID)',
        )
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Release the holds instead of only listing them',
        )

    def handle(self, *args, **options):
        apply = options['apply']
        cutoff = timezone.now() - timedelta(hours=options['older_than_hours'])

        squares = release_stale_holds(
            older_than=cutoff,
            campaign_id=options['campaign'],
            dry_run=not apply,
        )

        if not squares:
            self.stdout.write(self.style.SUCCESS('No stale holds found.'))
            return

        for square in squares:
            self.stdout.write(
                f'  - #{square.number} ({square.row},{square.col}) | '
                f'{square.value} | held by {square.claimed_by} since {square.claimed_at:%Y-%m-%d %H:%M}'
            )

        if not apply:
            self.stdout.write(
                self.style.WARNING(f'\nDry run: {len(squares)} hold(s) would be released. Use --apply.')
            )
            return

        self.stdout.write(self.style.SUCCESS(f'\n✓ Released {len(squares)} stale hold(s)'))
