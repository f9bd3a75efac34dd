"""
Management command to generate squares missing from campaign grids.

Campaigns created before grid generation was part of publishing, or whose
generation was interrupted, can have gaps. Existing squares are never
touched.

Usage:
    python manage.py create_missing_squares
    python manage.py create_missing_squares --campaign <uuid> --apply
"""

from django.core.management.base import BaseCommand, CommandError
from apps.campaigns.models import Campaign
from apps.campaigns.services import (
    CampaignsServiceError,
    create_missing_squares,
)


class Command(BaseCommand):
    help = 'Create squares missing from campaign grids (dry run unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--campaign',
            help='Only check this campaign (UUID)',
        )
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Create the squares instead of only reporting them',
        )

    def handle(self, *args, **options):
        apply = options['apply']

        campaigns = Campaign.objects.all().order_by('created_at')
        if options['campaign']:
            campaigns = campaigns.filter(id=options['campaign'])
            if not campaigns.exists():
                raise CommandError(f"Campaign {options['campaign']} not found")

        total = 0
        for campaign in campaigns:
            try:
                numbers = create_missing_squares(campaign_id=campaign.id, dry_run=not apply)
            except CampaignsServiceError as e:
                self.stdout.write(self.style.ERROR(f'  - {campaign.title}: {e}'))
                continue

            if numbers:
                total += len(numbers)
                preview = ', '.join(str(n) for n in numbers[:10])
                if len(numbers) > 10:
                    preview += ', ...'
                self.stdout.write(
                    f'  - {campaign.title}: {len(numbers)} missing square(s) [{preview}]'
                )

        if total == 0:
            self.stdout.write(self.style.SUCCESS('No missing squares. All grids are complete!'))
            return

        if not apply:
            self.stdout.write(
                self.style.WARNING(f'\nDry run: {total} square(s) would be created. Use --apply.')
            )
            return

        self.stdout.write(self.style.SUCCESS(f'\n✓ Created {total} square(s)'))
