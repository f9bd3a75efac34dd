"""
Management command to audit and repair donation/square linkage.

Runs the Reconciliation Engine over historical donations and prints one
line per donation. Nothing is written unless --apply is given, since the
amount-matching fallback places new claims.

Usage:
    python manage.py repair_donations --payment-method paypal
    python manage.py repair_donations --campaign <uuid> --apply
    python manage.py repair_donations --donation <uuid> --donation <uuid> --json
"""

import json

from django.core.management.base import BaseCommand
from apps.campaigns.models import PaymentType
from apps.donations.models import DonationStatus
from apps.donations.services import build_repair_report


class Command(BaseCommand):
    help = 'Reconcile donations with their squares and report mismatches (dry run unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument('--campaign', help='Only this campaign (UUID)')
        parser.add_argument(
            '--payment-method',
            choices=PaymentType.values,
            help='Only donations paid with this method',
        )
        parser.add_argument(
            '--status',
            choices=DonationStatus.values,
            default=DonationStatus.COMPLETED,
            help='Only donations in this status (default: completed)',
        )
        parser.add_argument(
            '--donation',
            action='append',
            dest='donations',
            help='Only this donation (UUID), may be repeated',
        )
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Write the repairs instead of only reporting them',
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print the report as JSON',
        )

    def handle(self, *args, **options):
        apply = options['apply']

        report = build_repair_report(
            campaign_id=options['campaign'],
            payment_method=options['payment_method'],
            status=options['status'],
            donation_ids=options['donations'],
            dry_run=not apply,
        )

        if options['json']:
            self.stdout.write(json.dumps(report.as_dict(), indent=2))
            return

        if not report.entries:
            self.stdout.write(self.style.SUCCESS('No donations matched the filters.'))
            return

        self.stdout.write(f'\nChecked {len(report.entries)} donation(s):\n')
        for entry in report.entries:
            line = (
                f'  - {entry.donation_id} | expected {entry.expected_total} | '
                f'resolved {entry.resolved_total} ({entry.resolved_square_count} squares) | '
                f'tier {entry.tier_used or "-"}'
            )
            if entry.error:
                self.stdout.write(self.style.ERROR(f'{line} | error: {entry.error}'))
            elif entry.matched:
                self.stdout.write(line)
            else:
                self.stdout.write(self.style.WARNING(f'{line} | MISMATCH'))
            for warning in entry.warnings:
                self.stdout.write(f'      {warning}')

        summary = f'\n{report.matched_count} matched, {report.mismatched_count} mismatched'
        if not apply:
            self.stdout.write(self.style.WARNING(f'{summary}. Dry run: no changes made, use --apply.'))
            return

        self.stdout.write(self.style.SUCCESS(f'{summary}. ✓ Repairs applied.'))
