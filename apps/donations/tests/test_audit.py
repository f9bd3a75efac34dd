"""
Tests for the repair/audit report and the repair_donations command.
"""

import json
import pytest
from decimal import Decimal
from io import StringIO
from django.core.management import call_command

from apps.campaigns.models import Square, ClaimState, PaymentType
from apps.donations.models import DonationStatus, ReconciliationTier
from apps.donations.services import build_repair_report


@pytest.fixture
def history(campaign, squares, make_donation, hold_for):
    """An unlinked PayPal donation and a linked cash donation."""
    unlinked = make_donation('10.00')
    cash = make_donation('5.00', payment_method=PaymentType.CASH, donor_email='bob@example.com')
    hold_for(cash, [squares[10]], link=True)
    return {'unlinked': unlinked, 'cash': cash}


@pytest.mark.django_db
class TestBuildRepairReport:

    def test_dry_run_reports_without_writing(self, history, squares):
        report = build_repair_report()

        assert report.dry_run is True
        assert len(report.entries) == 2
        entries = {entry.donation_id: entry for entry in report.entries}

        unlinked = entries[history['unlinked'].id]
        assert unlinked.tier_used == ReconciliationTier.AMOUNT_MATCHING
        assert unlinked.resolved_square_count == 2
        assert unlinked.resolved_total == Decimal('10.00')
        assert unlinked.matched

        assert entries[history['cash'].id].tier_used == ReconciliationTier.EXPLICIT_LINKAGE
        assert history['unlinked'].links.count() == 0
        assert Square.objects.get(id=squares[1].id).claim_state == ClaimState.AVAILABLE
        assert Square.objects.get(id=squares[10].id).claim_state == ClaimState.HELD

    def test_apply_then_report_uses_linkage(self, history):
        build_repair_report(dry_run=False)

        report = build_repair_report()

        assert {entry.tier_used for entry in report.entries} == {ReconciliationTier.EXPLICIT_LINKAGE}
        assert report.matched_count == 2
        assert history['unlinked'].links.count() == 2

    def test_filter_by_payment_method(self, history):
        report = build_repair_report(payment_method=PaymentType.CASH)

        assert [entry.donation_id for entry in report.entries] == [history['cash'].id]

    def test_insufficient_inventory_is_mismatch(self, make_donation):
        make_donation('500.00')

        report = build_repair_report()

        entry = report.entries[0]
        assert not entry.matched
        assert entry.resolved_square_count == 0
        assert entry.warnings[0].startswith('Insufficient inventory')
        assert report.mismatched_count == 1

    def test_errors_recorded_per_entry(self, make_donation):
        make_donation('5.00', status=DonationStatus.FAILED)

        report = build_repair_report(status=DonationStatus.FAILED)

        assert len(report.entries) == 1
        assert 'failed' in report.entries[0].error

    def test_as_dict(self, history):
        data = build_repair_report().as_dict()

        assert set(data) == {'dry_run', 'count', 'matched', 'mismatched', 'results'}
        assert data['count'] == 2
        assert data['results'][0]['expected_total'] in ('10.00', '5.00')


@pytest.mark.django_db
class TestRepairDonationsCommand:

    def test_no_donations(self, campaign):
        out = StringIO()
        call_command('repair_donations', stdout=out)

        assert 'No donations matched the filters.' in out.getvalue()

    def test_dry_run_output(self, history):
        out = StringIO()
        call_command('repair_donations', stdout=out)

        output = out.getvalue()
        assert 'Checked 2 donation(s)' in output
        assert 'Dry run' in output
        assert history['unlinked'].links.count() == 0

    def test_mismatch_is_flagged(self, make_donation):
        make_donation('500.00')
        out = StringIO()

        call_command('repair_donations', stdout=out)

        output = out.getvalue()
        assert '| MISMATCH' in output
        assert 'Insufficient inventory' in output

    def test_apply(self, history):
        out = StringIO()
        call_command('repair_donations', '--apply', stdout=out)

        assert '✓ Repairs applied.' in out.getvalue()
        assert history['unlinked'].links.count() == 2

    def test_json_output(self, history):
        out = StringIO()
        call_command('repair_donations', '--json', '--payment-method', 'cash', stdout=out)

        data = json.loads(out.getvalue())
        assert data['dry_run'] is True
        assert data['count'] == 1
        assert data['results'][0]['donation_id'] == str(history['cash'].id)

    def test_single_donation(self, history):
        out = StringIO()
        call_command(
            'repair_donations', '--json',
            '--donation', str(history['unlinked'].id),
            stdout=out,
        )

        data = json.loads(out.getvalue())
        assert data['count'] == 1
        assert data['results'][0]['tier_used'] == ReconciliationTier.AMOUNT_MATCHING
