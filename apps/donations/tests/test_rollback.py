"""
Service layer tests for rollback and failure handling.

Tests cover:
- Rollback completeness
- Other donations left untouched
- Idempotence after partial rollbacks
- Donor email fallback
- Failing pending donations
"""

import pytest
from uuid import uuid4

from apps.campaigns.models import Square, ClaimState, PaymentType
from apps.campaigns.services import hold_token_for, release
from apps.donations.models import Donation, DonationSquare, DonationStatus, ReconciliationTier
from apps.donations.services import reconcile_donation, rollback_donation, fail_donation
from apps.donations.services.exceptions import DonationNotFoundError, InvalidDonationStateError
from apps.donations.services.rollback import EMAIL_FALLBACK


def _snapshot():
    return dict(Square.objects.values_list('id', 'claim_state'))


@pytest.mark.django_db
class TestRollbackDonation:

    def test_releases_exactly_own_squares(self, campaign, squares, make_donation, hold_for):
        mine = make_donation('10.00')
        hold_for(mine, [squares[1], squares[2]], link=True)
        reconcile_donation(donation_id=mine.id)

        theirs = make_donation('10.00', donor_email='bob@example.com')
        hold_for(theirs, [squares[3], squares[4]], link=True)
        reconcile_donation(donation_id=theirs.id)
        before = _snapshot()

        result = rollback_donation(donation_id=mine.id)

        assert result.lookup == ReconciliationTier.EXPLICIT_LINKAGE
        assert set(result.released) == {squares[1].id, squares[2].id}
        after = _snapshot()
        assert after[squares[1].id] == ClaimState.AVAILABLE
        assert after[squares[2].id] == ClaimState.AVAILABLE
        for square_id, state in before.items():
            if square_id not in (squares[1].id, squares[2].id):
                assert after[square_id] == state
        assert not Donation.objects.filter(id=mine.id).exists()
        assert Donation.objects.filter(id=theirs.id).exists()

    def test_pending_checkout_released_by_token(self, campaign, squares, make_donation, hold_for):
        donation = make_donation('5.00', status=DonationStatus.PENDING)
        hold_for(donation, [squares[6]])

        result = rollback_donation(donation_id=donation.id)

        assert result.lookup == ReconciliationTier.CLAIMANT_TOKEN
        assert result.released == [squares[6].id]

    def test_already_released_squares(self, campaign, squares, make_donation, hold_for):
        """A second attempt after a partial rollback releases nothing more."""
        donation = make_donation('10.00')
        hold_for(donation, [squares[1], squares[2]], link=True)
        reconcile_donation(donation_id=donation.id)
        release(square_ids=[squares[1].id, squares[2].id], claimants=['ada@example.com'])

        result = rollback_donation(donation_id=donation.id)

        assert result.released == []
        assert set(result.already_available) == {squares[1].id, squares[2].id}
        assert not Donation.objects.filter(id=donation.id).exists()

    def test_square_reclaimed_by_someone_else_is_kept(
        self, campaign, squares, make_donation, hold_for, claim_for
    ):
        donation = make_donation('5.00')
        hold_for(donation, [squares[1]], link=True)
        reconcile_donation(donation_id=donation.id)
        release(square_ids=[squares[1].id])
        claim_for(campaign, [squares[1]], 'bob@example.com')

        result = rollback_donation(donation_id=donation.id)

        assert result.conflicts == [squares[1].id]
        square = Square.objects.get(id=squares[1].id)
        assert (square.claim_state, square.claimed_by) == (ClaimState.COMPLETED, 'bob@example.com')

    def test_donor_email_fallback(self, campaign, squares, make_donation, claim_for):
        claim_for(campaign, [squares[2], squares[3]], 'ada@example.com', payment_type=PaymentType.CASH)
        donation = make_donation('25.00')

        result = rollback_donation(donation_id=donation.id)

        assert result.lookup == EMAIL_FALLBACK
        assert set(result.released) == {squares[2].id, squares[3].id}

    def test_email_fallback_skips_other_donations(
        self, campaign, squares, make_donation, hold_for
    ):
        earlier = make_donation('5.00')
        hold_for(earlier, [squares[1]], link=True)
        reconcile_donation(donation_id=earlier.id)
        orphan = make_donation('25.00')

        result = rollback_donation(donation_id=orphan.id)

        assert result.lookup is None
        assert result.released == []
        assert Square.objects.get(id=squares[1].id).claim_state == ClaimState.COMPLETED

    def test_never_uses_amount_matching(self, campaign, make_donation):
        donation = make_donation('15.00')
        before = _snapshot()

        result = rollback_donation(donation_id=donation.id)

        assert result.lookup is None
        assert _snapshot() == before

    def test_unknown_donation(self, db):
        with pytest.raises(DonationNotFoundError):
            rollback_donation(donation_id=uuid4())


@pytest.mark.django_db
class TestFailDonation:

    def test_marks_failed_and_releases_holds(self, campaign, squares, make_donation, hold_for):
        donation = make_donation('10.00', status=DonationStatus.PENDING,
                                 square_ids=[str(squares[1].id), str(squares[2].id)])
        hold_for(donation, [squares[1], squares[2]], link=True)

        result = fail_donation(donation_id=donation.id)

        assert set(result.released) == {squares[1].id, squares[2].id}
        donation.refresh_from_db()
        assert donation.status == DonationStatus.FAILED
        assert donation.links.count() == 0
        assert donation.square_ids == [str(squares[1].id), str(squares[2].id)]
        assert not Square.objects.filter(claimed_by=hold_token_for(donation.id)).exists()

    def test_completed_donation_cannot_fail(self, make_donation):
        donation = make_donation('5.00', status=DonationStatus.COMPLETED)

        with pytest.raises(InvalidDonationStateError):
            fail_donation(donation_id=donation.id)
