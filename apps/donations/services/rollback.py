"""Rollback and failure handling for donations."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.campaigns.models import Square, ClaimState
from apps.campaigns.services import hold_token_for, release
from ..models import Donation, DonationSquare, DonationStatus, ReconciliationTier
from .exceptions import DonationNotFoundError, InvalidDonationStateError
from .reconciliation import find_linked_squares, find_token_squares, find_donor_squares

logger = logging.getLogger(__name__)

EMAIL_FALLBACK = 'donor_email_fallback'


@dataclass
class RollbackResult:
    donation_id: UUID
    lookup: Optional[str] = None
    released: List[UUID] = field(default_factory=list)
    already_available: List[UUID] = field(default_factory=list)
    conflicts: List[UUID] = field(default_factory=list)


def _lock_donation(donation_id) -> Donation:
    try:
        return Donation.objects.select_for_update().get(id=donation_id)
    except Donation.DoesNotExist:
        raise DonationNotFoundError(f"Donation {donation_id} not found")


def _donor_squares_exact(donation: Donation) -> List[Square]:
    squares = find_donor_squares(donation)
    if sum(square.value for square in squares) == donation.total:
        return squares
    return []


def _email_fallback_squares(donation: Donation) -> List[Square]:
    if not donation.donor_email:
        return []

    other_links = DonationSquare.objects.exclude(
        donation_id=donation.id
    ).values('square_id')

    return list(
        Square.objects.filter(
            campaign_id=donation.campaign_id,
            claim_state__in=[ClaimState.HELD, ClaimState.COMPLETED],
            claimed_by__iexact=donation.donor_email,
        ).exclude(id__in=other_links).order_by('number')
    )


def resolve_current_squares(donation: Donation):
    """
    Squares a donation currently accounts for, using reconciliation tiers
    1 to 3 and never amount matching.

    Returns:
        tuple: (lookup name or None, squares)
    """
    lookups = (
        (ReconciliationTier.EXPLICIT_LINKAGE, find_linked_squares),
        (ReconciliationTier.CLAIMANT_TOKEN, find_token_squares),
        (ReconciliationTier.DONOR_IDENTITY, _donor_squares_exact),
    )
    for name, lookup in lookups:
        squares = lookup(donation)
        if squares:
            return name, squares

    squares = _email_fallback_squares(donation)
    if squares:
        logger.warning(
            "Donation %s: no linkage found, releasing %d square(s) claimed by donor email",
            donation.id, len(squares),
        )
        return EMAIL_FALLBACK, squares

    return None, []


@transaction.atomic
def rollback_donation(*, donation_id: UUID) -> RollbackResult:
    """
    Release the squares a donation holds, then delete the donation.

    Only squares claimed by the donation's token or donor email are
    released; squares that are already available are skipped, so a rollback
    after an earlier partial attempt succeeds without side effects.

    Raises:
        DonationNotFoundError: If donation doesn't exist
    """
    donation = _lock_donation(donation_id)
    lookup, squares = resolve_current_squares(donation)

    outcome = release(
        square_ids=[square.id for square in squares],
        claimants=[hold_token_for(donation.id), donation.donor_email],
    )
    if outcome.conflicts:
        logger.warning(
            "Rollback of donation %s left %d square(s) owned by other claimants",
            donation_id, len(outcome.conflicts),
        )

    result = RollbackResult(
        donation_id=donation.id,
        lookup=lookup,
        released=outcome.released,
        already_available=outcome.already_available,
        conflicts=outcome.conflicts,
    )

    donation.delete()
    logger.info(
        "Rolled back donation %s via %s: released %d square(s)",
        donation_id, lookup, len(result.released),
    )
    return result


@transaction.atomic
def fail_donation(*, donation_id: UUID) -> RollbackResult:
    """
    Mark a donation failed and release the squares still held for it.

    The donation row and its legacy ``square_ids`` stay as a record; only
    the join rows are dropped.

    Raises:
        DonationNotFoundError: If donation doesn't exist
        InvalidDonationStateError: If donation is already completed
    """
    donation = _lock_donation(donation_id)
    if donation.status == DonationStatus.COMPLETED:
        raise InvalidDonationStateError("A completed donation cannot be failed")

    token = hold_token_for(donation.id)
    outcome = release(
        square_ids=[square.id for square in find_token_squares(donation)],
        claimants=[token],
    )

    DonationSquare.objects.filter(donation=donation).delete()
    donation.status = DonationStatus.FAILED
    donation.updated_at = timezone.now()
    donation.save(update_fields=['status', 'updated_at'])

    logger.info("Donation %s failed, released %d hold(s)", donation_id, len(outcome.released))
    return RollbackResult(
        donation_id=donation.id,
        lookup=ReconciliationTier.CLAIMANT_TOKEN,
        released=outcome.released,
        already_available=outcome.already_available,
        conflicts=outcome.conflicts,
    )
