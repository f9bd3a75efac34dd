"""
Reservation Manager.

Every claim transition on a Square is a single conditional UPDATE whose
WHERE clause carries the expected prior state. The database row lock is
the only mutual exclusion: zero matched rows means another actor won, and
that is reported, never retried against a different square.

Transitions:
    available -> held        place_hold()
    held      -> completed   promote()
    held/completed -> available   release()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from django.db.models import Q
from django.utils import timezone

from ..models import Square, ClaimState
from .exceptions import AlreadyClaimedError, SquareNotFoundError

logger = logging.getLogger(__name__)

HOLD_TOKEN_PREFIX = 'temp_'


def hold_token_for(donation_id) -> str:
    """Claimant token used while a donation is in flight."""
    return f'{HOLD_TOKEN_PREFIX}{donation_id}'


def _unique(square_ids: Iterable) -> List:
    return list(dict.fromkeys(square_ids))


def _claimed_by_any(claimants: Iterable[str]) -> Q:
    """Case-insensitive match on any non-empty claimant; matches nothing when empty."""
    claimant_filter = Q(pk__in=[])
    for claimant in claimants:
        if claimant:
            claimant_filter |= Q(claimed_by__iexact=claimant)
    return claimant_filter


@dataclass
class HoldResult:
    """Outcome of place_hold() per requested square."""

    requested: List[UUID] = field(default_factory=list)
    held: List[UUID] = field(default_factory=list)
    conflicts: List[UUID] = field(default_factory=list)
    missing: List[UUID] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return len(self.held) == len(self.requested)

    def raise_for_conflicts(self) -> None:
        """
        Raises:
            AlreadyClaimedError: If any square was claimed by someone else
            SquareNotFoundError: If any square doesn't exist
        """
        if self.conflicts:
            raise AlreadyClaimedError(
                f"{len(self.conflicts)} square(s) already claimed",
                square_ids=self.conflicts,
            )
        if self.missing:
            raise SquareNotFoundError(
                f"{len(self.missing)} square(s) not found",
                square_ids=self.missing,
            )


@dataclass
class PromoteResult:
    """Outcome of promote() per requested square."""

    promoted: List[UUID] = field(default_factory=list)
    already_completed: List[UUID] = field(default_factory=list)
    conflicts: List[UUID] = field(default_factory=list)
    missing: List[UUID] = field(default_factory=list)

    @property
    def claimed(self) -> List[UUID]:
        """Squares now permanently claimed by the donor."""
        return self.promoted + self.already_completed

    @property
    def is_complete(self) -> bool:
        return not self.conflicts and not self.missing


@dataclass
class ReleaseResult:
    """Outcome of release() per requested square."""

    released: List[UUID] = field(default_factory=list)
    already_available: List[UUID] = field(default_factory=list)
    conflicts: List[UUID] = field(default_factory=list)
    missing: List[UUID] = field(default_factory=list)


def place_hold(
    *,
    campaign_id: UUID,
    square_ids: Sequence[UUID],
    token: str,
    donor_name: str = '',
    payment_type: str = '',
) -> HoldResult:
    """
    Place a temporary hold on each requested square.

    Each square is updated only if it is still ``available``. The result
    lists which squares were actually held; a caller acting for a donor
    must treat an incomplete result as a selection conflict.

    Args:
        campaign_id: Campaign the squares must belong to
        square_ids: Squares to hold
        token: Claimant token of the in-flight donation
        donor_name: Display name shown on the grid
        payment_type: Payment method tag

    Returns:
        HoldResult
    """
    result = HoldResult(requested=_unique(square_ids))
    now = timezone.now()

    for square_id in result.requested:
        updated = Square.objects.filter(
            id=square_id,
            campaign_id=campaign_id,
            claim_state=ClaimState.AVAILABLE,
        ).update(
            claim_state=ClaimState.HELD,
            claimed_by=token,
            donor_name=donor_name,
            payment_type=payment_type,
            claimed_at=now,
            updated_at=now,
        )

        if updated:
            result.held.append(square_id)
        elif Square.objects.filter(id=square_id, campaign_id=campaign_id).exists():
            result.conflicts.append(square_id)
        else:
            result.missing.append(square_id)

    if result.conflicts:
        logger.warning(
            "Hold for %s lost %d square(s) to another claimant",
            token, len(result.conflicts),
        )

    return result


def promote(
    *,
    square_ids: Sequence[UUID],
    donor_email: str,
    donor_name: str = '',
    payment_type: Optional[str] = None,
    expected_claimants: Optional[Sequence[str]] = None,
) -> PromoteResult:
    """
    Turn holds into permanent claims owned by ``donor_email``.

    A square is promoted only while it is ``held`` by one of
    ``expected_claimants`` (defaults to the donor email), compared without
    regard to case. Squares already
    ``completed`` by the same donor are reported as no-ops, so promoting
    twice is safe.

    Returns:
        PromoteResult
    """
    result = PromoteResult()
    claimant_filter = _claimed_by_any(expected_claimants or [donor_email])
    now = timezone.now()

    values = {
        'claim_state': ClaimState.COMPLETED,
        'claimed_by': donor_email,
        'donor_name': donor_name,
        'claimed_at': now,
        'updated_at': now,
    }
    if payment_type:
        values['payment_type'] = payment_type

    for square_id in _unique(square_ids):
        updated = Square.objects.filter(
            id=square_id,
            claim_state=ClaimState.HELD,
        ).filter(claimant_filter).update(**values)

        if updated:
            result.promoted.append(square_id)
            continue

        current = Square.objects.filter(id=square_id).values('claim_state', 'claimed_by').first()
        if current is None:
            result.missing.append(square_id)
        elif (
            current['claim_state'] == ClaimState.COMPLETED
            and (current['claimed_by'] or '').lower() == donor_email.lower()
        ):
            result.already_completed.append(square_id)
        else:
            result.conflicts.append(square_id)

    return result


def release(
    *,
    square_ids: Sequence[UUID],
    claimants: Optional[Sequence[str]] = None,
) -> ReleaseResult:
    """
    Return squares to ``available``.

    When ``claimants`` is given only squares claimed by one of them are
    released; squares claimed by anybody else are reported as conflicts
    and left untouched. Releasing an already available square is a no-op.

    Returns:
        ReleaseResult
    """
    result = ReleaseResult()
    now = timezone.now()

    claimant_filter = _claimed_by_any(claimants or [])

    for square_id in _unique(square_ids):
        queryset = Square.objects.filter(
            id=square_id,
            claim_state__in=[ClaimState.HELD, ClaimState.COMPLETED],
        )
        if claimants is not None:
            queryset = queryset.filter(claimant_filter)

        updated = queryset.update(
            claim_state=ClaimState.AVAILABLE,
            claimed_by=None,
            donor_name='',
            payment_type='',
            claimed_at=None,
            updated_at=now,
        )

        if updated:
            result.released.append(square_id)
            continue

        current = Square.objects.filter(id=square_id).values('claim_state').first()
        if current is None:
            result.missing.append(square_id)
        elif current['claim_state'] == ClaimState.AVAILABLE:
            result.already_available.append(square_id)
        else:
            result.conflicts.append(square_id)

    return result


def find_stale_holds(*, older_than: datetime, campaign_id: Optional[UUID] = None):
    """
    Held squares whose hold predates ``older_than`` and that no completed
    donation links to.
    """
    from apps.donations.models import DonationSquare, DonationStatus

    completed_links = DonationSquare.objects.filter(
        donation__status=DonationStatus.COMPLETED
    ).values('square_id')

    queryset = Square.objects.filter(
        claim_state=ClaimState.HELD,
        claimed_at__lt=older_than,
    ).exclude(id__in=completed_links)

    if campaign_id:
        queryset = queryset.filter(campaign_id=campaign_id)

    return queryset.order_by('campaign_id', 'number')


def release_stale_holds(
    *,
    older_than: datetime,
    campaign_id: Optional[UUID] = None,
    dry_run: bool = True,
) -> List[Square]:
    """
    Release abandoned checkout holds.

    Each release is conditional on the square still being held by the same
    claimant, so a hold refreshed or promoted meanwhile is left alone.

    Returns:
        Squares that were (or, in dry-run, would be) released
    """
    stale = list(find_stale_holds(older_than=older_than, campaign_id=campaign_id))
    if dry_run:
        return stale

    released = []
    for square in stale:
        outcome = release(square_ids=[square.id], claimants=[square.claimed_by])
        if outcome.released:
            released.append(square)

    logger.info("Released %d stale hold(s)", len(released))
    return released
