"""
Reconciliation Engine.

Given a donation, find the squares it paid for and make them permanent
claims of the donor. Lookup is an ordered fallback; the first tier that
yields an amount-consistent set wins:

    1. explicit linkage   join rows, else the legacy ``square_ids`` field
    2. claimant token     squares held under ``temp_<donationId>``
    3. donor identity     squares claimed by the donor email, exact total
    4. amount matching    greedy over available squares, by number

Every successful run rewrites the linkage, so the next run stops at tier 1
with the same set.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.campaigns.models import Square, ClaimState
from apps.campaigns.services import hold_token_for, place_hold, promote
from ..models import Donation, DonationSquare, DonationStatus, ReconciliationTier
from .exceptions import (
    DonationNotFoundError,
    InvalidDonationStateError,
    InsufficientInventoryError,
    ConflictDuringReconciliationError,
)
from .linkage import normalize_square_ids, resolve_linkage, serialize_square_ids

logger = logging.getLogger(__name__)

NON_RECONCILABLE_STATUSES = (DonationStatus.FAILED, DonationStatus.REFUNDED)


def _sum_values(squares) -> Decimal:
    return sum((square.value for square in squares), Decimal('0'))


@dataclass
class OvershootPolicy:
    """
    When a resolved square set counts as paying for a donation total.

    The set must reach the total. Any overshoot must be strictly below the
    value of the most valuable square in the set, and at most
    ``max_overshoot`` when one is configured.
    """

    max_overshoot: Optional[Decimal] = None

    @classmethod
    def from_settings(cls):
        value = getattr(settings, 'RECONCILIATION_MAX_OVERSHOOT', None)
        if value in (None, ''):
            return cls()
        return cls(max_overshoot=Decimal(str(value)))

    def overshoot(self, total: Decimal, squares) -> Decimal:
        return _sum_values(squares) - Decimal(total)

    def allows(self, total: Decimal, squares) -> bool:
        if not squares:
            return False

        overshoot = self.overshoot(total, squares)
        if overshoot < 0:
            return False
        if overshoot == 0:
            return True
        if overshoot >= max(square.value for square in squares):
            return False
        if self.max_overshoot is not None and overshoot > self.max_overshoot:
            return False
        return True


@dataclass
class ReconciliationPlan:
    tier: Optional[str] = None
    squares: List[Square] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    """What a reconciliation run resolved (or, in dry-run, would resolve)."""

    donation_id: UUID
    expected_total: Decimal
    tier: Optional[str] = None
    squares: List[Square] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    conflicts: List[UUID] = field(default_factory=list)
    dry_run: bool = False

    @property
    def square_ids(self) -> List[UUID]:
        return [square.id for square in self.squares]

    @property
    def resolved_total(self) -> Decimal:
        return _sum_values(self.squares)

    @property
    def matched(self) -> bool:
        return bool(self.squares) and self.resolved_total == self.expected_total


# =============================================================================
# Lookup tiers
# =============================================================================

def find_linked_squares(donation: Donation, warnings: Optional[List[str]] = None) -> List[Square]:
    """Tier 1: join rows, falling back to the legacy ``square_ids`` field."""
    linked = list(
        Square.objects.filter(
            donation_links__donation=donation,
            campaign_id=donation.campaign_id,
        ).order_by('number')
    )
    if linked:
        return linked

    linkage = normalize_square_ids(donation.square_ids)
    if linkage.malformed:
        logger.warning(
            "Donation %s has malformed square_ids, treating as absent: %s",
            donation.id, linkage.error,
        )
        if warnings is not None:
            warnings.append(f"Malformed square linkage ignored: {linkage.error}")
        return []

    return resolve_linkage(campaign_id=donation.campaign_id, linkage=linkage)


def find_token_squares(donation: Donation) -> List[Square]:
    """Tier 2: squares still held under the donation's claimant token."""
    return list(
        Square.objects.filter(
            campaign_id=donation.campaign_id,
            claim_state=ClaimState.HELD,
            claimed_by=hold_token_for(donation.id),
        ).order_by('number')
    )


def find_donor_squares(donation: Donation) -> List[Square]:
    """
    Squares held or completed by the donor email with the same payment
    method, excluding squares another donation already links to.
    """
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
            payment_type=donation.payment_method,
        ).exclude(id__in=other_links).order_by('number')
    )


def select_by_amount(donation: Donation):
    """
    Tier 4: greedily take available squares in number order until the
    running total reaches the donation total.

    Returns:
        tuple: (squares, running_total)
    """
    selected = []
    running = Decimal('0')
    candidates = Square.objects.filter(
        campaign_id=donation.campaign_id,
        claim_state=ClaimState.AVAILABLE,
        value__gt=0,
    ).order_by('number')

    for square in candidates:
        if running >= donation.total:
            break
        selected.append(square)
        running += square.value

    return selected, running


def plan_reconciliation(donation: Donation, policy: OvershootPolicy) -> ReconciliationPlan:
    """Decide which squares a donation covers. Performs no writes."""
    plan = ReconciliationPlan()
    total = donation.total

    linked = find_linked_squares(donation, plan.warnings)
    if policy.allows(total, linked):
        plan.tier, plan.squares = ReconciliationTier.EXPLICIT_LINKAGE, linked
        return plan

    held = find_token_squares(donation)
    if policy.allows(total, held):
        plan.tier, plan.squares = ReconciliationTier.CLAIMANT_TOKEN, held
        return plan

    donor_squares = find_donor_squares(donation)
    if donor_squares and _sum_values(donor_squares) == total:
        plan.tier, plan.squares = ReconciliationTier.DONOR_IDENTITY, donor_squares
        return plan

    # Linked squares exist but do not add up: keep them, never go greedy
    if linked or held:
        plan.tier = ReconciliationTier.EXPLICIT_LINKAGE if linked else ReconciliationTier.CLAIMANT_TOKEN
        plan.squares = linked or held
        plan.warnings.append(
            f"Amount mismatch: linked squares total {_sum_values(plan.squares)}, "
            f"donation total {total}"
        )
        return plan

    plan.tier = ReconciliationTier.AMOUNT_MATCHING
    candidates, running = select_by_amount(donation)
    if running < total:
        raise InsufficientInventoryError(
            f"Available squares total {running}, donation needs {total}",
            required=total,
            available=running,
        )
    if not policy.allows(total, candidates):
        raise InsufficientInventoryError(
            f"No acceptable square set: overshoot {running - total} exceeds policy",
            required=total,
            available=running,
        )

    if running > total:
        plan.warnings.append(
            f"Approximate reconciliation: squares total {running}, donation total {total}"
        )
    plan.squares = candidates
    return plan


# =============================================================================
# Engine
# =============================================================================

def _claimant_for(donation: Donation) -> str:
    return donation.donor_email or hold_token_for(donation.id)


def _apply_plan(donation: Donation, plan: ReconciliationPlan, result: ReconciliationResult) -> None:
    token = hold_token_for(donation.id)
    claimant = _claimant_for(donation)
    square_ids = [square.id for square in plan.squares]

    if plan.tier == ReconciliationTier.AMOUNT_MATCHING:
        hold = place_hold(
            campaign_id=donation.campaign_id,
            square_ids=square_ids,
            token=token,
            donor_name=donation.donor_name,
            payment_type=donation.payment_method,
        )
        if not hold.is_complete:
            raise ConflictDuringReconciliationError(
                f"{len(hold.conflicts) + len(hold.missing)} square(s) were claimed "
                f"while reconciling donation {donation.id}",
                square_ids=hold.conflicts + hold.missing,
            )
    else:
        # Linked squares released by an earlier partial rollback are held again
        released = [square.id for square in plan.squares if square.claim_state == ClaimState.AVAILABLE]
        if released:
            place_hold(
                campaign_id=donation.campaign_id,
                square_ids=released,
                token=token,
                donor_name=donation.donor_name,
                payment_type=donation.payment_method,
            )

    outcome = promote(
        square_ids=square_ids,
        donor_email=claimant,
        donor_name=donation.donor_name,
        payment_type=donation.payment_method,
        expected_claimants=[token, claimant],
    )

    result.conflicts = outcome.conflicts + outcome.missing
    if result.conflicts:
        logger.warning(
            "Donation %s: %d linked square(s) belong to someone else",
            donation.id, len(result.conflicts),
        )
        result.warnings.append(
            f"{len(result.conflicts)} square(s) could not be claimed: "
            + ', '.join(str(square_id) for square_id in result.conflicts)
        )

    claimed = set(outcome.claimed)
    result.squares = list(Square.objects.filter(id__in=claimed).order_by('number'))
    _write_linkage(donation, result)


def _write_linkage(donation: Donation, result: ReconciliationResult) -> None:
    claimed_ids = result.square_ids

    DonationSquare.objects.filter(donation=donation).exclude(square_id__in=claimed_ids).delete()
    existing = set(
        DonationSquare.objects.filter(donation=donation).values_list('square_id', flat=True)
    )
    DonationSquare.objects.bulk_create([
        DonationSquare(donation=donation, square_id=square_id)
        for square_id in claimed_ids
        if square_id not in existing
    ])

    donation.square_ids = serialize_square_ids(claimed_ids)
    donation.status = DonationStatus.COMPLETED
    donation.reconciled_tier = result.tier or ''
    donation.reconciliation_warning = '\n'.join(result.warnings)
    donation.updated_at = timezone.now()
    donation.save(update_fields=[
        'square_ids', 'status', 'reconciled_tier', 'reconciliation_warning', 'updated_at'
    ])


def reconcile_donation(
    *,
    donation_id: UUID,
    dry_run: bool = False,
    policy: Optional[OvershootPolicy] = None,
) -> ReconciliationResult:
    """
    Resolve and claim the squares a donation paid for.

    Safe to call repeatedly: a reconciled donation is linked, so later runs
    stop at explicit linkage and promote nothing new. When available
    inventory cannot cover the total the donation is still completed, with
    no squares and an operator warning, because the money was received.

    Args:
        donation_id: Donation to reconcile
        dry_run: Compute the result without writing anything
        policy: Overshoot policy (defaults to settings)

    Returns:
        ReconciliationResult

    Raises:
        DonationNotFoundError: If donation doesn't exist
        InvalidDonationStateError: If donation is failed or refunded
        ConflictDuringReconciliationError: If amount matching lost a square
            to a concurrent claim (nothing is written)
    """
    policy = policy or OvershootPolicy.from_settings()

    with transaction.atomic():
        try:
            donation = Donation.objects.select_for_update().get(id=donation_id)
        except Donation.DoesNotExist:
            raise DonationNotFoundError(f"Donation {donation_id} not found")

        if donation.status in NON_RECONCILABLE_STATUSES:
            raise InvalidDonationStateError(
                f"Cannot reconcile a {donation.status} donation"
            )

        result = ReconciliationResult(
            donation_id=donation.id,
            expected_total=donation.total,
            dry_run=dry_run,
        )

        try:
            plan = plan_reconciliation(donation, policy)
        except InsufficientInventoryError as e:
            logger.warning("Donation %s: insufficient inventory: %s", donation.id, e)
            plan = ReconciliationPlan(
                tier=ReconciliationTier.AMOUNT_MATCHING,
                warnings=[f"Insufficient inventory: {e}"],
            )

        result.tier = plan.tier
        result.warnings = list(plan.warnings)
        result.squares = list(plan.squares)

        if dry_run:
            return result

        if plan.squares:
            _apply_plan(donation, plan, result)
        else:
            _write_linkage(donation, result)

    if result.resolved_total > result.expected_total:
        logger.warning(
            "Donation %s reconciled approximately: %s for a total of %s",
            donation.id, result.resolved_total, result.expected_total,
        )
    logger.info(
        "Donation %s reconciled via %s: %d square(s)",
        donation.id, result.tier, len(result.squares),
    )
    return result
