"""
Repair/Audit tool.

Runs the Reconciliation Engine over historical donations and reports,
per donation, what it resolved. Read-only unless ``dry_run=False``.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from apps.campaigns.services import CampaignsServiceError
from ..models import Donation, DonationStatus
from .exceptions import DonationsServiceError
from .reconciliation import OvershootPolicy, reconcile_donation

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    donation_id: UUID
    expected_total: Decimal
    resolved_square_count: int = 0
    resolved_total: Decimal = Decimal('0')
    tier_used: Optional[str] = None
    matched: bool = False
    warnings: List[str] = field(default_factory=list)
    error: str = ''

    def as_dict(self):
        return {
            'donation_id': str(self.donation_id),
            'expected_total': str(self.expected_total),
            'resolved_square_count': self.resolved_square_count,
            'resolved_total': str(self.resolved_total),
            'tier_used': self.tier_used,
            'matched': self.matched,
            'warnings': self.warnings,
            'error': self.error,
        }


@dataclass
class RepairReport:
    dry_run: bool
    entries: List[AuditEntry] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return sum(1 for entry in self.entries if entry.matched)

    @property
    def mismatched_count(self) -> int:
        return len(self.entries) - self.matched_count

    def as_dict(self):
        return {
            'dry_run': self.dry_run,
            'count': len(self.entries),
            'matched': self.matched_count,
            'mismatched': self.mismatched_count,
            'results': [entry.as_dict() for entry in self.entries],
        }


def select_donations(
    *,
    campaign_id: Optional[UUID] = None,
    payment_method: Optional[str] = None,
    status: Optional[str] = DonationStatus.COMPLETED,
    donation_ids: Optional[Iterable[UUID]] = None,
):
    queryset = Donation.objects.all()
    if campaign_id:
        queryset = queryset.filter(campaign_id=campaign_id)
    if payment_method:
        queryset = queryset.filter(payment_method=payment_method)
    if status:
        queryset = queryset.filter(status=status)
    if donation_ids:
        queryset = queryset.filter(id__in=list(donation_ids))
    return queryset.order_by('timestamp')


def build_repair_report(
    *,
    campaign_id: Optional[UUID] = None,
    payment_method: Optional[str] = None,
    status: Optional[str] = DonationStatus.COMPLETED,
    donation_ids: Optional[Iterable[UUID]] = None,
    dry_run: bool = True,
    policy: Optional[OvershootPolicy] = None,
) -> RepairReport:
    """
    Reconcile a batch of donations and report the outcome of each.

    Each donation is reconciled in its own transaction; an error on one is
    recorded on its entry and the batch continues.

    Args:
        campaign_id: Restrict to one campaign
        payment_method: Restrict to one payment method
        status: Restrict to one status (default completed, None for all)
        donation_ids: Restrict to these donations
        dry_run: Report only, write nothing (default)
        policy: Overshoot policy (defaults to settings)

    Returns:
        RepairReport
    """
    policy = policy or OvershootPolicy.from_settings()
    report = RepairReport(dry_run=dry_run)

    donations = select_donations(
        campaign_id=campaign_id,
        payment_method=payment_method,
        status=status,
        donation_ids=donation_ids,
    )

    for donation in donations:
        entry = AuditEntry(donation_id=donation.id, expected_total=donation.total)
        try:
            result = reconcile_donation(donation_id=donation.id, dry_run=dry_run, policy=policy)
        except (DonationsServiceError, CampaignsServiceError) as e:
            logger.warning("Audit of donation %s failed: %s", donation.id, e)
            entry.error = str(e)
        else:
            entry.resolved_square_count = len(result.squares)
            entry.resolved_total = result.resolved_total
            entry.tier_used = result.tier
            entry.matched = result.matched
            entry.warnings = result.warnings
        report.entries.append(entry)

    logger.info(
        "Repair report (%s): %d donation(s), %d mismatched",
        'dry run' if dry_run else 'applied', len(report.entries), report.mismatched_count,
    )
    return report
