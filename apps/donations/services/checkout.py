"""
Checkout and payment confirmation.

A checkout holds the donor's exact selection under the donation's claimant
token before any money moves. Confirmation arrives when the donor returns
from the provider and hands the donation to the Reconciliation Engine.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple
from urllib.parse import urlencode
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import Q

from apps.campaigns.models import Campaign, Square, PaymentType
from apps.campaigns.services import hold_token_for, place_hold
from ..models import Donation, DonationSquare, DonationStatus
from .exceptions import (
    CampaignNotFoundError,
    CampaignInactiveError,
    SquareNotFoundError,
    DonationNotFoundError,
    InvalidDonationStateError,
    PaymentGatewayError,
)
from .gateway import PaymentGateway, get_payment_gateway
from .linkage import serialize_square_ids
from .reconciliation import ReconciliationResult, reconcile_donation
from .rollback import fail_donation

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    donation: Donation
    approval_url: str = ''
    reconciliation: Optional[ReconciliationResult] = None
    gateway_error: str = ''


@dataclass
class ConfirmationResult:
    donation: Donation
    completed: bool
    reconciliation: Optional[ReconciliationResult] = None
    gateway_error: str = ''


def _squares_for_coordinates(campaign: Campaign, coordinates: Iterable[Tuple[int, int]]):
    wanted = list(dict.fromkeys((int(row), int(col)) for row, col in coordinates))
    if not wanted:
        raise SquareNotFoundError("No squares selected")

    position_filter = Q(pk__in=[])
    for row, col in wanted:
        position_filter |= Q(row=row, col=col)

    found = {
        (square.row, square.col): square
        for square in Square.objects.filter(campaign=campaign).filter(position_filter)
    }
    missing = [position for position in wanted if position not in found]
    if missing:
        raise SquareNotFoundError(
            f"Squares not found at {', '.join(f'{r},{c}' for r, c in missing)}"
        )

    return sorted(found.values(), key=lambda s: s.number)


def _with_query(url: str, **params) -> str:
    separator = '&' if '?' in url else '?'
    return f'{url}{separator}{urlencode(params)}'


def start_checkout(
    *,
    campaign_id: UUID,
    coordinates: Iterable[Tuple[int, int]],
    donor_email: str,
    donor_name: str = '',
    payment_method: str = PaymentType.PAYPAL,
    return_url: str = '',
    cancel_url: str = '',
    gateway: Optional[PaymentGateway] = None,
) -> CheckoutResult:
    """
    Hold the selected squares and open a pending donation for them.

    The selection is all or nothing: if any square was claimed in the
    meantime nothing is created and the donor has to pick again. Cash
    donations are completed at once; PayPal donations get an approval URL.

    Args:
        campaign_id: Campaign to donate to
        coordinates: (row, col) pairs the donor selected
        donor_email: Donor email, becomes the permanent claimant
        donor_name: Name shown on claimed squares
        payment_method: 'paypal' or 'cash'
        return_url: Where the provider sends the donor after paying
        cancel_url: Where the provider sends the donor on cancel
        gateway: Payment gateway (defaults to PAYMENT_GATEWAY_CLASS)

    Returns:
        CheckoutResult

    Raises:
        CampaignNotFoundError: If campaign doesn't exist
        CampaignInactiveError: If campaign is not accepting donations
        SquareNotFoundError: If a coordinate is outside the grid
        AlreadyClaimedError: If a selected square is no longer available
    """
    with transaction.atomic():
        try:
            campaign = Campaign.objects.get(id=campaign_id)
        except Campaign.DoesNotExist:
            raise CampaignNotFoundError(f"Campaign {campaign_id} not found")

        if not campaign.is_active:
            raise CampaignInactiveError(f"Campaign '{campaign.title}' is not active")

        squares = _squares_for_coordinates(campaign, coordinates)
        total = sum((square.value for square in squares), Decimal('0'))
        if total <= 0:
            raise InvalidDonationStateError("Selected squares have no value")

        donation = Donation.objects.create(
            campaign=campaign,
            total=total,
            donor_name=donor_name,
            donor_email=donor_email,
            payment_method=payment_method,
            status=DonationStatus.PENDING,
        )

        square_ids = [square.id for square in squares]
        hold = place_hold(
            campaign_id=campaign.id,
            square_ids=square_ids,
            token=hold_token_for(donation.id),
            donor_name=donor_name,
            payment_type=payment_method,
        )
        # Rolls back the donation and any partial holds
        hold.raise_for_conflicts()

        DonationSquare.objects.bulk_create([
            DonationSquare(donation=donation, square_id=square_id)
            for square_id in square_ids
        ])
        donation.square_ids = serialize_square_ids(square_ids)
        donation.save(update_fields=['square_ids'])

    logger.info(
        "Checkout %s opened for %d square(s), total %s (%s)",
        donation.id, len(squares), total, payment_method,
    )

    if payment_method == PaymentType.CASH:
        reconciliation = reconcile_donation(donation_id=donation.id)
        donation.refresh_from_db()
        return CheckoutResult(donation=donation, reconciliation=reconciliation)

    gateway = gateway or get_payment_gateway()
    try:
        order = gateway.create_order(
            amount=total,
            currency=getattr(settings, 'PAYMENT_CURRENCY', 'USD'),
            campaign_ref=campaign.title,
            square_keys=[f'{square.row},{square.col}' for square in squares],
            return_url=_with_query(return_url, transaction_id=str(donation.id)),
            cancel_url=cancel_url,
            payee=campaign.paypal_email,
        )
    except PaymentGatewayError as e:
        # Holds stay in place so an operator can still mark the donation paid
        logger.error("Payment gateway failed for donation %s: %s", donation.id, e)
        return CheckoutResult(donation=donation, gateway_error=str(e))

    donation.provider_order_id = order.order_id
    donation.save(update_fields=['provider_order_id'])
    return CheckoutResult(donation=donation, approval_url=order.approval_url)


def confirm_payment(
    *,
    donation_id: UUID,
    provider_order_id: str = '',
    gateway: Optional[PaymentGateway] = None,
) -> ConfirmationResult:
    """
    Capture a returning donor's payment and reconcile the donation.

    A capture that is not completed, or a gateway error, fails the donation
    and releases its holds.

    Raises:
        DonationNotFoundError: If donation doesn't exist
        InvalidDonationStateError: If donation is failed or refunded
    """
    try:
        donation = Donation.objects.get(id=donation_id)
    except Donation.DoesNotExist:
        raise DonationNotFoundError(f"Donation {donation_id} not found")

    if donation.status in (DonationStatus.FAILED, DonationStatus.REFUNDED):
        raise InvalidDonationStateError(f"Donation is {donation.status}")

    if donation.status == DonationStatus.COMPLETED:
        # Provider redirect replayed; reconciliation is idempotent
        reconciliation = reconcile_donation(donation_id=donation.id)
        donation.refresh_from_db()
        return ConfirmationResult(donation=donation, completed=True, reconciliation=reconciliation)

    gateway = gateway or get_payment_gateway()
    order_id = provider_order_id or donation.provider_order_id

    try:
        capture = gateway.capture_order(order_id)
    except PaymentGatewayError as e:
        logger.error("Capture failed for donation %s: %s", donation.id, e)
        fail_donation(donation_id=donation.id)
        donation.refresh_from_db()
        return ConfirmationResult(donation=donation, completed=False, gateway_error=str(e))

    if not capture.is_completed:
        logger.warning("Donation %s capture returned %s", donation.id, capture.status)
        fail_donation(donation_id=donation.id)
        donation.refresh_from_db()
        return ConfirmationResult(donation=donation, completed=False)

    if provider_order_id and provider_order_id != donation.provider_order_id:
        donation.provider_order_id = provider_order_id
        donation.save(update_fields=['provider_order_id'])

    reconciliation = reconcile_donation(donation_id=donation.id)
    donation.refresh_from_db()
    return ConfirmationResult(donation=donation, completed=True, reconciliation=reconciliation)
