"""Square generation from a campaign's grid and pricing rule."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List
from uuid import UUID

from django.db import transaction

from ..models import Campaign, Square, PricingType, MAX_GRID_SIDE, MAX_GRID_SQUARES
from .exceptions import CampaignNotFoundError, InvalidGridError

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal('0.00')


def calculate_square_price(
    row: int,
    col: int,
    number: int,
    pricing_type: str,
    price_data: Dict[str, Any]
) -> Decimal:
    """
    Price of a single square under the campaign's pricing rule.

    fixed: every square costs ``price_data['fixed']``.
    sequential: ``start + (number - 1) * increment``.
    manual: ``price_data['manual']['row,col']``.

    Unknown pricing types and missing keys price the square at 0.
    """
    price_data = price_data or {}

    if pricing_type == PricingType.FIXED:
        return _to_decimal(price_data.get('fixed', 0))

    if pricing_type == PricingType.SEQUENTIAL:
        sequential = price_data.get('sequential') or {}
        if not sequential:
            return Decimal('0.00')
        start = _to_decimal(sequential.get('start', 0))
        increment = _to_decimal(sequential.get('increment', 0))
        return start + (number - 1) * increment

    if pricing_type == PricingType.MANUAL:
        manual = price_data.get('manual') or {}
        return _to_decimal(manual.get(f'{row},{col}', 0))

    return Decimal('0.00')


def validate_grid(rows: int, columns: int) -> None:
    """
    Raises:
        InvalidGridError: If the grid is empty or exceeds size limits
    """
    if rows < 1 or columns < 1:
        raise InvalidGridError("Grid must have at least one row and one column")
    if rows > MAX_GRID_SIDE or columns > MAX_GRID_SIDE:
        raise InvalidGridError(f"Grid sides are limited to {MAX_GRID_SIDE}")
    if rows * columns > MAX_GRID_SQUARES:
        raise InvalidGridError(f"Grid is limited to {MAX_GRID_SQUARES} squares")


def validate_price_data(pricing_type: str, price_data: Dict[str, Any]) -> None:
    """
    Raises:
        InvalidGridError: If price data does not fit the pricing type
    """
    price_data = price_data or {}

    if pricing_type == PricingType.FIXED:
        if _to_decimal(price_data.get('fixed', 0)) <= 0:
            raise InvalidGridError("Fixed pricing requires a positive 'fixed' price")
        return

    if pricing_type == PricingType.SEQUENTIAL:
        sequential = price_data.get('sequential') or {}
        if _to_decimal(sequential.get('start', 0)) <= 0:
            raise InvalidGridError("Sequential pricing requires a positive 'start'")
        if _to_decimal(sequential.get('increment', -1)) < 0:
            raise InvalidGridError("Sequential pricing requires a non-negative 'increment'")
        return

    if pricing_type == PricingType.MANUAL:
        manual = price_data.get('manual') or {}
        if not manual or any(_to_decimal(v) <= 0 for v in manual.values()):
            raise InvalidGridError("Manual pricing requires a positive price per square")
        return

    raise InvalidGridError(f"Unknown pricing type '{pricing_type}'")


def _get_campaign(campaign_id: UUID, lock: bool = False) -> Campaign:
    queryset = Campaign.objects.all()
    if lock:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=campaign_id)
    except Campaign.DoesNotExist:
        raise CampaignNotFoundError(f"Campaign {campaign_id} not found")


@transaction.atomic
def create_missing_squares(*, campaign_id: UUID, dry_run: bool = False) -> List[int]:
    """
    Generate every square missing from the campaign grid.

    Existing squares are never touched, so running this twice creates
    nothing the second time.

    Args:
        campaign_id: Campaign UUID
        dry_run: If True, only report which numbers would be created

    Returns:
        Sorted list of square numbers created (or that would be created)

    Raises:
        CampaignNotFoundError: If campaign doesn't exist
        InvalidGridError: If the campaign grid is invalid
    """
    campaign = _get_campaign(campaign_id, lock=True)
    validate_grid(campaign.rows, campaign.columns)

    existing = set(
        Square.objects.filter(campaign=campaign).values_list('number', flat=True)
    )

    to_create = []
    number = 0
    for row in range(campaign.rows):
        for col in range(campaign.columns):
            number += 1
            if number in existing:
                continue
            to_create.append(Square(
                campaign=campaign,
                row=row,
                col=col,
                number=number,
                value=calculate_square_price(
                    row, col, number, campaign.pricing_type, campaign.price_data
                ),
            ))

    created_numbers = [square.number for square in to_create]

    if to_create and not dry_run:
        Square.objects.bulk_create(to_create)
        logger.info(
            "Created %d squares for campaign %s", len(to_create), campaign.id
        )

    return created_numbers


@transaction.atomic
def publish_campaign(*, campaign_id: UUID) -> Campaign:
    """
    Generate the campaign grid and mark the campaign active.

    Raises:
        CampaignNotFoundError: If campaign doesn't exist
        InvalidGridError: If grid or pricing data are invalid
    """
    campaign = _get_campaign(campaign_id, lock=True)
    validate_grid(campaign.rows, campaign.columns)
    validate_price_data(campaign.pricing_type, campaign.price_data)

    create_missing_squares(campaign_id=campaign.id)

    if not campaign.is_active:
        campaign.is_active = True
        campaign.save(update_fields=['is_active', 'updated_at'])

    return campaign
