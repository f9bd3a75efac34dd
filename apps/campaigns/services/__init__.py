"""Services for campaigns business logic."""

from .exceptions import (
    CampaignsServiceError,
    CampaignNotFoundError,
    CampaignInactiveError,
    InvalidGridError,
    SquareNotFoundError,
    AlreadyClaimedError,
)
from .square_generation import (
    calculate_square_price,
    validate_grid,
    validate_price_data,
    create_missing_squares,
    publish_campaign,
)
from .reservations import (
    HOLD_TOKEN_PREFIX,
    hold_token_for,
    HoldResult,
    PromoteResult,
    ReleaseResult,
    place_hold,
    promote,
    release,
    find_stale_holds,
    release_stale_holds,
)

__all__ = [
    # Exceptions
    'CampaignsServiceError',
    'CampaignNotFoundError',
    'CampaignInactiveError',
    'InvalidGridError',
    'SquareNotFoundError',
    'AlreadyClaimedError',
    # Square Generation
    'calculate_square_price',
    'validate_grid',
    'validate_price_data',
    'create_missing_squares',
    'publish_campaign',
    # Reservations
    'HOLD_TOKEN_PREFIX',
    'hold_token_for',
    'HoldResult',
    'PromoteResult',
    'ReleaseResult',
    'place_hold',
    'promote',
    'release',
    'find_stale_holds',
    'release_stale_holds',
]
