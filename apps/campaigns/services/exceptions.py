"""Domain-specific exceptions for campaigns services."""


class CampaignsServiceError(Exception):
    """Base exception for campaigns services."""
    pass


class CampaignNotFoundError(CampaignsServiceError):
    """Raised when campaign does not exist."""
    pass


class CampaignInactiveError(CampaignsServiceError):
    """Raised when a checkout targets a campaign that is not published."""
    pass


class InvalidGridError(CampaignsServiceError):
    """Raised when grid dimensions or pricing data are invalid."""
    pass


class SquareNotFoundError(CampaignsServiceError):
    """Raised when one or more requested squares do not exist."""

    def __init__(self, message, square_ids=None):
        super().__init__(message)
        self.square_ids = list(square_ids or [])


class AlreadyClaimedError(CampaignsServiceError):
    """
    Raised when a conditional claim update matched zero rows because
    another actor holds the square.

    Never retry against a different square.
    """

    def __init__(self, message, square_ids=None):
        super().__init__(message)
        self.square_ids = list(square_ids or [])
