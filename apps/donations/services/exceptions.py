"""Domain-specific exceptions for donations services."""

from apps.campaigns.services.exceptions import (  # noqa: F401
    AlreadyClaimedError,
    CampaignNotFoundError,
    CampaignInactiveError,
    SquareNotFoundError,
)


class DonationsServiceError(Exception):
    """Base exception for donations services."""
    pass


class DonationNotFoundError(DonationsServiceError):
    """Raised when donation does not exist."""
    pass


class InvalidDonationStateError(DonationsServiceError):
    """Raised when a donation's status does not allow the operation."""
    pass


class MalformedLinkageError(DonationsServiceError):
    """
    Raised when the stored square_ids cannot be parsed under any tolerated
    encoding. Reconciliation treats it as absent linkage.
    """
    pass


class InsufficientInventoryError(DonationsServiceError):
    """Raised when available squares cannot cover a donation total."""

    def __init__(self, message, required=None, available=None):
        super().__init__(message)
        self.required = required
        self.available = available


class ConflictDuringReconciliationError(DonationsServiceError):
    """Raised when a concurrent claim invalidated a reconciliation attempt."""

    def __init__(self, message, square_ids=None):
        super().__init__(message)
        self.square_ids = list(square_ids or [])


class PaymentGatewayError(DonationsServiceError):
    """Raised when the payment provider call fails."""
    pass
