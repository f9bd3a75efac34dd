"""Services for donations business logic."""

from .exceptions import (
    DonationsServiceError,
    DonationNotFoundError,
    InvalidDonationStateError,
    MalformedLinkageError,
    InsufficientInventoryError,
    ConflictDuringReconciliationError,
    PaymentGatewayError,
)
from .linkage import (
    Linkage,
    parse_square_ids,
    normalize_square_ids,
    serialize_square_ids,
    resolve_linkage,
)
from .gateway import (
    ProviderOrder,
    CaptureResult,
    PaymentGateway,
    PayPalLinkGateway,
    get_payment_gateway,
)
from .reconciliation import (
    OvershootPolicy,
    ReconciliationResult,
    plan_reconciliation,
    reconcile_donation,
)
from .rollback import (
    RollbackResult,
    resolve_current_squares,
    rollback_donation,
    fail_donation,
)
from .checkout import (
    CheckoutResult,
    ConfirmationResult,
    start_checkout,
    confirm_payment,
)
from .audit import (
    AuditEntry,
    RepairReport,
    build_repair_report,
)

__all__ = [
    # Exceptions
    'DonationsServiceError',
    'DonationNotFoundError',
    'InvalidDonationStateError',
    'MalformedLinkageError',
    'InsufficientInventoryError',
    'ConflictDuringReconciliationError',
    'PaymentGatewayError',
    # Linkage
    'Linkage',
    'parse_square_ids',
    'normalize_square_ids',
    'serialize_square_ids',
    'resolve_linkage',
    # Gateway
    'ProviderOrder',
    'CaptureResult',
    'PaymentGateway',
    'PayPalLinkGateway',
    'get_payment_gateway',
    # Reconciliation
    'OvershootPolicy',
    'ReconciliationResult',
    'plan_reconciliation',
    'reconcile_donation',
    # Rollback
    'RollbackResult',
    'resolve_current_squares',
    'rollback_donation',
    'fail_donation',
    # Checkout
    'CheckoutResult',
    'ConfirmationResult',
    'start_checkout',
    'confirm_payment',
    # Audit
    'AuditEntry',
    'RepairReport',
    'build_repair_report',
]
