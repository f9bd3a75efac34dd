from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from decimal import Decimal
import uuid


class PricingType(models.TextChoices):
    FIXED = 'fixed', 'Fixed'
    SEQUENTIAL = 'sequential', 'Sequential'
    MANUAL = 'manual', 'Manual'


class ClaimState(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    HELD = 'held', 'Held'
    COMPLETED = 'completed', 'Completed'


class PaymentType(models.TextChoices):
    PAYPAL = 'paypal', 'PayPal'
    CASH = 'cash', 'Cash'
    STRIPE = 'stripe', 'Stripe'


MAX_GRID_SIDE = 50
MAX_GRID_SQUARES = 1000


class Campaign(models.Model):
    """Fundraiser publishing a fixed grid of purchasable squares."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='campaigns'
    )
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True)
    description = models.TextField(blank=True)

    # Grid
    rows = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(MAX_GRID_SIDE)]
    )
    columns = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(MAX_GRID_SIDE)]
    )

    # Pricing rule, only read when squares are generated
    pricing_type = models.CharField(
        max_length=20,
        choices=PricingType.choices,
        default=PricingType.FIXED
    )
    price_data = models.JSONField(default=dict, blank=True)

    # Payee identity handed to the payment provider
    paypal_email = models.EmailField(blank=True)

    is_active = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'campaigns'
        indexes = [
            models.Index(fields=['owner', 'created_at'], name='campaigns_owner_i_3c1f2a_idx'),
            models.Index(fields=['is_active'], name='campaigns_is_acti_8e2d41_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def total_squares(self):
        return self.rows * self.columns


class Square(models.Model):
    """
    One purchasable cell of a campaign grid.

    Claim state moves only through apps.campaigns.services.reservations,
    which expresses every transition as a conditional UPDATE.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    campaign = models.ForeignKey(
        Campaign,
        on_delete=models.CASCADE,
        related_name='squares'
    )

    # Position (row-major numbering, 1..rows*columns)
    row = models.PositiveSmallIntegerField()
    col = models.PositiveSmallIntegerField()
    number = models.PositiveIntegerField()

    value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # Claim
    claim_state = models.CharField(
        max_length=20,
        choices=ClaimState.choices,
        default=ClaimState.AVAILABLE
    )
    claimed_by = models.CharField(max_length=254, null=True, blank=True)
    donor_name = models.CharField(max_length=200, blank=True)
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'squares'
        constraints = [
            models.UniqueConstraint(fields=['campaign', 'row', 'col'], name='unique_square_position'),
            models.UniqueConstraint(fields=['campaign', 'number'], name='unique_square_number'),
        ]
        indexes = [
            models.Index(fields=['campaign', 'claim_state', 'number'], name='squares_campaig_5b7e90_idx'),
            models.Index(fields=['campaign', 'claimed_by'], name='squares_campaig_a41c6d_idx'),
        ]
        ordering = ['campaign', 'number']

    def __str__(self):
        return f"#{self.number} ({self.row},{self.col}) {self.value} [{self.claim_state}]"

    @property
    def is_available(self):
        return self.claim_state == ClaimState.AVAILABLE
