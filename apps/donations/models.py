from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal
import uuid

from apps.campaigns.models import Campaign, Square, PaymentType


class DonationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    REFUNDED = 'refunded', 'Refunded'


class ReconciliationTier(models.TextChoices):
    EXPLICIT_LINKAGE = 'explicit_linkage', 'Explicit linkage'
    CLAIMANT_TOKEN = 'claimant_token', 'Claimant token'
    DONOR_IDENTITY = 'donor_identity', 'Donor identity'
    AMOUNT_MATCHING = 'amount_matching', 'Amount matching'


class Donation(models.Model):
    """
    A donation attempt against a campaign (a payment transaction).

    ``square_ids`` is the legacy denormalised link. Historical rows hold a
    list, a JSON string, a comma list or a scalar there; reads go through
    apps.donations.services.linkage and writes always store a clean list.
    The join rows in DonationSquare are the authoritative link.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    campaign = models.ForeignKey(
        Campaign,
        on_delete=models.CASCADE,
        related_name='donations'
    )

    total = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )

    # Donor
    donor_name = models.CharField(max_length=200, blank=True)
    donor_email = models.EmailField(blank=True)

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentType.choices,
        default=PaymentType.PAYPAL
    )
    status = models.CharField(
        max_length=20,
        choices=DonationStatus.choices,
        default=DonationStatus.PENDING
    )

    # Linkage
    square_ids = models.JSONField(null=True, blank=True)
    squares = models.ManyToManyField(
        Square,
        through='DonationSquare',
        related_name='donations',
        blank=True
    )

    # Provider
    provider_order_id = models.CharField(max_length=128, blank=True, db_index=True)

    # Reconciliation bookkeeping
    reconciled_tier = models.CharField(
        max_length=30,
        choices=ReconciliationTier.choices,
        blank=True
    )
    reconciliation_warning = models.TextField(blank=True)

    timestamp = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'transactions'
        indexes = [
            models.Index(fields=['campaign', 'status'], name='transaction_campaig_2f9b11_idx'),
            models.Index(fields=['campaign', 'donor_email'], name='transaction_campaig_d0c7e4_idx'),
            models.Index(fields=['payment_method', 'status'], name='transaction_payment_71aa3e_idx'),
        ]
        ordering = ['-timestamp']

    def __str__(self):
        donor = self.donor_name or self.donor_email or 'Anonymous'
        return f"{donor} - {self.total} ({self.status})"

    def save(self, *args, **kwargs):
        # Donor email doubles as the permanent claimant on squares
        self.donor_email = (self.donor_email or '').strip().lower()
        super().save(*args, **kwargs)

    @property
    def hold_token(self):
        from apps.campaigns.services import hold_token_for
        return hold_token_for(self.id)


class DonationSquare(models.Model):
    """Authoritative link between a donation and a square it paid for."""

    id = models.BigAutoField(primary_key=True)
    donation = models.ForeignKey(
        Donation,
        on_delete=models.CASCADE,
        related_name='links'
    )
    square = models.ForeignKey(
        Square,
        on_delete=models.CASCADE,
        related_name='donation_links'
    )
    linked_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'transaction_squares'
        constraints = [
            models.UniqueConstraint(fields=['donation', 'square'], name='unique_donation_square'),
        ]
        ordering = ['square__number']

    def __str__(self):
        return f"{self.donation_id} -> #{self.square.number}"
