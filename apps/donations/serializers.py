from rest_framework import serializers
from apps.campaigns.models import Square, PaymentType
from .models import Donation, DonationStatus


# =============================================================================
# Input Serializers
# =============================================================================

class CoordinateSerializer(serializers.Serializer):
    row = serializers.IntegerField(min_value=0)
    col = serializers.IntegerField(min_value=0)


class CheckoutInputSerializer(serializers.Serializer):
    """
    Validate input for starting a checkout.

    Fields:
        campaign (UUID): Campaign to donate to
        squares (list): Selected {row, col} coordinates
        donor_email (str): Donor email
        donor_name (str): Optional name shown on the squares
        payment_method (str): 'paypal' (default) or 'cash'
    """

    campaign = serializers.UUIDField()
    squares = CoordinateSerializer(many=True, allow_empty=False)
    donor_email = serializers.EmailField()
    donor_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    payment_method = serializers.ChoiceField(
        choices=[PaymentType.PAYPAL, PaymentType.CASH],
        default=PaymentType.PAYPAL
    )

    def validate_squares(self, value):
        positions = [(item['row'], item['col']) for item in value]
        if len(set(positions)) != len(positions):
            raise serializers.ValidationError('Each square can only be selected once.')
        return value


class ProviderReturnSerializer(serializers.Serializer):
    """Query parameters PayPal appends to the return URL."""

    transaction_id = serializers.UUIDField()
    token = serializers.CharField(max_length=128, required=False, allow_blank=True, default='')


class DonationFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for donation filtering.

    Query Parameters:
        campaign (UUID): Filter by campaign
        status (str): Filter by status
        payment_method (str): Filter by payment method
    """

    campaign = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=DonationStatus.choices, required=False)
    payment_method = serializers.ChoiceField(choices=PaymentType.choices, required=False)


class ReconcileInputSerializer(serializers.Serializer):
    dry_run = serializers.BooleanField(default=False)


class RepairReportInputSerializer(serializers.Serializer):
    """
    Validate filters for the repair report.

    Fields:
        campaign (UUID): Only this campaign
        payment_method (str): Only this payment method
        status (str): Only this status (default completed)
        donation (list[UUID]): Only these donations
        dry_run (bool): Report without writing (default true)
    """

    campaign = serializers.UUIDField(required=False)
    payment_method = serializers.ChoiceField(choices=PaymentType.choices, required=False)
    status = serializers.ChoiceField(
        choices=DonationStatus.choices,
        default=DonationStatus.COMPLETED
    )
    donation = serializers.ListField(child=serializers.UUIDField(), required=False)
    dry_run = serializers.BooleanField(default=True)


# =============================================================================
# Output Serializers
# =============================================================================

class LinkedSquareSerializer(serializers.ModelSerializer):
    class Meta:
        model = Square
        fields = ['id', 'number', 'row', 'col', 'value', 'claim_state']


class DonationSerializer(serializers.ModelSerializer):
    campaign_title = serializers.CharField(source='campaign.title', read_only=True)
    squares = LinkedSquareSerializer(many=True, read_only=True)

    class Meta:
        model = Donation
        fields = [
            'id',
            'campaign',
            'campaign_title',
            'total',
            'donor_name',
            'donor_email',
            'payment_method',
            'status',
            'square_ids',
            'squares',
            'provider_order_id',
            'reconciled_tier',
            'reconciliation_warning',
            'timestamp',
            'updated_at',
        ]
        read_only_fields = fields


class ReconciliationResultSerializer(serializers.Serializer):
    donation_id = serializers.UUIDField()
    tier = serializers.CharField(allow_null=True)
    square_ids = serializers.ListField(child=serializers.UUIDField())
    expected_total = serializers.DecimalField(max_digits=10, decimal_places=2)
    resolved_total = serializers.DecimalField(max_digits=10, decimal_places=2)
    matched = serializers.BooleanField()
    warnings = serializers.ListField(child=serializers.CharField())
    conflicts = serializers.ListField(child=serializers.UUIDField())
    dry_run = serializers.BooleanField()


class RollbackResultSerializer(serializers.Serializer):
    donation_id = serializers.UUIDField()
    lookup = serializers.CharField(allow_null=True)
    released = serializers.ListField(child=serializers.UUIDField())
    already_available = serializers.ListField(child=serializers.UUIDField())
    conflicts = serializers.ListField(child=serializers.UUIDField())


class CheckoutResponseSerializer(serializers.Serializer):
    donation = DonationSerializer()
    approval_url = serializers.CharField(allow_blank=True)
    gateway_error = serializers.CharField(allow_blank=True)


class AuditEntrySerializer(serializers.Serializer):
    donation_id = serializers.UUIDField()
    expected_total = serializers.DecimalField(max_digits=10, decimal_places=2)
    resolved_square_count = serializers.IntegerField()
    resolved_total = serializers.DecimalField(max_digits=10, decimal_places=2)
    tier_used = serializers.CharField(allow_null=True)
    matched = serializers.BooleanField()
    warnings = serializers.ListField(child=serializers.CharField())
    error = serializers.CharField(allow_blank=True)


class RepairReportSerializer(serializers.Serializer):
    dry_run = serializers.BooleanField()
    count = serializers.SerializerMethodField()
    matched = serializers.IntegerField(source='matched_count')
    mismatched = serializers.IntegerField(source='mismatched_count')
    results = AuditEntrySerializer(source='entries', many=True)

    def get_count(self, obj) -> int:
        return len(obj.entries)
