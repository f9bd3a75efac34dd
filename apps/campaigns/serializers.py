from rest_framework import serializers
from .models import Campaign, Square


class SquareSerializer(serializers.ModelSerializer):
    """Square as shown on the public grid. Claimant identity is not exposed."""

    class Meta:
        model = Square
        fields = [
            'id',
            'row',
            'col',
            'number',
            'value',
            'claim_state',
            'donor_name',
            'claimed_at',
        ]
        read_only_fields = fields


class CampaignSerializer(serializers.ModelSerializer):
    total_squares = serializers.IntegerField(read_only=True)

    class Meta:
        model = Campaign
        fields = [
            'id',
            'title',
            'slug',
            'description',
            'rows',
            'columns',
            'total_squares',
            'pricing_type',
            'is_active',
            'created_at',
        ]
        read_only_fields = fields


class CampaignGridSerializer(serializers.Serializer):
    """Grid listing response: campaign summary plus every square."""

    campaign = CampaignSerializer()
    available = serializers.IntegerField()
    squares = SquareSerializer(many=True)
