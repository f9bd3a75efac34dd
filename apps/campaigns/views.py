from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from .models import Campaign, ClaimState
from .serializers import CampaignSerializer, CampaignGridSerializer
from .services import (
    publish_campaign,
    CampaignNotFoundError,
    InvalidGridError,
)
from .permissions import IsCampaignOwnerOrStaff


class CampaignViewSet(viewsets.GenericViewSet):
    """
    Campaign grid endpoints.

    squares: Public grid listing for a campaign
    publish: Generate the grid and open the campaign for donations
    """

    queryset = Campaign.objects.select_related('owner')
    serializer_class = CampaignSerializer
    permission_classes = [IsAuthenticated, IsCampaignOwnerOrStaff]

    @extend_schema(responses={200: CampaignGridSerializer}, tags=['campaigns'])
    @action(detail=True, methods=['get'], permission_classes=[AllowAny])
    def squares(self, request, pk=None):
        """
        Get the full square grid of a campaign.

        GET /api/campaigns/{id}/squares/
        """
        campaign = self.get_object()
        squares = campaign.squares.all().order_by('number')

        serializer = CampaignGridSerializer({
            'campaign': campaign,
            'available': squares.filter(claim_state=ClaimState.AVAILABLE).count(),
            'squares': squares,
        })
        return Response(serializer.data)

    @extend_schema(request=None, responses={200: CampaignSerializer}, tags=['campaigns'])
    @action(detail=True, methods=['post'])
    def publish(self, request, pk=None):
        """
        Generate missing squares and mark the campaign active.

        POST /api/campaigns/{id}/publish/
        """
        campaign = self.get_object()

        try:
            campaign = publish_campaign(campaign_id=campaign.id)
        except CampaignNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InvalidGridError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(CampaignSerializer(campaign).data)
