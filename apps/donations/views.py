from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpResponseRedirect
from django.urls import reverse
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from apps.campaigns.models import Campaign
from .models import Donation
from .serializers import (
    CheckoutInputSerializer,
    ProviderReturnSerializer,
    DonationFilterSerializer,
    ReconcileInputSerializer,
    RepairReportInputSerializer,
    DonationSerializer,
    CheckoutResponseSerializer,
    ReconciliationResultSerializer,
    RollbackResultSerializer,
    RepairReportSerializer,
)
from .services import (
    start_checkout,
    confirm_payment,
    reconcile_donation,
    rollback_donation,
    build_repair_report,
    DonationNotFoundError,
    InvalidDonationStateError,
    ConflictDuringReconciliationError,
)
from .services.exceptions import (
    AlreadyClaimedError,
    CampaignNotFoundError,
    CampaignInactiveError,
    SquareNotFoundError,
)
from .permissions import CanManageDonation


def _campaign_page(slug, **params):
    base = settings.FRONTEND_URL.rstrip('/')
    return f'{base}/fundraiser/{slug}?{urlencode(params)}'


class DonationPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


@extend_schema(
    request=CheckoutInputSerializer,
    responses={201: CheckoutResponseSerializer},
    description="Hold the selected squares and open a pending donation.",
    tags=['donations'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def checkout(request):
    """
    Start a checkout.

    POST /api/donations/checkout/
    Body: {"campaign": uuid, "squares": [{"row": 0, "col": 1}], "donor_email": "...",
           "donor_name": "...", "payment_method": "paypal"}
    """
    input_serializer = CheckoutInputSerializer(data=request.data)
    input_serializer.is_valid(raise_exception=True)
    data = input_serializer.validated_data

    slug = Campaign.objects.filter(id=data['campaign']).values_list('slug', flat=True).first()
    if slug is None:
        return Response({'error': 'Campaign not found'}, status=status.HTTP_404_NOT_FOUND)

    try:
        result = start_checkout(
            campaign_id=data['campaign'],
            coordinates=[(item['row'], item['col']) for item in data['squares']],
            donor_email=data['donor_email'],
            donor_name=data['donor_name'],
            payment_method=data['payment_method'],
            return_url=request.build_absolute_uri(reverse('donations:paypal-success')),
            cancel_url=_campaign_page(slug, cancelled='true'),
        )
    except AlreadyClaimedError as e:
        return Response(
            {'error': str(e), 'conflicts': [str(square_id) for square_id in e.square_ids]},
            status=status.HTTP_409_CONFLICT
        )
    except (CampaignNotFoundError, SquareNotFoundError) as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except (CampaignInactiveError, InvalidDonationStateError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(
        CheckoutResponseSerializer(result).data,
        status=status.HTTP_201_CREATED
    )


@extend_schema(
    parameters=[ProviderReturnSerializer],
    responses={302: None},
    description="Payment provider return URL. Confirms the payment and redirects to the campaign page.",
    tags=['donations'],
)
@api_view(['GET'])
@permission_classes([AllowAny])
def paypal_success(request):
    """
    Handle a donor returning from PayPal.

    GET /api/donations/paypal-success/?transaction_id=<uuid>&token=<order>
    """
    params_serializer = ProviderReturnSerializer(data=request.query_params)
    params_serializer.is_valid(raise_exception=True)
    params = params_serializer.validated_data

    donation = Donation.objects.select_related('campaign').filter(
        id=params['transaction_id']
    ).first()
    if donation is None:
        return Response({'error': 'Donation not found'}, status=status.HTTP_404_NOT_FOUND)

    try:
        result = confirm_payment(
            donation_id=donation.id,
            provider_order_id=params['token'],
        )
        success = result.completed
    except (DonationNotFoundError, InvalidDonationStateError):
        success = False

    return HttpResponseRedirect(_campaign_page(
        donation.campaign.slug,
        success='true' if success else 'false',
        transaction_id=str(donation.id),
    ))


class DonationViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      mixins.DestroyModelMixin,
                      viewsets.GenericViewSet):
    """
    ViewSet for donation administration.

    list: Donations of campaigns the user owns (all for staff)
    retrieve: Get a specific donation
    destroy: Roll back a donation (release its squares, delete it)
    reconcile: Run the Reconciliation Engine on a donation
    """

    queryset = Donation.objects.select_related('campaign').prefetch_related('squares')
    serializer_class = DonationSerializer
    permission_classes = [IsAuthenticated, CanManageDonation]
    pagination_class = DonationPagination

    def get_queryset(self):
        """Filter donations using input serializer validation."""
        queryset = super().get_queryset()
        user = self.request.user

        if not user.is_staff:
            queryset = queryset.filter(campaign__owner=user)

        filter_serializer = DonationFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if 'campaign' in params:
            queryset = queryset.filter(campaign_id=params['campaign'])
        if 'status' in params:
            queryset = queryset.filter(status=params['status'])
        if 'payment_method' in params:
            queryset = queryset.filter(payment_method=params['payment_method'])

        return queryset

    @extend_schema(responses={200: RollbackResultSerializer})
    def destroy(self, request, *args, **kwargs):
        """
        Roll back a donation.

        DELETE /api/donations/{id}/
        """
        donation = self.get_object()

        try:
            result = rollback_donation(donation_id=donation.id)
        except DonationNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response(RollbackResultSerializer(result).data)

    @extend_schema(request=ReconcileInputSerializer, responses={200: ReconciliationResultSerializer})
    @action(detail=True, methods=['post'])
    def reconcile(self, request, pk=None):
        """
        Reconcile a donation with its squares.

        POST /api/donations/{id}/reconcile/
        Body: {"dry_run": false}
        """
        donation = self.get_object()

        input_serializer = ReconcileInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        try:
            result = reconcile_donation(
                donation_id=donation.id,
                dry_run=input_serializer.validated_data['dry_run'],
            )
        except DonationNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InvalidDonationStateError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except ConflictDuringReconciliationError as e:
            return Response(
                {'error': str(e), 'conflicts': [str(square_id) for square_id in e.square_ids]},
                status=status.HTTP_409_CONFLICT
            )

        return Response(ReconciliationResultSerializer(result).data)


@extend_schema(
    request=RepairReportInputSerializer,
    responses={200: RepairReportSerializer},
    description="Reconcile historical donations and report mismatches. GET is always a dry run.",
    tags=['donations'],
)
@api_view(['GET', 'POST'])
@permission_classes([IsAdminUser])
def repair_report(request):
    """
    Repair/audit report.

    GET  /api/donations/repair-report/?campaign=&payment_method=&status=
    POST /api/donations/repair-report/  Body: {"dry_run": false, ...}
    """
    if request.method == 'GET':
        data = request.query_params.copy()
        data['dry_run'] = 'true'
    else:
        data = request.data

    input_serializer = RepairReportInputSerializer(data=data)
    input_serializer.is_valid(raise_exception=True)
    params = input_serializer.validated_data

    report = build_repair_report(
        campaign_id=params.get('campaign'),
        payment_method=params.get('payment_method'),
        status=params['status'],
        donation_ids=params.get('donation'),
        dry_run=params['dry_run'],
    )

    return Response(RepairReportSerializer(report).data)
