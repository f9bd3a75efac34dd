import pytest
from decimal import Decimal
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from apps.campaigns.models import Campaign, PricingType, PaymentType
from apps.campaigns.services import create_missing_squares, hold_token_for, place_hold, promote
from apps.donations.models import Donation, DonationSquare, DonationStatus
from apps.donations.services import (
    PaymentGateway,
    ProviderOrder,
    CaptureResult,
    PaymentGatewayError,
)

User = get_user_model()


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


def _authenticated(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def campaign_owner(db):
    return User.objects.create_user(
        username='owner',
        email='owner@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(
        username='other',
        email='other@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def staff_user(db):
    return User.objects.create_user(
        username='staff',
        email='staff@example.com',
        password='TestPass123!',
        is_staff=True,
    )


@pytest.fixture
def owner_client(campaign_owner):
    return _authenticated(campaign_owner)


@pytest.fixture
def other_client(other_user):
    return _authenticated(other_user)


@pytest.fixture
def staff_client(staff_user):
    return _authenticated(staff_user)


@pytest.fixture
def campaign(campaign_owner):
    """Active 2x5 campaign, ten squares worth 5.00 each."""
    campaign = Campaign.objects.create(
        owner=campaign_owner,
        title='Roof Fund',
        slug='roof-fund',
        rows=2,
        columns=5,
        pricing_type=PricingType.FIXED,
        price_data={'fixed': '5.00'},
        paypal_email='roof@example.com',
        is_active=True,
    )
    create_missing_squares(campaign_id=campaign.id)
    return campaign


@pytest.fixture
def other_campaign(other_user):
    """Campaign owned by someone else."""
    campaign = Campaign.objects.create(
        owner=other_user,
        title='Garden Fund',
        slug='garden-fund',
        rows=1,
        columns=3,
        pricing_type=PricingType.FIXED,
        price_data={'fixed': '5.00'},
        is_active=True,
    )
    create_missing_squares(campaign_id=campaign.id)
    return campaign


@pytest.fixture
def squares(campaign):
    """Squares of ``campaign`` keyed by number."""
    return {square.number: square for square in campaign.squares.all()}


@pytest.fixture
def make_donation(campaign):
    """Factory for donations on ``campaign``."""
    def _make(total, status=DonationStatus.COMPLETED, donor_email='ada@example.com',
              payment_method=PaymentType.PAYPAL, square_ids=None, campaign_override=None):
        return Donation.objects.create(
            campaign=campaign_override or campaign,
            total=Decimal(total),
            donor_name='Ada',
            donor_email=donor_email,
            payment_method=payment_method,
            status=status,
            square_ids=square_ids,
        )
    return _make


@pytest.fixture
def hold_for():
    """Hold squares under a donation's token, optionally linking them."""
    def _hold(donation, squares, link=False):
        place_hold(
            campaign_id=donation.campaign_id,
            square_ids=[square.id for square in squares],
            token=hold_token_for(donation.id),
            donor_name=donation.donor_name,
            payment_type=donation.payment_method,
        )
        if link:
            for square in squares:
                DonationSquare.objects.create(donation=donation, square=square)
    return _hold


@pytest.fixture
def claim_for():
    """Permanently claim squares for an arbitrary donor email."""
    def _claim(campaign, squares, email, payment_type=PaymentType.PAYPAL):
        token = f'temp_setup_{email}'
        place_hold(
            campaign_id=campaign.id,
            square_ids=[square.id for square in squares],
            token=token,
            payment_type=payment_type,
        )
        promote(
            square_ids=[square.id for square in squares],
            donor_email=email,
            expected_claimants=[token],
        )
    return _claim


class FakeGateway(PaymentGateway):
    """Records calls and returns canned provider responses."""

    def __init__(self, capture_status='COMPLETED', fail_create=False, fail_capture=False):
        self.capture_status = capture_status
        self.fail_create = fail_create
        self.fail_capture = fail_capture
        self.orders = []
        self.captures = []

    def create_order(self, **kwargs):
        if self.fail_create:
            raise PaymentGatewayError('Provider unavailable')
        self.orders.append(kwargs)
        return ProviderOrder(order_id='ORDER-1', approval_url='https://pay.example.com/approve/ORDER-1')

    def capture_order(self, order_id):
        if self.fail_capture:
            raise PaymentGatewayError('Capture declined')
        self.captures.append(order_id)
        return CaptureResult(order_id=order_id, status=self.capture_status)


@pytest.fixture
def fake_gateway():
    return FakeGateway()
