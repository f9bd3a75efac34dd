import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from apps.campaigns.models import Campaign, PricingType
from apps.campaigns.services import create_missing_squares

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
    """Create and return the user who runs the campaign."""
    return User.objects.create_user(
        username='owner',
        email='owner@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def other_user(db):
    """Create and return a user with no campaigns."""
    return User.objects.create_user(
        username='other',
        email='other@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def staff_user(db):
    """Create and return a staff user."""
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
    """Active 2x5 campaign, every square worth 5.00."""
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
def other_campaign(campaign_owner):
    """Second active campaign with its own 1x3 grid."""
    campaign = Campaign.objects.create(
        owner=campaign_owner,
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
def draft_campaign(campaign_owner):
    """Inactive 3x4 campaign with sequential pricing and no squares yet."""
    return Campaign.objects.create(
        owner=campaign_owner,
        title='Library Fund',
        slug='library-fund',
        rows=3,
        columns=4,
        pricing_type=PricingType.SEQUENTIAL,
        price_data={'sequential': {'start': '10', 'increment': '5'}},
    )


@pytest.fixture
def squares(campaign):
    """Squares of ``campaign`` keyed by number."""
    return {square.number: square for square in campaign.squares.all()}
