"""
Payment provider boundary.

The engine only needs two calls from a provider: create an order (an order
reference plus an approval URL to send the donor to) and capture it once
the donor returns. Confirmation is driven by that return redirect, never by
a webhook.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence
from urllib.parse import urlencode

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from .exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

CAPTURE_COMPLETED = 'COMPLETED'


@dataclass
class ProviderOrder:
    order_id: str
    approval_url: str


@dataclass
class CaptureResult:
    order_id: str
    status: str

    @property
    def is_completed(self) -> bool:
        return self.status == CAPTURE_COMPLETED


class PaymentGateway:
    """Interface every payment provider adapter implements."""

    def create_order(
        self,
        *,
        amount: Decimal,
        currency: str,
        campaign_ref: str,
        square_keys: Sequence[str],
        return_url: str,
        cancel_url: str,
        payee: str,
    ) -> ProviderOrder:
        raise NotImplementedError

    def capture_order(self, order_id: str) -> CaptureResult:
        raise NotImplementedError


class PayPalLinkGateway(PaymentGateway):
    """
    Personal-account PayPal payments.

    Builds a standard ``_xclick`` payment link. Personal accounts have no
    order API, so there is nothing to capture and a returning donor is
    treated as paid.
    """

    checkout_url = 'https://www.paypal.com/cgi-bin/webscr'

    def create_order(self, *, amount, currency, campaign_ref, square_keys,
                     return_url, cancel_url, payee):
        if not payee:
            raise PaymentGatewayError("Campaign has no PayPal account configured")

        order_id = f'personal_order_{int(timezone.now().timestamp() * 1000)}'
        params = {
            'cmd': '_xclick',
            'business': payee,
            'item_name': f'Square Donation - {campaign_ref}',
            'amount': f'{Decimal(amount):.2f}',
            'currency_code': currency,
            'return': return_url,
            'cancel_return': cancel_url,
            'custom': json.dumps({'campaign_ref': campaign_ref, 'square_keys': list(square_keys)}),
            'no_shipping': '1',
            'no_note': '1',
        }
        return ProviderOrder(
            order_id=order_id,
            approval_url=f'{self.checkout_url}?{urlencode(params)}',
        )

    def capture_order(self, order_id):
        return CaptureResult(order_id=order_id, status=CAPTURE_COMPLETED)


def get_payment_gateway() -> PaymentGateway:
    """Instantiate the gateway class named by ``PAYMENT_GATEWAY_CLASS``."""
    path = getattr(
        settings, 'PAYMENT_GATEWAY_CLASS',
        'apps.donations.services.gateway.PayPalLinkGateway'
    )
    return import_string(path)()
