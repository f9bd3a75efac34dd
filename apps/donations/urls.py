from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'donations'

router = DefaultRouter()
router.register(r'', views.DonationViewSet, basename='donation')

urlpatterns = [
    # Donor endpoints
    path('checkout/', views.checkout, name='checkout'),
    path('paypal-success/', views.paypal_success, name='paypal-success'),

    # Administrative endpoints
    path('repair-report/', views.repair_report, name='repair-report'),

    # Donation ViewSet routes
    # GET    /api/donations/                 - List donations
    # GET    /api/donations/{id}/            - Get donation details
    # DELETE /api/donations/{id}/            - Roll back donation
    # POST   /api/donations/{id}/reconcile/  - Reconcile donation
    path('', include(router.urls)),
]
