from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'campaigns'

router = DefaultRouter()
router.register(r'', views.CampaignViewSet, basename='campaign')

urlpatterns = [
    # GET    /api/campaigns/{id}/squares/  - Public square grid
    # POST   /api/campaigns/{id}/publish/  - Generate grid and activate
    path('', include(router.urls)),
]
