"""
Custom permission classes for campaigns app.
"""
from rest_framework.permissions import BasePermission


class IsCampaignOwnerOrStaff(BasePermission):
    """
    Allows staff users and the owner of the campaign.

    Usage:
        @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsCampaignOwnerOrStaff])
        def publish(self, request, pk=None):
            ...
    """

    message = 'Only the campaign owner can manage this campaign.'

    def has_object_permission(self, request, view, obj):
        return request.user.is_staff or obj.owner_id == request.user.id
