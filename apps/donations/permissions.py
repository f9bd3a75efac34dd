"""
Custom permission classes for donations app.
"""
from rest_framework.permissions import BasePermission


class CanManageDonation(BasePermission):
    """
    Permission to reconcile or roll back a donation.

    Allows if:
    - User is staff
    - User owns the donation's campaign
    """

    message = 'You do not have permission to manage this donation.'

    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        return obj.campaign.owner_id == request.user.id
