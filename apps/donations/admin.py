# ==========================================
# apps/donations/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import Donation, DonationSquare, DonationStatus
from .services import (
    DonationsServiceError,
    reconcile_donation,
    rollback_donation,
)


class DonationSquareInline(admin.TabularInline):
    """Inline admin for the squares a donation is linked to."""
    model = DonationSquare
    extra = 0
    fields = ['square', 'linked_at']
    readonly_fields = ['square', 'linked_at']

    def has_add_permission(self, request, obj=None):
        """Links are written by the reconciliation services."""
        return False


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    """
    Admin interface for Donations.

    Provides:
    - Donation listing with status and reconciliation outcome
    - Inline linked squares
    - Actions to reconcile and roll back
    """

    list_display = [
        'id',
        'campaign',
        'donor_display',
        'total',
        'payment_method',
        'status_badge',
        'reconciled_tier',
        'has_warning',
        'timestamp',
    ]
    list_filter = ['status', 'payment_method', 'reconciled_tier', 'campaign']
    search_fields = ['id', 'donor_email', 'donor_name', 'provider_order_id', 'campaign__title']
    readonly_fields = [
        'square_ids',
        'provider_order_id',
        'reconciled_tier',
        'reconciliation_warning',
        'timestamp',
        'updated_at',
    ]
    inlines = [DonationSquareInline]
    date_hierarchy = 'timestamp'
    ordering = ['-timestamp']

    fieldsets = (
        ('Donation', {
            'fields': ('campaign', 'total', 'payment_method', 'status', 'provider_order_id')
        }),
        ('Donor', {
            'fields': ('donor_name', 'donor_email')
        }),
        ('Reconciliation', {
            'fields': ('square_ids', 'reconciled_tier', 'reconciliation_warning'),
        }),
        ('Metadata', {
            'fields': ('timestamp', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def donor_display(self, obj):
        return obj.donor_name or obj.donor_email or '— Anonymous —'
    donor_display.short_description = 'Donor'
    donor_display.admin_order_field = 'donor_name'

    def status_badge(self, obj):
        """Display status as colored badge."""
        colors = {
            DonationStatus.PENDING: ('#E5C49A', '#2C1810'),
            DonationStatus.COMPLETED: ('#6B8E5E', 'white'),
            DonationStatus.FAILED: ('#B85C5C', 'white'),
            DonationStatus.REFUNDED: ('#A47449', 'white'),
        }
        bg, fg = colors.get(obj.status, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    def has_warning(self, obj):
        return bool(obj.reconciliation_warning)
    has_warning.boolean = True
    has_warning.short_description = 'Warning'

    actions = ['reconcile_selected', 'rollback_selected']

    @admin.action(description='Reconcile selected donations')
    def reconcile_selected(self, request, queryset):
        count = 0
        for donation in queryset:
            try:
                reconcile_donation(donation_id=donation.id)
                count += 1
            except DonationsServiceError as e:
                self.message_user(request, f'{donation.id}: {e}', level='error')
        self.message_user(request, f'Reconciled {count} donation(s).')

    @admin.action(description='Roll back selected donations')
    def rollback_selected(self, request, queryset):
        released = 0
        for donation in list(queryset):
            result = rollback_donation(donation_id=donation.id)
            released += len(result.released)
        self.message_user(request, f'Rolled back donations, released {released} square(s).')

    def get_queryset(self, request):
        """Optimize query with select_related."""
        qs = super().get_queryset(request)
        return qs.select_related('campaign')
