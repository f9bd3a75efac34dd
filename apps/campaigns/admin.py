# ==========================================
# apps/campaigns/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import Campaign, Square, ClaimState
from .services import (
    CampaignsServiceError,
    create_missing_squares,
    publish_campaign,
    release,
)


def claim_state_badge(state, label):
    colors = {
        ClaimState.AVAILABLE: ('#E8DDD4', '#2C1810'),
        ClaimState.HELD: ('#E5C49A', '#2C1810'),
        ClaimState.COMPLETED: ('#6B8E5E', 'white'),
    }
    bg, fg = colors.get(state, ('#ccc', '#666'))
    return format_html(
        '<span style="background: {}; color: {}; padding: 3px 8px; '
        'border-radius: 10px; font-size: 11px;">{}</span>',
        bg, fg, label
    )


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    """
    Admin interface for Campaigns.

    Provides:
    - Grid size and claim progress
    - Actions to generate missing squares and publish
    """

    list_display = [
        'title',
        'owner',
        'grid_display',
        'pricing_type',
        'claimed_display',
        'is_active',
        'created_at',
    ]
    list_filter = ['is_active', 'pricing_type', 'created_at']
    search_fields = ['title', 'slug', 'owner__username', 'owner__email']
    prepopulated_fields = {'slug': ('title',)}
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']

    fieldsets = (
        ('Campaign', {
            'fields': ('title', 'slug', 'description', 'owner', 'is_active')
        }),
        ('Grid & Pricing', {
            'fields': ('rows', 'columns', 'pricing_type', 'price_data')
        }),
        ('Payments', {
            'fields': ('paypal_email',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def grid_display(self, obj):
        return f"{obj.rows} × {obj.columns}"
    grid_display.short_description = 'Grid'

    def claimed_display(self, obj):
        claimed = obj.squares.exclude(claim_state=ClaimState.AVAILABLE).count()
        return f"{claimed} / {obj.total_squares}"
    claimed_display.short_description = 'Claimed'

    actions = ['generate_missing_squares', 'publish']

    @admin.action(description='Create missing squares')
    def generate_missing_squares(self, request, queryset):
        count = 0
        for campaign in queryset:
            try:
                count += len(create_missing_squares(campaign_id=campaign.id))
            except CampaignsServiceError as e:
                self.message_user(request, f'{campaign.title}: {e}', level='error')
        self.message_user(request, f'Created {count} square(s).')

    @admin.action(description='Publish selected campaigns')
    def publish(self, request, queryset):
        published = 0
        for campaign in queryset:
            try:
                publish_campaign(campaign_id=campaign.id)
                published += 1
            except CampaignsServiceError as e:
                self.message_user(request, f'{campaign.title}: {e}', level='error')
        self.message_user(request, f'Published {published} campaign(s).')


@admin.register(Square)
class SquareAdmin(admin.ModelAdmin):
    """
    Admin interface for Squares.

    Claim fields are read-only; claims change only through the
    reservation services.
    """

    list_display = [
        'number',
        'campaign',
        'position_display',
        'value',
        'state_badge',
        'claimed_by',
        'donor_name',
        'claimed_at',
    ]
    list_filter = ['claim_state', 'payment_type', 'campaign']
    search_fields = ['claimed_by', 'donor_name', 'campaign__title']
    readonly_fields = [
        'claim_state',
        'claimed_by',
        'donor_name',
        'payment_type',
        'claimed_at',
        'created_at',
        'updated_at',
    ]
    ordering = ['campaign', 'number']

    def position_display(self, obj):
        return f"{obj.row},{obj.col}"
    position_display.short_description = 'Row,Col'

    def state_badge(self, obj):
        return claim_state_badge(obj.claim_state, obj.get_claim_state_display())
    state_badge.short_description = 'State'
    state_badge.admin_order_field = 'claim_state'

    actions = ['release_squares']

    @admin.action(description='Release selected squares')
    def release_squares(self, request, queryset):
        outcome = release(square_ids=list(queryset.values_list('id', flat=True)))
        self.message_user(request, f'Released {len(outcome.released)} square(s).')

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('campaign')
