"""
Campaigns App - Square Inventory

A campaign publishes a fixed grid of purchasable squares. This app owns the
grid (Inventory Store) and every claim transition on it (Reservation
Manager).

Key Features:
- Square generation from the campaign pricing rule
- Compare-and-swap holds, promotions and releases
- Stale hold release for abandoned checkouts

Architecture:
- Models: Campaign, Square
- Services: square_generation, reservations
- Views: public grid listing, publish action
"""

__version__ = '1.0.0'
