"""
Donations App - Transaction Ledger and Reconciliation

Records donation attempts and ties each one to the squares it paid for,
even when the stored linkage is stale, empty or malformed.

Key Features:
- Checkout with all-or-nothing square holds
- Payment provider boundary (PayPal personal links by default)
- Tiered Reconciliation Engine, idempotent under repeated runs
- Rollback that releases exactly a donation's own squares
- Repair/Audit report, dry-run by default

Architecture:
- Models: Donation, DonationSquare
- Services: linkage, gateway, checkout, reconciliation, rollback, audit
- Views: checkout, provider return, admin ViewSet, repair report
- Permissions: staff or campaign owner
"""

__version__ = '1.0.0'
