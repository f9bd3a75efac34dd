# Generated manually for donations app

import uuid
from decimal import Decimal
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('campaigns', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Donation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('total', models.DecimalField(decimal_places=2, max_digits=10, validators=[MinValueValidator(Decimal('0.01'))])),
                ('donor_name', models.CharField(blank=True, max_length=200)),
                ('donor_email', models.EmailField(blank=True, max_length=254)),
                ('payment_method', models.CharField(choices=[('paypal', 'PayPal'), ('cash', 'Cash'), ('stripe', 'Stripe')], default='paypal', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('failed', 'Failed'), ('refunded', 'Refunded')], default='pending', max_length=20)),
                ('square_ids', models.JSONField(blank=True, null=True)),
                ('provider_order_id', models.CharField(blank=True, db_index=True, max_length=128)),
                ('reconciled_tier', models.CharField(blank=True, choices=[('explicit_linkage', 'Explicit linkage'), ('claimant_token', 'Claimant token'), ('donor_identity', 'Donor identity'), ('amount_matching', 'Amount matching')], max_length=30)),
                ('reconciliation_warning', models.TextField(blank=True)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('campaign', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donations', to='campaigns.campaign')),
            ],
            options={
                'db_table': 'transactions',
                'ordering': ['-timestamp'],
            },
        ),
        migrations.CreateModel(
            name='DonationSquare',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('linked_at', models.DateTimeField(auto_now_add=True)),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='links', to='donations.donation')),
                ('square', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donation_links', to='campaigns.square')),
            ],
            options={
                'db_table': 'transaction_squares',
                'ordering': ['square__number'],
            },
        ),
        migrations.AddField(
            model_name='donation',
            name='squares',
            field=models.ManyToManyField(blank=True, related_name='donations', through='donations.DonationSquare', to='campaigns.square'),
        ),
        migrations.AddConstraint(
            model_name='donationsquare',
            constraint=models.UniqueConstraint(fields=('donation', 'square'), name='unique_donation_square'),
        ),
        migrations.AddIndex(
            model_name='donation',
            index=models.Index(fields=['campaign', 'status'], name='transaction_campaig_2f9b11_idx'),
        ),
        migrations.AddIndex(
            model_name='donation',
            index=models.Index(fields=['campaign', 'donor_email'], name='transaction_campaig_d0c7e4_idx'),
        ),
        migrations.AddIndex(
            model_name='donation',
            index=models.Index(fields=['payment_method', 'status'], name='transaction_payment_71aa3e_idx'),
        ),
    ]
