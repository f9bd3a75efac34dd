# Generated manually for campaigns app

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Campaign',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('slug', models.SlugField(max_length=220, unique=True)),
                ('description', models.TextField(blank=True)),
                ('rows', models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(50)])),
                ('columns', models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(50)])),
                ('pricing_type', models.CharField(choices=[('fixed', 'Fixed'), ('sequential', 'Sequential'), ('manual', 'Manual')], default='fixed', max_length=20)),
                ('price_data', models.JSONField(blank=True, default=dict)),
                ('paypal_email', models.EmailField(blank=True, max_length=254)),
                ('is_active', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='campaigns', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'campaigns',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Square',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('row', models.PositiveSmallIntegerField()),
                ('col', models.PositiveSmallIntegerField()),
                ('number', models.PositiveIntegerField()),
                ('value', models.DecimalField(decimal_places=2, max_digits=10, validators=[MinValueValidator(Decimal('0.00'))])),
                ('claim_state', models.CharField(choices=[('available', 'Available'), ('held', 'Held'), ('completed', 'Completed')], default='available', max_length=20)),
                ('claimed_by', models.CharField(blank=True, max_length=254, null=True)),
                ('donor_name', models.CharField(blank=True, max_length=200)),
                ('payment_type', models.CharField(blank=True, choices=[('paypal', 'PayPal'), ('cash', 'Cash'), ('stripe', 'Stripe')], max_length=20)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('campaign', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='squares', to='campaigns.campaign')),
            ],
            options={
                'db_table': 'squares',
                'ordering': ['campaign', 'number'],
            },
        ),
        migrations.AddIndex(
            model_name='campaign',
            index=models.Index(fields=['owner', 'created_at'], name='campaigns_owner_i_3c1f2a_idx'),
        ),
        migrations.AddIndex(
            model_name='campaign',
            index=models.Index(fields=['is_active'], name='campaigns_is_acti_8e2d41_idx'),
        ),
        migrations.AddIndex(
            model_name='square',
            index=models.Index(fields=['campaign', 'claim_state', 'number'], name='squares_campaig_5b7e90_idx'),
        ),
        migrations.AddIndex(
            model_name='square',
            index=models.Index(fields=['campaign', 'claimed_by'], name='squares_campaig_a41c6d_idx'),
        ),
        migrations.AddConstraint(
            model_name='square',
            constraint=models.UniqueConstraint(fields=('campaign', 'row', 'col'), name='unique_square_position'),
        ),
        migrations.AddConstraint(
            model_name='square',
            constraint=models.UniqueConstraint(fields=('campaign', 'number'), name='unique_square_number'),
        ),
    ]
