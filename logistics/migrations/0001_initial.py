import django.db.models.deletion
import django.utils.timezone
import logistics.models
import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PackageType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('package_type', models.CharField(max_length=100, unique=True, verbose_name='Package type')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Package type',
                'verbose_name_plural': 'Package types',
                'ordering': ['package_type'],
            },
        ),
        migrations.CreateModel(
            name='Shipment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('awb_code', models.CharField(editable=False, max_length=20, unique=True, verbose_name='AWB code')),
                ('client_order_id', models.CharField(blank=True, max_length=100, verbose_name='Client order ID')),
                ('reference_id', models.CharField(blank=True, max_length=100, verbose_name='Reference ID')),
                ('sender_name', models.CharField(max_length=150)),
                ('sender_phone', models.CharField(blank=True, max_length=20)),
                ('sender_address', models.TextField(blank=True)),
                ('sender_city', models.CharField(blank=True, max_length=100)),
                ('sender_state', models.CharField(blank=True, max_length=100)),
                ('sender_pincode', models.CharField(blank=True, max_length=10)),
                ('receiver_name', models.CharField(max_length=150)),
                ('receiver_phone', models.CharField(blank=True, max_length=20)),
                ('receiver_address', models.TextField()),
                ('receiver_city', models.CharField(blank=True, max_length=100)),
                ('receiver_state', models.CharField(blank=True, max_length=100)),
                ('receiver_pincode', models.CharField(blank=True, max_length=10)),
                ('weight', models.DecimalField(decimal_places=3, default=logistics.models.default_weight, max_digits=8, verbose_name='Weight (kg)')),
                ('package_type', models.CharField(blank=True, max_length=100)),
                ('payment_mode', models.CharField(choices=[('Prepaid', 'Prepaid'), ('COD', 'Cash on Delivery')], default='Prepaid', max_length=10)),
                ('declared_value', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('cod_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('payment_status', models.CharField(default='Unpaid', max_length=30)),
                ('current_status', models.CharField(choices=[('created', 'Created'), ('manifested', 'Manifested'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out for Delivery'), ('delivered', 'Delivered'), ('pickup_failed', 'Pickup Failed'), ('delivery_failed', 'Delivery Failed'), ('undelivered', 'Undelivered'), ('rto', 'Return to Origin'), ('rto_delivered', 'RTO Delivered'), ('cancelled', 'Cancelled')], default='created', max_length=20, verbose_name='Current status')),
                ('failure_reason', models.TextField(blank=True, null=True)),
                ('cost', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('base_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('delivery_boy', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='shipments', to='core.staff', verbose_name='Assigned driver')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='shipments', to=settings.AUTH_USER_MODEL, verbose_name='Booked by')),
            ],
            options={
                'verbose_name': 'Shipment',
                'verbose_name_plural': 'Shipments',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['current_status', 'created_at'], name='logistics_s_current_8a1c2e_idx'),
                    models.Index(fields=['delivery_boy', 'current_status'], name='logistics_s_deliver_5b7d1f_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TrackingEvent',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('status', models.CharField(max_length=30)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('shipment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tracking_events', to='logistics.shipment')),
            ],
            options={
                'verbose_name': 'Tracking event',
                'verbose_name_plural': 'Tracking events',
                'ordering': ['-timestamp', '-id'],
                'indexes': [
                    models.Index(fields=['shipment', 'timestamp'], name='logistics_t_shipmen_3c9e4a_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PODImage',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('image', models.ImageField(upload_to='evidence/%Y/%m/')),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('shipment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pod_images', to='logistics.shipment')),
            ],
            options={
                'verbose_name': 'POD image',
                'verbose_name_plural': 'POD images',
                'ordering': ['uploaded_at'],
            },
        ),
    ]
