import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('drivers', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Ride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('pickup_address', models.CharField(max_length=255)),
                ('pickup_latitude', models.FloatField()),
                ('pickup_longitude', models.FloatField()),
                ('dropoff_address', models.CharField(max_length=255)),
                ('dropoff_latitude', models.FloatField()),
                ('dropoff_longitude', models.FloatField()),
                ('category', models.CharField(choices=[('economy', 'Economy'), ('comfort', 'Comfort'), ('premium', 'Premium')], default='economy', max_length=20)),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('card', 'Card')], default='cash', max_length=10)),
                ('status', models.CharField(choices=[('requested', 'Requested'), ('accepted', 'Accepted'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='requested', max_length=20)),
                ('distance_km', models.FloatField(default=1)),
                ('estimated_duration_min', models.PositiveIntegerField(default=5)),
                ('rider_price_addon', models.PositiveIntegerField(default=0)),
                ('traffic_multiplier', models.FloatField(default=1)),
                ('fare_breakdown', models.JSONField(default=dict)),
                ('fare', models.PositiveIntegerField(default=0)),
                ('request_expires_at', models.DateTimeField(blank=True, null=True)),
                ('rider_live_address', models.CharField(blank=True, default='', max_length=255)),
                ('rider_live_latitude', models.FloatField(blank=True, null=True)),
                ('rider_live_longitude', models.FloatField(blank=True, null=True)),
                ('rider_live_updated_at', models.DateTimeField(blank=True, null=True)),
                ('pickup_otp', models.CharField(blank=True, default='', max_length=4)),
                ('pickup_otp_generated_at', models.DateTimeField(blank=True, null=True)),
                ('pickup_otp_verified_at', models.DateTimeField(blank=True, null=True)),
                ('rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('requested_at', models.DateTimeField(auto_now_add=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cancellation_reason', models.TextField(blank=True, default='')),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='rides', to='drivers.driverprofile')),
                ('rider', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rides', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'rides',
                'ordering': ['-requested_at', '-id'],
                'indexes': [models.Index(fields=['status', 'request_expires_at'], name='ride_status_expiry_idx')],
            },
        ),
    ]
