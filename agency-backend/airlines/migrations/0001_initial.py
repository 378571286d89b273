from decimal import Decimal
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Airline',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('code', models.CharField(max_length=4, unique=True)),
                ('name', models.CharField(max_length=120)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='CommissionRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('route_pattern', models.CharField(default='*', help_text='Glob with * wildcard, case-insensitive', max_length=64)),
                ('travel_class', models.CharField(blank=True, choices=[('ECONOMY', 'Economy'), ('PREMIUM_ECONOMY', 'Premium economy'), ('BUSINESS', 'Business'), ('FIRST', 'First')], max_length=20, null=True)),
                ('commission_mode', models.CharField(choices=[('IMMEDIATE', 'Immediate'), ('AFTER_DEPOSIT', 'After deposit'), ('SYSTEM_PLUS_MARKUP', 'System rate + markup'), ('MARKUP_ONLY', 'Markup only')], db_index=True, default='IMMEDIATE', max_length=24)),
                ('rate_percent', models.DecimalField(decimal_places=3, default=0, help_text='Legacy flat rate', max_digits=7)),
                ('system_rate_percent', models.DecimalField(decimal_places=3, default=0, max_digits=7)),
                ('markup_rate_percent', models.DecimalField(decimal_places=3, default=0, max_digits=7)),
                ('default_base_fare_ratio', models.DecimalField(decimal_places=4, default=Decimal('0.6'), max_digits=5)),
                ('deposit_stock_target_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('deposit_stock_consumed_amount', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('batch_commission_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('starts_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('ends_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('airline', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='commission_rules', to='airlines.airline')),
            ],
            options={
                'indexes': [models.Index(fields=['airline', 'is_active'], name='airlines_co_airline_5b7d10_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('deposit_stock_consumed_amount__gte', 0)), name='commission_rule_consumed_non_negative')],
            },
        ),
    ]
