from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('airlines', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='TicketSale',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('ticket_number', models.CharField(max_length=40, unique=True)),
                ('customer_name', models.CharField(max_length=160)),
                ('route', models.CharField(max_length=64)),
                ('travel_class', models.CharField(choices=[('ECONOMY', 'Economy'), ('PREMIUM_ECONOMY', 'Premium economy'), ('BUSINESS', 'Business'), ('FIRST', 'First')], default='ECONOMY', max_length=20)),
                ('travel_date', models.DateTimeField()),
                ('sold_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('base_fare_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('agency_markup_amount', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('payment_status', models.CharField(choices=[('UNPAID', 'Unpaid'), ('PARTIAL', 'Partial'), ('PAID', 'Paid')], default='UNPAID', max_length=10)),
                ('notes', models.TextField(blank=True)),
                ('commission_rate_used', models.DecimalField(decimal_places=4, default=0, max_digits=9)),
                ('commission_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('commission_mode_applied', models.CharField(blank=True, choices=[('IMMEDIATE', 'Immediate'), ('AFTER_DEPOSIT', 'After deposit'), ('SYSTEM_PLUS_MARKUP', 'System rate + markup'), ('MARKUP_ONLY', 'Markup only')], max_length=24)),
                ('commission_base_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('commission_calculation_status', models.CharField(choices=[('FINAL', 'Final'), ('ESTIMATED', 'Estimated')], default='FINAL', max_length=10)),
                ('deposit_counted_amount', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('airline', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tickets', to='airlines.airline')),
                ('commission_rule', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tickets', to='airlines.commissionrule')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tickets_sold', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-sold_at', '-id'],
                'indexes': [models.Index(fields=['airline', 'sold_at'], name='tickets_tic_airline_0c6e3b_idx'), models.Index(fields=['seller', 'sold_at'], name='tickets_tic_seller__91f2d4_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='ticket_amount_positive')],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('method', models.CharField(choices=[('CASH', 'Cash'), ('MOBILE_MONEY', 'Mobile money'), ('BANK_TRANSFER', 'Bank transfer'), ('CARD', 'Card')], default='CASH', max_length=20)),
                ('reference', models.CharField(blank=True, max_length=80)),
                ('paid_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments_recorded', to=settings.AUTH_USER_MODEL)),
                ('ticket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='tickets.ticketsale')),
            ],
            options={
                'ordering': ['-paid_at', '-id'],
                'constraints': [models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='payment_amount_positive')],
            },
        ),
    ]
