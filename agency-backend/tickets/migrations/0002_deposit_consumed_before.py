from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('tickets', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='ticketsale',
            name='deposit_consumed_before',
            field=models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True),
        ),
        migrations.AlterField(
            model_name='ticketsale',
            name='commission_rate_used',
            field=models.DecimalField(decimal_places=4, default=0, max_digits=18),
        ),
    ]
