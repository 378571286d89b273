from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StaffProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('role', models.CharField(choices=[('ADMIN', 'Admin'), ('MANAGER', 'Manager'), ('EMPLOYEE', 'Employee'), ('ACCOUNTANT', 'Accountant')], default='EMPLOYEE', max_length=20)),
                ('job_title', models.CharField(choices=[('COMMERCIAL', 'Commercial'), ('COMPTABLE', 'Comptable'), ('CAISSIERE', 'Caissière'), ('RELATION_PUBLIQUE', 'Relation publique'), ('APPROVISIONNEMENT_MARKETING', 'Approvisionnement marketing'), ('AGENT_TERRAIN', 'Agent de terrain'), ('DIRECTION_GENERALE', 'Direction générale')], default='AGENT_TERRAIN', max_length=40)),
                ('is_active', models.BooleanField(default=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='staff_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [models.Index(fields=['role', 'is_active'], name='staff_staff_role_3f1c2a_idx')],
            },
        ),
    ]
