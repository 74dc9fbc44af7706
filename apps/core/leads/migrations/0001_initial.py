import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Lead',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('primary_email', models.EmailField(blank=True, max_length=254)),
                ('primary_contact', models.CharField(blank=True, max_length=30)),
                ('technology', models.CharField(blank=True, max_length=120)),
                ('country', models.CharField(blank=True, max_length=60)),
                ('visa_status', models.CharField(blank=True, max_length=30)),
                ('status', models.CharField(choices=[('New', 'New'), ('Contacted', 'Contacted'), ('Follow Up', 'Follow Up'), ('Enrolled', 'Enrolled'), ('Not Interested', 'Not Interested'), ('Closed', 'Closed')], default='New', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_leads', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_leads', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['status'], name='leads_lead_status_idx'),
                    models.Index(fields=['assigned_to', 'status'], name='leads_lead_assignee_idx'),
                ],
            },
        ),
    ]
