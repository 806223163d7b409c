import django.db.models.deletion
import django.utils.timezone
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PermissionRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('student_name', models.CharField(blank=True, max_length=150)),
                ('roll_number', models.CharField(blank=True, max_length=20)),
                ('department', models.CharField(max_length=20)),
                ('year', models.CharField(max_length=4)),
                ('section', models.CharField(max_length=4)),
                ('reason', models.TextField()),
                ('letter_image_base64', models.TextField()),
                ('status', models.CharField(choices=[('SUBMITTED', 'Submitted'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected'), ('EXPIRED', 'Expired')], default='SUBMITTED', max_length=10)),
                ('requested_date', models.DateField()),
                ('requested_start_time', models.TimeField()),
                ('requested_end_time', models.TimeField()),
                ('ai_verification', models.JSONField(blank=True, null=True)),
                ('approved_by', models.CharField(blank=True, max_length=180, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('permission_date', models.DateField(blank=True, null=True)),
                ('start_time', models.TimeField(blank=True, null=True)),
                ('end_time', models.TimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='permission_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['department', 'year', 'section', 'status'], name='permission_scope_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='permission_status_created_idx'),
                ],
            },
        ),
    ]
