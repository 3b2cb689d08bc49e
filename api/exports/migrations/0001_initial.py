from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('proposals', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ExportJob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('job_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('status', models.CharField(choices=[('queued', 'Queued'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], default='queued', max_length=16)),
                ('progress', models.PositiveSmallIntegerField(default=0)),
                ('requested_method', models.CharField(choices=[('auto', 'Auto'), ('browser', 'Headless browser'), ('office', 'Office suite')], default='auto', max_length=16)),
                ('method', models.CharField(choices=[('auto', 'Auto'), ('browser', 'Headless browser'), ('office', 'Office suite')], max_length=16)),
                ('options', models.JSONField(default=dict)),
                ('cache_key', models.CharField(blank=True, default='', max_length=64)),
                ('cached', models.BooleanField(default=False)),
                ('estimated_time', models.PositiveIntegerField(default=0)),
                ('attempts', models.PositiveSmallIntegerField(default=0)),
                ('file_path', models.CharField(blank=True, default='', max_length=500)),
                ('file_size', models.PositiveIntegerField(blank=True, null=True)),
                ('error', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('finished_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('proposal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='export_jobs', to='proposals.proposal')),
            ],
            options={
                'indexes': [models.Index(fields=['status', 'finished_at'], name='exports_job_status_fin_idx')],
            },
        ),
        migrations.CreateModel(
            name='PDFCacheEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('cache_key', models.CharField(max_length=64, unique=True)),
                ('method', models.CharField(max_length=16)),
                ('file_path', models.CharField(max_length=500)),
                ('file_size', models.PositiveIntegerField(default=0)),
                ('generated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_accessed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('access_count', models.PositiveIntegerField(default=0)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('proposal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pdf_cache_entries', to='proposals.proposal')),
            ],
            options={
                'indexes': [models.Index(fields=['last_accessed_at'], name='exports_cache_lru_idx')],
            },
        ),
    ]
