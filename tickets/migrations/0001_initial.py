import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import tickets.models

TICKET_STATUS_CHOICES = [
    ('submitted', 'Diajukan'), ('pending_review', 'Menunggu review'), ('approved', 'Disetujui'),
    ('assigned', 'Ditugaskan'), ('in_progress', 'Sedang dikerjakan'), ('on_hold', 'Ditunda'),
    ('waiting_for_submitter', 'Menunggu konfirmasi pelapor'), ('completed', 'Selesai dilaksanakan'),
    ('closed', 'Selesai'), ('rejected', 'Ditolak'), ('cancelled', 'Dibatalkan'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Counter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('prefix', models.CharField(max_length=8)),
                ('iso_year', models.IntegerField()),
                ('iso_week', models.IntegerField()),
                ('last_number', models.IntegerField(default=0)),
            ],
            options={'unique_together': {('prefix', 'iso_year', 'iso_week')}},
        ),
        migrations.CreateModel(
            name='Asset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=60)),
                ('unit_number', models.CharField(max_length=20)),
                ('name', models.CharField(blank=True, max_length=255)),
                ('location', models.CharField(blank=True, max_length=255)),
            ],
            options={'unique_together': {('code', 'unit_number')}},
        ),
        migrations.CreateModel(
            name='ZoomAccount',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('account_id', models.CharField(max_length=64, unique=True)),
                ('name', models.CharField(max_length=120)),
                ('email', models.EmailField(max_length=254)),
                ('host_key', models.CharField(blank=True, max_length=32)),
                ('color', models.CharField(blank=True, max_length=16)),
                ('is_active', models.BooleanField(default=True)),
                ('priority', models.PositiveIntegerField(default=0)),
            ],
            options={'ordering': ['priority', 'id']},
        ),
        migrations.CreateModel(
            name='Ticket',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ticket_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('type', models.CharField(choices=[('perbaikan', 'Perbaikan'), ('zoom_meeting', 'Zoom Meeting')], max_length=16)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField()),
                ('status', models.CharField(choices=TICKET_STATUS_CHOICES, max_length=32)),
                ('severity', models.CharField(blank=True, choices=[('low', 'Rendah'), ('normal', 'Normal'), ('high', 'Tinggi'), ('critical', 'Kritis')], max_length=8)),
                ('form_data', models.JSONField(blank=True, null=True)),
                ('work_orders_ready', models.BooleanField(default=False)),
                ('rejection_reason', models.TextField(blank=True, default='')),
                ('asset_code', models.CharField(blank=True, max_length=60)),
                ('asset_unit_number', models.CharField(blank=True, max_length=20)),
                ('asset_location', models.CharField(blank=True, max_length=255)),
                ('zoom_date', models.DateField(blank=True, null=True)),
                ('zoom_start_time', models.TimeField(blank=True, null=True)),
                ('zoom_end_time', models.TimeField(blank=True, null=True)),
                ('zoom_duration', models.PositiveIntegerField(blank=True, null=True)),
                ('zoom_estimated_participants', models.PositiveIntegerField(blank=True, null=True)),
                ('zoom_co_hosts', models.JSONField(blank=True, null=True)),
                ('zoom_breakout_rooms', models.PositiveIntegerField(blank=True, null=True)),
                ('zoom_meeting_link', models.URLField(blank=True, max_length=500)),
                ('zoom_meeting_id', models.CharField(blank=True, max_length=64)),
                ('zoom_passcode', models.CharField(blank=True, max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='requested_tickets', to=settings.AUTH_USER_MODEL)),
                ('assignee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_tickets', to=settings.AUTH_USER_MODEL)),
                ('zoom_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='tickets.zoomaccount')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['zoom_account', 'zoom_date', 'status'], name='ticket_zoom_slot_idx'),
                    models.Index(fields=['type', 'status'], name='ticket_type_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Attachment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('file', models.FileField(max_length=500, upload_to=tickets.models.attachment_upload_to)),
                ('original_name', models.CharField(max_length=255)),
                ('mime_type', models.CharField(blank=True, max_length=100)),
                ('size', models.PositiveIntegerField()),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('ticket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='tickets.ticket')),
                ('uploaded_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to=settings.AUTH_USER_MODEL)),
            ],
            options={'ordering': ['uploaded_at']},
        ),
        migrations.CreateModel(
            name='TicketDiagnosis',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('problem_description', models.TextField()),
                ('problem_category', models.CharField(choices=[('hardware', 'Hardware'), ('software', 'Software'), ('lainnya', 'Lainnya')], max_length=16)),
                ('repair_type', models.CharField(choices=[('direct_repair', 'Bisa diperbaiki langsung'), ('need_sparepart', 'Butuh sparepart'), ('need_vendor', 'Butuh vendor'), ('need_license', 'Butuh lisensi'), ('unrepairable', 'Tidak dapat diperbaiki')], max_length=32)),
                ('repair_description', models.TextField(blank=True, default='')),
                ('unrepairable_reason', models.TextField(blank=True, default='')),
                ('alternative_solution', models.TextField(blank=True, default='')),
                ('technician_notes', models.TextField(blank=True, default='')),
                ('estimated_days', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('ticket', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='diagnosis', to='tickets.ticket')),
                ('technician', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='diagnoses', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='WorkOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('sparepart', 'Sparepart'), ('vendor', 'Vendor'), ('license', 'Lisensi')], max_length=16)),
                ('status', models.CharField(choices=[('requested', 'Diminta'), ('in_procurement', 'Dalam pengadaan'), ('completed', 'Selesai'), ('unsuccessful', 'Tidak berhasil')], default='requested', max_length=16)),
                ('items', models.JSONField(blank=True, default=list)),
                ('vendor_name', models.CharField(blank=True, max_length=255)),
                ('vendor_contact', models.CharField(blank=True, max_length=255)),
                ('vendor_description', models.TextField(blank=True, default='')),
                ('license_name', models.CharField(blank=True, max_length=255)),
                ('license_description', models.TextField(blank=True, default='')),
                ('completion_notes', models.TextField(blank=True, default='')),
                ('failure_reason', models.TextField(blank=True, default='')),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='work_orders', to=settings.AUTH_USER_MODEL)),
                ('ticket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='work_orders', to='tickets.ticket')),
            ],
            options={'ordering': ['-created_at', '-id']},
        ),
        migrations.CreateModel(
            name='SparepartRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_name', models.CharField(max_length=255)),
                ('quantity_requested', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('unit', models.CharField(max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Menunggu'), ('approved', 'Disetujui'), ('fulfilled', 'Dipenuhi'), ('rejected', 'Ditolak')], default='pending', max_length=16)),
                ('estimated_price', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('requested_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='sparepart_requests', to=settings.AUTH_USER_MODEL)),
                ('work_order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sparepart_requests', to='tickets.workorder')),
            ],
            options={'ordering': ['-created_at', '-id']},
        ),
        migrations.CreateModel(
            name='Timeline',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[
                    ('CREATED', 'Dibuat'), ('UPDATED', 'Diperbarui'), ('STATUS_CHANGED', 'Perubahan status'),
                    ('ASSIGNED', 'Ditugaskan'), ('APPROVED', 'Disetujui'), ('REJECTED', 'Ditolak'),
                    ('ZOOM_APPROVED', 'Zoom disetujui'), ('ZOOM_REJECTED', 'Zoom ditolak'),
                    ('ATTACHMENT_ADDED', 'Lampiran baru'), ('DIAGNOSIS_SAVED', 'Diagnosis disimpan'),
                    ('DIAGNOSIS_DELETED', 'Diagnosis dihapus'), ('WORK_ORDER_CREATED', 'Work order dibuat'),
                    ('WORK_ORDER_UPDATED', 'Work order diperbarui'), ('WORK_ORDER_DELETED', 'Work order dihapus'),
                    ('WORK_ORDER_STATUS_CHANGED', 'Status work order berubah'),
                ], max_length=32)),
                ('old_status', models.CharField(blank=True, default='', max_length=32)),
                ('new_status', models.CharField(blank=True, default='', max_length=32)),
                ('details', models.TextField(blank=True, default='')),
                ('meta', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ('ticket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='timeline', to='tickets.ticket')),
                ('work_order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='timeline', to='tickets.workorder')),
            ],
            options={'ordering': ['created_at', 'id']},
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('level', models.CharField(choices=[('info', 'Info'), ('success', 'Success'), ('warning', 'Warning'), ('error', 'Error')], default='info', max_length=8)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('ticket', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='tickets.ticket')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={'ordering': ['-created_at', '-id']},
        ),
    ]
