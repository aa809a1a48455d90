import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.utils import timezone

from .constants import (
    ProblemCategory,
    RepairType,
    Severity,
    SparepartRequestStatus,
    TicketStatus,
    TicketType,
    TICKET_NUMBER_PREFIXES,
    WORK_ORDER_REPAIR_TYPES,
    WorkOrderStatus,
    WorkOrderType,
)


class Counter(models.Model):
    prefix = models.CharField(max_length=8)
    iso_year = models.IntegerField()
    iso_week = models.IntegerField()
    last_number = models.IntegerField(default=0)

    class Meta:
        unique_together = ('prefix', 'iso_year', 'iso_week')

    def __str__(self):
        return f"{self.prefix}-{self.iso_year}-W{self.iso_week}: {self.last_number}"


class Asset(models.Model):
    """Entry of the asset registry that perbaikan tickets refer to."""
    code = models.CharField(max_length=60)
    unit_number = models.CharField(max_length=20)
    name = models.CharField(max_length=255, blank=True)
    location = models.CharField(max_length=255, blank=True)

    class Meta:
        unique_together = ('code', 'unit_number')

    def __str__(self):
        return f"{self.code}/{self.unit_number} {self.name}".strip()


class ZoomAccount(models.Model):
    account_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=120)
    email = models.EmailField()
    host_key = models.CharField(max_length=32, blank=True)
    color = models.CharField(max_length=16, blank=True)
    is_active = models.BooleanField(default=True)
    # allocation order: lower first
    priority = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['priority', 'id']

    def __str__(self):
        return f"{self.name} <{self.email}>"


class Ticket(models.Model):
    ticket_number = models.CharField(max_length=32, unique=True, editable=False)
    type = models.CharField(max_length=16, choices=TicketType.choices)
    title = models.CharField(max_length=255)
    description = models.TextField()
    status = models.CharField(max_length=32, choices=TicketStatus.choices)
    severity = models.CharField(max_length=8, choices=Severity.choices, blank=True)
    form_data = models.JSONField(blank=True, null=True)
    work_orders_ready = models.BooleanField(default=False)
    rejection_reason = models.TextField(blank=True, default="")

    requester = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='requested_tickets')
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_tickets'
    )

    # perbaikan
    asset_code = models.CharField(max_length=60, blank=True)
    asset_unit_number = models.CharField(max_length=20, blank=True)
    asset_location = models.CharField(max_length=255, blank=True)

    # zoom_meeting
    zoom_date = models.DateField(null=True, blank=True)
    zoom_start_time = models.TimeField(null=True, blank=True)
    zoom_end_time = models.TimeField(null=True, blank=True)
    zoom_duration = models.PositiveIntegerField(null=True, blank=True)
    zoom_estimated_participants = models.PositiveIntegerField(null=True, blank=True)
    zoom_co_hosts = models.JSONField(null=True, blank=True)
    zoom_breakout_rooms = models.PositiveIntegerField(null=True, blank=True)
    zoom_account = models.ForeignKey(
        ZoomAccount, on_delete=models.PROTECT, null=True, blank=True, related_name='bookings'
    )
    zoom_meeting_link = models.URLField(max_length=500, blank=True)
    zoom_meeting_id = models.CharField(max_length=64, blank=True)
    zoom_passcode = models.CharField(max_length=64, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['zoom_account', 'zoom_date', 'status'], name='ticket_zoom_slot_idx'),
            models.Index(fields=['type', 'status'], name='ticket_type_status_idx'),
        ]

    def __str__(self):
        return f"{self.ticket_number or '(no-number)'} - {self.title[:40]}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_type = instance.__dict__.get('type')
        return instance

    @classmethod
    def generate_ticket_number(cls, ticket_type: str) -> str:
        prefix = TICKET_NUMBER_PREFIXES[ticket_type]
        now = timezone.localtime()
        iso_year, iso_week, _ = now.isocalendar()
        with transaction.atomic():
            try:
                counter = Counter.objects.select_for_update().get(
                    prefix=prefix, iso_year=iso_year, iso_week=iso_week
                )
            except Counter.DoesNotExist:
                counter = Counter.objects.create(
                    prefix=prefix, iso_year=iso_year, iso_week=iso_week, last_number=0
                )
                counter = Counter.objects.select_for_update().get(pk=counter.pk)
            counter.last_number += 1
            counter.save(update_fields=['last_number'])
            number = f"{counter.last_number:04d}"
        return f"{prefix}-{iso_year}-{iso_week:02d}-{number}"

    @property
    def is_perbaikan(self):
        return self.type == TicketType.PERBAIKAN

    @property
    def is_zoom(self):
        return self.type == TicketType.ZOOM_MEETING

    def populated_field_groups(self):
        groups = set()
        if self.asset_code or self.asset_unit_number:
            groups.add(TicketType.PERBAIKAN)
        if self.zoom_date or self.zoom_start_time or self.zoom_end_time or self.zoom_account_id:
            groups.add(TicketType.ZOOM_MEETING)
        return groups

    def save(self, *args, **kwargs):
        loaded_type = getattr(self, '_loaded_type', None)
        if loaded_type is not None and self.type != loaded_type:
            raise ValueError("Ticket type cannot change after creation")
        if self.populated_field_groups() != {self.type}:
            raise ValueError(f"A {self.type} ticket must carry only its own field group")
        if not self.ticket_number and self.type:
            self.ticket_number = self.generate_ticket_number(self.type)
        super().save(*args, **kwargs)
        self._loaded_type = self.type


def attachment_upload_to(instance, filename):
    base = (
        settings.ZOOM_ATTACHMENTS_PATH
        if instance.ticket.type == TicketType.ZOOM_MEETING
        else settings.TICKET_ATTACHMENTS_PATH
    )
    return f"{base}/{timezone.now():%Y/%m/%d}/{uuid.uuid4().hex}_{filename}"


class Attachment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name='attachments')
    file = models.FileField(upload_to=attachment_upload_to, max_length=500)
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveIntegerField()
    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['uploaded_at']

    def __str__(self):
        return f"{self.original_name} ({self.size} B)"

    @property
    def path(self):
        return self.file.name

    @property
    def url(self):
        return self.file.url


class TicketDiagnosis(models.Model):
    ticket = models.OneToOneField(Ticket, on_delete=models.CASCADE, related_name='diagnosis')
    technician = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='diagnoses')
    problem_description = models.TextField()
    problem_category = models.CharField(max_length=16, choices=ProblemCategory.choices)
    repair_type = models.CharField(max_length=32, choices=RepairType.choices)
    repair_description = models.TextField(blank=True, default="")
    unrepairable_reason = models.TextField(blank=True, default="")
    alternative_solution = models.TextField(blank=True, default="")
    technician_notes = models.TextField(blank=True, default="")
    estimated_days = models.PositiveSmallIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Diagnosis {self.ticket.ticket_number}: {self.repair_type}"

    @property
    def needs_work_order(self):
        return self.repair_type in WORK_ORDER_REPAIR_TYPES


class WorkOrder(models.Model):
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name='work_orders')
    type = models.CharField(max_length=16, choices=WorkOrderType.choices)
    status = models.CharField(max_length=16, choices=WorkOrderStatus.choices, default=WorkOrderStatus.REQUESTED)

    # sparepart: [{name, quantity, unit, remarks?, estimated_price?}]
    items = models.JSONField(default=list, blank=True)
    vendor_name = models.CharField(max_length=255, blank=True)
    vendor_contact = models.CharField(max_length=255, blank=True)
    vendor_description = models.TextField(blank=True, default="")
    license_name = models.CharField(max_length=255, blank=True)
    license_description = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='work_orders')
    completion_notes = models.TextField(blank=True, default="")
    failure_reason = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"WO#{self.pk} {self.type} ({self.status})"

    def can_transition_to(self, new_status) -> bool:
        return new_status in WorkOrderStatus.values and new_status != self.status

    @property
    def is_mutable(self):
        return self.status == WorkOrderStatus.REQUESTED


class SparepartRequest(models.Model):
    TRANSITIONS = {
        SparepartRequestStatus.PENDING: {SparepartRequestStatus.APPROVED, SparepartRequestStatus.REJECTED},
        SparepartRequestStatus.APPROVED: {SparepartRequestStatus.FULFILLED, SparepartRequestStatus.REJECTED},
        SparepartRequestStatus.FULFILLED: set(),
        SparepartRequestStatus.REJECTED: set(),
    }

    work_order = models.ForeignKey(WorkOrder, on_delete=models.CASCADE, related_name='sparepart_requests')
    item_name = models.CharField(max_length=255)
    quantity_requested = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit = models.CharField(max_length=20)
    status = models.CharField(
        max_length=16, choices=SparepartRequestStatus.choices, default=SparepartRequestStatus.PENDING
    )
    estimated_price = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='sparepart_requests'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, null=True, blank=True, related_name='+'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.item_name} x{self.quantity_requested} ({self.status})"

    def can_transition_to(self, new_status) -> bool:
        return new_status in self.TRANSITIONS.get(self.status, set())


class Timeline(models.Model):
    class Action(models.TextChoices):
        CREATED = "CREATED", "Dibuat"
        UPDATED = "UPDATED", "Diperbarui"
        STATUS_CHANGED = "STATUS_CHANGED", "Perubahan status"
        ASSIGNED = "ASSIGNED", "Ditugaskan"
        APPROVED = "APPROVED", "Disetujui"
        REJECTED = "REJECTED", "Ditolak"
        ZOOM_APPROVED = "ZOOM_APPROVED", "Zoom disetujui"
        ZOOM_REJECTED = "ZOOM_REJECTED", "Zoom ditolak"
        ATTACHMENT_ADDED = "ATTACHMENT_ADDED", "Lampiran baru"
        DIAGNOSIS_SAVED = "DIAGNOSIS_SAVED", "Diagnosis disimpan"
        DIAGNOSIS_DELETED = "DIAGNOSIS_DELETED", "Diagnosis dihapus"
        WORK_ORDER_CREATED = "WORK_ORDER_CREATED", "Work order dibuat"
        WORK_ORDER_UPDATED = "WORK_ORDER_UPDATED", "Work order diperbarui"
        WORK_ORDER_DELETED = "WORK_ORDER_DELETED", "Work order dihapus"
        WORK_ORDER_STATUS_CHANGED = "WORK_ORDER_STATUS_CHANGED", "Status work order berubah"

    ticket = models.ForeignKey(Ticket, related_name='timeline', on_delete=models.CASCADE)
    work_order = models.ForeignKey(
        WorkOrder, related_name='timeline', null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(max_length=32, choices=Action.choices)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    old_status = models.CharField(max_length=32, blank=True, default="")
    new_status = models.CharField(max_length=32, blank=True, default="")
    details = models.TextField(blank=True, default="")
    meta = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        who = self.actor.username if self.actor else "system"
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.action} by {who}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Timeline entries are append-only")
        super().save(*args, **kwargs)


class Notification(models.Model):
    class Level(models.TextChoices):
        INFO = "info", "Info"
        SUCCESS = "success", "Success"
        WARNING = "warning", "Warning"
        ERROR = "error", "Error"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    level = models.CharField(max_length=8, choices=Level.choices, default=Level.INFO)
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, null=True, blank=True, related_name='notifications')
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.user_id}: {self.title}"
