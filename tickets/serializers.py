import os

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from .constants import (
    RepairType,
    Severity,
    TicketStatus,
    TicketType,
    WorkOrderStatus,
    WorkOrderType,
)
from .models import (
    Attachment,
    Notification,
    SparepartRequest,
    Ticket,
    TicketDiagnosis,
    Timeline,
    WorkOrder,
    ZoomAccount,
)
from .roles import get_user_roles

User = get_user_model()


def _attachment_rules(ticket_type):
    if ticket_type == TicketType.ZOOM_MEETING:
        return settings.ZOOM_ATTACHMENTS_ALLOWED_EXTENSIONS, settings.ZOOM_ATTACHMENTS_MAX_SIZE_MB
    return settings.ATTACHMENTS_ALLOWED_EXTENSIONS, settings.ATTACHMENTS_MAX_SIZE_MB


def validate_attachments(files, ticket_type):
    exts, max_mb = _attachment_rules(ticket_type)
    allowed = set(ext.strip().lower() for ext in exts)
    max_bytes = max_mb * 1024 * 1024
    errors = []
    for f in files:
        _, ext = os.path.splitext(f.name)
        ext = (ext or '').replace('.', '').lower()
        if ext not in allowed:
            errors.append(f"File not allowed: {f.name} (.{ext})")
        if f.size > max_bytes:
            errors.append(f"{f.name}: {f.size // 1024 // 1024}MB exceeds the {max_mb}MB limit")
    if errors:
        raise serializers.ValidationError(errors)
    return files


class UserBriefSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'email', 'roles']

    def get_name(self, obj):
        return obj.get_full_name() or obj.username

    def get_roles(self, obj):
        return sorted(get_user_roles(obj))


class AttachmentSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='original_name', read_only=True)
    path = serializers.CharField(read_only=True)
    url = serializers.CharField(read_only=True)

    class Meta:
        model = Attachment
        fields = ['id', 'name', 'path', 'size', 'mime_type', 'url', 'uploaded_at']


class ZoomAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = ZoomAccount
        fields = ['id', 'account_id', 'name', 'email', 'host_key', 'color', 'is_active', 'priority']


class ZoomSlotSerializer(serializers.Serializer):
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    exclude_ticket_id = serializers.IntegerField(required=False)

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError({'end_time': "End time must be after start time."})
        return attrs


class CoHostSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()


class TicketDiagnosisSerializer(serializers.ModelSerializer):
    technician = UserBriefSerializer(read_only=True)
    needs_work_order = serializers.BooleanField(read_only=True)

    class Meta:
        model = TicketDiagnosis
        read_only_fields = ['id', 'ticket', 'technician', 'needs_work_order', 'created_at', 'updated_at']
        fields = [
            'id', 'ticket', 'technician',
            'problem_description', 'problem_category', 'repair_type',
            'repair_description', 'unrepairable_reason', 'alternative_solution',
            'technician_notes', 'estimated_days', 'needs_work_order',
            'created_at', 'updated_at',
        ]

    def validate(self, attrs):
        repair_type = attrs.get('repair_type')
        if repair_type == RepairType.DIRECT_REPAIR and not (attrs.get('repair_description') or '').strip():
            raise serializers.ValidationError(
                {'repair_description': "Required when the repair type is direct_repair."}
            )
        if repair_type == RepairType.UNREPAIRABLE and not (attrs.get('unrepairable_reason') or '').strip():
            raise serializers.ValidationError(
                {'unrepairable_reason': "Required when the repair type is unrepairable."}
            )
        return attrs


class TicketSerializer(serializers.ModelSerializer):
    requester = UserBriefSerializer(read_only=True)
    assignee = UserBriefSerializer(read_only=True)
    zoom_account = ZoomAccountSerializer(read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    diagnosis = serializers.SerializerMethodField()
    work_orders_count = serializers.SerializerMethodField()

    class Meta:
        model = Ticket
        fields = [
            'id', 'ticket_number', 'type', 'title', 'description', 'status',
            'severity', 'form_data', 'work_orders_ready', 'rejection_reason',
            'requester', 'assignee',
            'asset_code', 'asset_unit_number', 'asset_location',
            'zoom_date', 'zoom_start_time', 'zoom_end_time', 'zoom_duration',
            'zoom_estimated_participants', 'zoom_co_hosts', 'zoom_breakout_rooms',
            'zoom_account', 'zoom_meeting_link', 'zoom_meeting_id', 'zoom_passcode',
            'attachments', 'diagnosis', 'work_orders_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_diagnosis(self, obj):
        if not obj.is_perbaikan:
            return None
        diagnosis = TicketDiagnosis.objects.filter(ticket_id=obj.pk).select_related('technician').first()
        return TicketDiagnosisSerializer(diagnosis).data if diagnosis else None

    def get_work_orders_count(self, obj):
        return obj.work_orders.count()


class TicketCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TicketType.choices)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    form_data = serializers.JSONField(required=False, allow_null=True)

    severity = serializers.ChoiceField(choices=Severity.choices, required=False, default=Severity.NORMAL)
    asset_code = serializers.CharField(max_length=60, required=False, allow_blank=True)
    asset_unit_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    asset_location = serializers.CharField(max_length=255, required=False, allow_blank=True)

    zoom_date = serializers.DateField(required=False)
    zoom_start_time = serializers.TimeField(required=False)
    zoom_end_time = serializers.TimeField(required=False)
    zoom_duration = serializers.IntegerField(required=False, min_value=1)
    zoom_estimated_participants = serializers.IntegerField(required=False, min_value=1)
    zoom_co_hosts = CoHostSerializer(many=True, required=False)
    zoom_breakout_rooms = serializers.IntegerField(required=False, min_value=0)

    attachments = serializers.ListField(child=serializers.FileField(), required=False)

    def validate(self, attrs):
        ticket_type = attrs['type']
        errors = {}
        if ticket_type == TicketType.PERBAIKAN:
            for name in ('asset_code', 'asset_unit_number'):
                if not attrs.get(name):
                    errors[name] = "This field is required for perbaikan tickets."
        else:
            for name in ('zoom_date', 'zoom_start_time', 'zoom_end_time'):
                if attrs.get(name) is None:
                    errors[name] = "This field is required for zoom meeting tickets."
            if not errors:
                if attrs['zoom_end_time'] <= attrs['zoom_start_time']:
                    errors['zoom_end_time'] = "End time must be after start time."
                if attrs['zoom_date'] < timezone.localdate():
                    errors['zoom_date'] = "The meeting date cannot be in the past."
        if errors:
            raise serializers.ValidationError(errors)

        attrs['attachments'] = validate_attachments(attrs.get('attachments') or [], ticket_type)
        return attrs


class TicketUpdateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TicketType.choices, required=False)
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False)
    form_data = serializers.JSONField(required=False, allow_null=True)


class AssignSerializer(serializers.Serializer):
    assigned_to = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TicketStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    mark_work_orders_ready = serializers.BooleanField(required=False, default=False)
    completion_data = serializers.DictField(required=False, allow_null=True)
    estimated_schedule = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class ZoomApproveSerializer(serializers.Serializer):
    zoom_account_id = serializers.IntegerField(required=False, allow_null=True)
    meeting_link = serializers.URLField(required=False, allow_blank=True, default="")
    meeting_id = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)
    passcode = serializers.CharField(required=False, allow_blank=True, default="", max_length=64)


class SparepartItemSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    unit = serializers.CharField(max_length=50)
    remarks = serializers.CharField(required=False, allow_blank=True)
    estimated_price = serializers.FloatField(required=False, allow_null=True, min_value=0)


class WorkOrderSerializer(serializers.ModelSerializer):
    created_by = UserBriefSerializer(read_only=True)
    ticket_number = serializers.CharField(source='ticket.ticket_number', read_only=True)

    class Meta:
        model = WorkOrder
        fields = [
            'id', 'ticket', 'ticket_number', 'type', 'status', 'items',
            'vendor_name', 'vendor_contact', 'vendor_description',
            'license_name', 'license_description',
            'created_by', 'completion_notes', 'failure_reason', 'completed_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class WorkOrderPayloadSerializer(serializers.Serializer):
    items = SparepartItemSerializer(many=True, required=False)
    vendor_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    vendor_contact = serializers.CharField(max_length=255, required=False, allow_blank=True)
    vendor_description = serializers.CharField(required=False, allow_blank=True)
    license_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    license_description = serializers.CharField(required=False, allow_blank=True)


class WorkOrderCreateSerializer(WorkOrderPayloadSerializer):
    ticket_id = serializers.IntegerField()
    type = serializers.ChoiceField(choices=WorkOrderType.choices)


class WorkOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=WorkOrderStatus.choices)
    completion_notes = serializers.CharField(required=False, allow_blank=True, default="")
    failure_reason = serializers.CharField(required=False, allow_blank=True, default="")
    vendor_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    vendor_contact = serializers.CharField(max_length=255, required=False, allow_blank=True)


class SparepartRequestSerializer(serializers.ModelSerializer):
    requested_by = UserBriefSerializer(read_only=True)
    approved_by = UserBriefSerializer(read_only=True)
    quantity_requested = serializers.IntegerField(min_value=1)
    estimated_price = serializers.DecimalField(
        max_digits=15, decimal_places=2, min_value=0, required=False, allow_null=True
    )

    class Meta:
        model = SparepartRequest
        read_only_fields = [
            'id', 'status', 'requested_by', 'approved_by', 'approved_at',
            'rejection_reason', 'created_at', 'updated_at',
        ]
        fields = [
            'id', 'work_order', 'item_name', 'quantity_requested', 'unit',
            'estimated_price', 'notes', 'status',
            'requested_by', 'approved_by', 'approved_at', 'rejection_reason',
            'created_at', 'updated_at',
        ]


class SparepartRejectSerializer(serializers.Serializer):
    rejection_reason = serializers.CharField()


class TimelineSerializer(serializers.ModelSerializer):
    actor = UserBriefSerializer(read_only=True)

    class Meta:
        model = Timeline
        fields = [
            'id', 'action', 'actor', 'old_status', 'new_status',
            'details', 'meta', 'work_order', 'created_at',
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    ticket_number = serializers.CharField(source='ticket.ticket_number', read_only=True, default=None)

    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'level', 'ticket', 'ticket_number', 'is_read', 'created_at']
        read_only_fields = fields
