from django.contrib import admin

from .models import (
    Asset,
    Attachment,
    Counter,
    Notification,
    SparepartRequest,
    Ticket,
    TicketDiagnosis,
    Timeline,
    WorkOrder,
    ZoomAccount,
)


@admin.register(Counter)
class CounterAdmin(admin.ModelAdmin):
    list_display = ('prefix', 'iso_year', 'iso_week', 'last_number')
    list_filter = ('prefix', 'iso_year', 'iso_week')


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    list_display = ('code', 'unit_number', 'name', 'location')
    search_fields = ('code', 'unit_number', 'name')


@admin.register(ZoomAccount)
class ZoomAccountAdmin(admin.ModelAdmin):
    list_display = ('account_id', 'name', 'email', 'priority', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('account_id', 'name', 'email')


class AttachmentInline(admin.TabularInline):
    model = Attachment
    extra = 0
    readonly_fields = ('original_name', 'mime_type', 'size', 'uploaded_by', 'uploaded_at')


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ('ticket_number', 'type', 'title', 'status', 'severity', 'requester', 'assignee',
                    'work_orders_ready', 'created_at')
    list_filter = ('type', 'status', 'severity', 'work_orders_ready', 'created_at')
    search_fields = ('ticket_number', 'title', 'description', 'asset_code')
    readonly_fields = ('ticket_number', 'type', 'created_at', 'updated_at')
    inlines = [AttachmentInline]


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ('ticket', 'original_name', 'mime_type', 'size', 'uploaded_by', 'uploaded_at')
    search_fields = ('original_name', 'ticket__ticket_number', 'uploaded_by__username')
    list_filter = ('mime_type', 'uploaded_at')


@admin.register(TicketDiagnosis)
class TicketDiagnosisAdmin(admin.ModelAdmin):
    list_display = ('ticket', 'technician', 'problem_category', 'repair_type', 'updated_at')
    list_filter = ('problem_category', 'repair_type')
    search_fields = ('ticket__ticket_number', 'problem_description')


@admin.register(WorkOrder)
class WorkOrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'ticket', 'type', 'status', 'created_by', 'completed_at', 'created_at')
    list_filter = ('type', 'status')
    search_fields = ('ticket__ticket_number', 'vendor_name', 'license_name')


@admin.register(SparepartRequest)
class SparepartRequestAdmin(admin.ModelAdmin):
    list_display = ('item_name', 'quantity_requested', 'unit', 'status', 'work_order', 'requested_by', 'created_at')
    list_filter = ('status',)
    search_fields = ('item_name', 'work_order__ticket__ticket_number')


@admin.register(Timeline)
class TimelineAdmin(admin.ModelAdmin):
    list_display = ('ticket', 'action', 'actor', 'old_status', 'new_status', 'created_at')
    list_filter = ('action', 'created_at')
    search_fields = ('ticket__ticket_number', 'actor__username', 'details')

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'title', 'level', 'is_read', 'created_at')
    list_filter = ('level', 'is_read')
    search_fields = ('title', 'message', 'user__username')
