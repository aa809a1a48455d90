# tickets/constants.py
from django.db import models


class Role(models.TextChoices):
    SUPER_ADMIN = "super_admin", "Super Admin"
    ADMIN_LAYANAN = "admin_layanan", "Admin Layanan"
    ADMIN_PENYEDIA = "admin_penyedia", "Admin Penyedia"
    TEKNISI = "teknisi", "Teknisi"
    PEGAWAI = "pegawai", "Pegawai"


class TicketType(models.TextChoices):
    PERBAIKAN = "perbaikan", "Perbaikan"
    ZOOM_MEETING = "zoom_meeting", "Zoom Meeting"


class TicketStatus(models.TextChoices):
    SUBMITTED = "submitted", "Diajukan"
    PENDING_REVIEW = "pending_review", "Menunggu review"
    APPROVED = "approved", "Disetujui"
    ASSIGNED = "assigned", "Ditugaskan"
    IN_PROGRESS = "in_progress", "Sedang dikerjakan"
    ON_HOLD = "on_hold", "Ditunda"
    WAITING_FOR_SUBMITTER = "waiting_for_submitter", "Menunggu konfirmasi pelapor"
    COMPLETED = "completed", "Selesai dilaksanakan"
    CLOSED = "closed", "Selesai"
    REJECTED = "rejected", "Ditolak"
    CANCELLED = "cancelled", "Dibatalkan"


class Severity(models.TextChoices):
    LOW = "low", "Rendah"
    NORMAL = "normal", "Normal"
    HIGH = "high", "Tinggi"
    CRITICAL = "critical", "Kritis"


class ProblemCategory(models.TextChoices):
    HARDWARE = "hardware", "Hardware"
    SOFTWARE = "software", "Software"
    LAINNYA = "lainnya", "Lainnya"


class RepairType(models.TextChoices):
    DIRECT_REPAIR = "direct_repair", "Bisa diperbaiki langsung"
    NEED_SPAREPART = "need_sparepart", "Butuh sparepart"
    NEED_VENDOR = "need_vendor", "Butuh vendor"
    NEED_LICENSE = "need_license", "Butuh lisensi"
    UNREPAIRABLE = "unrepairable", "Tidak dapat diperbaiki"


class WorkOrderType(models.TextChoices):
    SPAREPART = "sparepart", "Sparepart"
    VENDOR = "vendor", "Vendor"
    LICENSE = "license", "Lisensi"


class WorkOrderStatus(models.TextChoices):
    REQUESTED = "requested", "Diminta"
    IN_PROCUREMENT = "in_procurement", "Dalam pengadaan"
    COMPLETED = "completed", "Selesai"
    UNSUCCESSFUL = "unsuccessful", "Tidak berhasil"


class SparepartRequestStatus(models.TextChoices):
    PENDING = "pending", "Menunggu"
    APPROVED = "approved", "Disetujui"
    FULFILLED = "fulfilled", "Dipenuhi"
    REJECTED = "rejected", "Ditolak"


class Scope(models.TextChoices):
    MY = "my", "Tiket saya"
    ASSIGNED = "assigned", "Ditugaskan ke saya"
    WORK_ORDER_NEEDED = "work_order_needed", "Butuh work order"


# Repair types that need procurement before the ticket may be finished
WORK_ORDER_REPAIR_TYPES = frozenset({
    RepairType.NEED_SPAREPART,
    RepairType.NEED_VENDOR,
    RepairType.NEED_LICENSE,
})

WORK_ORDER_TERMINAL_STATUSES = frozenset({
    WorkOrderStatus.COMPLETED,
    WorkOrderStatus.UNSUCCESSFUL,
})

# Ticket statuses in which a technician may open a work order
WORK_ORDER_OPEN_TICKET_STATUSES = frozenset({
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.ON_HOLD,
})

# Ticket statuses that freeze their work orders
TICKET_TERMINAL_STATUSES = frozenset({
    TicketStatus.CLOSED,
    TicketStatus.CANCELLED,
    TicketStatus.REJECTED,
})

# Zoom bookings that occupy their account's time slot
ZOOM_BUSY_STATUSES = (TicketStatus.PENDING_REVIEW, TicketStatus.APPROVED)

TICKET_NUMBER_PREFIXES = {
    TicketType.PERBAIKAN: "PRB",
    TicketType.ZOOM_MEETING: "ZOOM",
}

# Buckets used by the counts endpoint
PENDING_STATUSES = (TicketStatus.SUBMITTED, TicketStatus.PENDING_REVIEW)
ACTIVE_STATUSES = (
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.ON_HOLD,
    TicketStatus.WAITING_FOR_SUBMITTER,
)
FINISHED_STATUSES = (TicketStatus.CLOSED, TicketStatus.COMPLETED)
DECLINED_STATUSES = (TicketStatus.REJECTED, TicketStatus.CANCELLED)

# Status filter keywords on the ticket list; any other value is a status or a comma list of them
STATUS_FILTER_GROUPS = {
    'pending': (TicketStatus.SUBMITTED, TicketStatus.PENDING_REVIEW),
    'in_progress': (TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD),
    'completed': (TicketStatus.CLOSED, TicketStatus.REJECTED),
}
