"""
Default receivers for workflow events: an in-app notification per recipient
plus a plain-text email. Also the read-state helpers behind the inbox API.
"""
import logging

from django.dispatch import receiver

from . import events
from .constants import Role, TicketStatus, WorkOrderType
from .emails import send_ticket_notice
from .models import Notification
from .roles import users_with_role

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    TicketStatus.IN_PROGRESS: "sedang dikerjakan",
    TicketStatus.ON_HOLD: "ditunda sementara",
    TicketStatus.WAITING_FOR_SUBMITTER: "menunggu konfirmasi Anda",
    TicketStatus.CLOSED: "telah selesai",
    TicketStatus.APPROVED: "disetujui",
    TicketStatus.REJECTED: "ditolak",
}


def notify(users, ticket, title, message, level=Notification.Level.INFO):
    users = [u for u in users if u is not None]
    Notification.objects.bulk_create([
        Notification(user=u, ticket=ticket, title=title, message=message, level=level)
        for u in users
    ])
    send_ticket_notice(ticket, users, title, message)
    logger.debug("Notified %d user(s) about %s: %s", len(users), ticket.ticket_number, title)


def unread_count(user):
    return Notification.objects.filter(user=user, is_read=False).count()


def mark_read(notification):
    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=['is_read'])
    return notification


def mark_all_read(user):
    updated = Notification.objects.filter(user=user, is_read=False).update(is_read=True)
    logger.debug("Marked %d notification(s) read for %s", updated, user.username)
    return updated


@receiver(events.ticket_created)
def on_ticket_created(sender, ticket, **kwargs):
    kind = "Zoom" if ticket.is_zoom else "Perbaikan"
    notify(users_with_role(Role.ADMIN_LAYANAN), ticket, f"Tiket {kind} Baru",
           f"#{ticket.ticket_number} - {ticket.title}")


@receiver(events.ticket_assigned)
def on_ticket_assigned(sender, ticket, **kwargs):
    if ticket.assignee_id:
        notify([ticket.assignee], ticket, "Tugas Baru", f"#{ticket.ticket_number} ditugaskan kepada Anda")
    notify([ticket.requester], ticket, "Tiket Ditangani", f"#{ticket.ticket_number} sudah ditugaskan ke teknisi")


@receiver(events.ticket_status_changed)
def on_status_changed(sender, ticket, new_status, **kwargs):
    label = STATUS_LABELS.get(new_status, new_status)
    if new_status == TicketStatus.REJECTED:
        level = Notification.Level.ERROR
    else:
        level = Notification.Level.INFO
    notify([ticket.requester], ticket, "Update Tiket", f"#{ticket.ticket_number} {label}", level)

    if ticket.is_perbaikan and new_status == TicketStatus.ON_HOLD:
        notify(users_with_role(Role.ADMIN_PENYEDIA), ticket, "Tiket Menunggu",
               f"#{ticket.ticket_number} butuh tindak lanjut", Notification.Level.WARNING)


@receiver(events.ticket_zoom_approved)
def on_zoom_approved(sender, ticket, **kwargs):
    notify([ticket.requester], ticket, "Zoom Disetujui",
           f"#{ticket.ticket_number} meeting siap digunakan", Notification.Level.SUCCESS)


@receiver(events.ticket_zoom_rejected)
def on_zoom_rejected(sender, ticket, reason="", **kwargs):
    notify([ticket.requester], ticket, "Zoom Ditolak",
           f"#{ticket.ticket_number}: {reason}", Notification.Level.ERROR)


@receiver(events.ticket_closed)
def on_ticket_closed(sender, ticket, **kwargs):
    notify([ticket.requester], ticket, "Tiket Selesai",
           f"#{ticket.ticket_number} telah diselesaikan", Notification.Level.SUCCESS)


@receiver(events.work_order_created)
def on_work_order_created(sender, ticket, work_order, **kwargs):
    label = WorkOrderType(work_order.type).label
    notify(users_with_role(Role.ADMIN_PENYEDIA), ticket, f"Work Order {label}",
           f"#{ticket.ticket_number} butuh {label}")
