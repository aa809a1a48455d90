"""
Zoom account allocation.

A booking occupies its account for ``[start, end)`` on its date while the
ticket is ``pending_review`` or ``approved``. Two windows overlap when
``existing_start < new_end and existing_end > new_start``; touching windows
do not overlap.

Callers run inside the booking transaction: the candidate account rows are
locked with ``SELECT ... FOR UPDATE`` so two bookings on the same account are
checked and written one after the other.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction

from .constants import ZOOM_BUSY_STATUSES, TicketType
from .exceptions import NotFound
from .models import Ticket, ZoomAccount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationResult:
    success: bool
    account_id: Optional[int] = None
    message: str = ""


def bookings_overlapping(account_id, date, start, end, exclude_ticket_id=None):
    qs = Ticket.objects.filter(
        type=TicketType.ZOOM_MEETING,
        zoom_account_id=account_id,
        zoom_date=date,
        status__in=ZOOM_BUSY_STATUSES,
        zoom_start_time__lt=end,
        zoom_end_time__gt=start,
    )
    if exclude_ticket_id is not None:
        qs = qs.exclude(pk=exclude_ticket_id)
    return qs


def has_conflict(account_id, date, start, end, exclude_ticket_id=None) -> bool:
    return bookings_overlapping(account_id, date, start, end, exclude_ticket_id).exists()


def get_conflicts(account_id, date, start, end, exclude_ticket_id=None) -> list:
    qs = (
        bookings_overlapping(account_id, date, start, end, exclude_ticket_id)
        .select_related('requester')
        .order_by('zoom_start_time', 'id')
    )
    return [
        {
            'id': t.id,
            'ticket_number': t.ticket_number,
            'title': t.title,
            'date': t.zoom_date.isoformat(),
            'start_time': t.zoom_start_time.strftime('%H:%M'),
            'end_time': t.zoom_end_time.strftime('%H:%M'),
            'status': t.status,
            'requester': t.requester.get_full_name() or t.requester.username,
        }
        for t in qs
    ]


@transaction.atomic
def lock_account(account_id) -> ZoomAccount:
    try:
        return ZoomAccount.objects.select_for_update().get(pk=account_id, is_active=True)
    except ZoomAccount.DoesNotExist:
        raise NotFound(f"Zoom account {account_id} not found or inactive.")


@transaction.atomic
def validate_and_assign(date, start, end, exclude_ticket_id=None) -> AllocationResult:
    accounts = list(
        ZoomAccount.objects.select_for_update()
        .filter(is_active=True)
        .order_by('priority', 'id')
    )
    for account in accounts:
        if not has_conflict(account.id, date, start, end, exclude_ticket_id):
            logger.info("Zoom slot %s %s-%s allocated to account %s", date, start, end, account.account_id)
            return AllocationResult(success=True, account_id=account.id)

    logger.warning("No zoom account free on %s %s-%s (%d checked)", date, start, end, len(accounts))
    return AllocationResult(
        success=False,
        message=(
            f"Tidak ada akun Zoom yang tersedia pada {date:%d-%m-%Y} "
            f"pukul {start:%H:%M}-{end:%H:%M}. Silakan pilih waktu lain."
        ),
    )


def check_availability(date, start, end):
    out = []
    for account in ZoomAccount.objects.filter(is_active=True).order_by('priority', 'id'):
        conflicts = get_conflicts(account.id, date, start, end)
        out.append({
            'account_id': account.id,
            'name': account.name,
            'email': account.email,
            'color': account.color,
            'available': not conflicts,
            'conflicts': conflicts,
        })
    return out
