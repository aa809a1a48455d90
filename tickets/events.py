"""
Domain events raised by the ticket workflow.

Events are plain Django signals sent after the surrounding transaction
commits; receivers get ``sender`` (the event name), ``ticket`` and ``actor``
plus event specific keyword arguments.
"""
import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

TICKET_CREATED = 'ticket.created'
TICKET_ASSIGNED = 'ticket.assigned'
TICKET_STATUS_CHANGED = 'ticket.status_changed'
TICKET_ZOOM_APPROVED = 'ticket.zoom_approved'
TICKET_ZOOM_REJECTED = 'ticket.zoom_rejected'
TICKET_CLOSED = 'ticket.closed'
WORK_ORDER_CREATED = 'work_order.created'

ticket_created = Signal()
ticket_assigned = Signal()
ticket_status_changed = Signal()
ticket_zoom_approved = Signal()
ticket_zoom_rejected = Signal()
ticket_closed = Signal()
work_order_created = Signal()

SIGNALS = {
    TICKET_CREATED: ticket_created,
    TICKET_ASSIGNED: ticket_assigned,
    TICKET_STATUS_CHANGED: ticket_status_changed,
    TICKET_ZOOM_APPROVED: ticket_zoom_approved,
    TICKET_ZOOM_REJECTED: ticket_zoom_rejected,
    TICKET_CLOSED: ticket_closed,
    WORK_ORDER_CREATED: work_order_created,
}


def _dispatch(event, payload):
    for receiver, result in SIGNALS[event].send_robust(sender=event, **payload):
        if isinstance(result, Exception):
            logger.error(
                "Receiver %r failed for %s", receiver, event,
                exc_info=(type(result), result, result.__traceback__),
            )


def emit(event, **payload):
    if event not in SIGNALS:
        raise KeyError(f"Unknown event {event!r}")
    transaction.on_commit(lambda: _dispatch(event, payload))
