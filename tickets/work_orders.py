import logging

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from . import events, timeline
from .constants import (
    Role,
    TICKET_TERMINAL_STATUSES,
    TicketStatus,
    WORK_ORDER_OPEN_TICKET_STATUSES,
    WORK_ORDER_TERMINAL_STATUSES,
    WorkOrderStatus,
    WorkOrderType,
)
from .exceptions import AuthorizationDenied, NotFound, ValidationFailed
from .models import Ticket, Timeline, WorkOrder
from .roles import has_any_role, has_role
from .services import lock_ticket, set_status
from .visibility import ensure_ticket_visible, visible_work_orders

logger = logging.getLogger(__name__)

PROCUREMENT_ROLES = (Role.SUPER_ADMIN, Role.ADMIN_PENYEDIA)

PAYLOAD_FIELDS = {
    WorkOrderType.SPAREPART: ('items',),
    WorkOrderType.VENDOR: ('vendor_name', 'vendor_contact', 'vendor_description'),
    WorkOrderType.LICENSE: ('license_name', 'license_description'),
}


@transaction.atomic
def recompute_work_orders_ready(ticket_id) -> bool:
    """
    Set ``work_orders_ready`` from the current state of all work orders of the ticket.

    Runs under the ticket row lock, so sibling completions are serialized and the
    last one to commit sees every terminal status. Idempotent; ticket status is
    left alone.
    """
    ticket = lock_ticket(ticket_id)
    statuses = WorkOrder.objects.filter(ticket_id=ticket.pk).values_list('status', flat=True)
    ready = all(s in WORK_ORDER_TERMINAL_STATUSES for s in statuses)
    if ticket.work_orders_ready != ready:
        Ticket.objects.filter(pk=ticket.pk).update(work_orders_ready=ready, updated_at=timezone.now())
        logger.info("Ticket %s work_orders_ready -> %s", ticket.ticket_number, ready)
    return ready


def _lock_work_order(pk) -> WorkOrder:
    try:
        return WorkOrder.objects.select_for_update().get(pk=pk)
    except WorkOrder.DoesNotExist:
        raise NotFound("Work order not found.")


def _can_edit(work_order, actor):
    return work_order.created_by_id == actor.pk or has_any_role(actor, PROCUREMENT_ROLES)


def _payload(wo_type, data):
    return {name: data[name] for name in PAYLOAD_FIELDS[wo_type] if name in data}


@transaction.atomic
def create_work_order(actor, ticket, wo_type, data) -> WorkOrder:
    if not has_role(actor, Role.TEKNISI):
        raise AuthorizationDenied("Only technicians can create work orders.")
    ticket = lock_ticket(ticket.pk)
    ensure_ticket_visible(actor, ticket)
    if not ticket.is_perbaikan:
        raise ValidationFailed("Work orders can only be created for perbaikan tickets.", field='ticket_id')
    if ticket.status not in WORK_ORDER_OPEN_TICKET_STATUSES:
        raise ValidationFailed(
            f"Cannot create a work order for a ticket in status '{ticket.status}'.", field='ticket_id'
        )

    payload = _payload(wo_type, data)
    if wo_type == WorkOrderType.SPAREPART and not payload.get('items'):
        raise ValidationFailed("At least one item is required.", field='items')

    work_order = WorkOrder.objects.create(ticket=ticket, type=wo_type, created_by=actor, **payload)

    if ticket.status != TicketStatus.ON_HOLD:
        old_status = set_status(ticket, TicketStatus.ON_HOLD, work_orders_ready=False)
        timeline.log_status_change(ticket, actor, old_status, ticket.status,
                                   details=f"Waiting for {work_order.get_type_display()} work order")
    elif ticket.work_orders_ready:
        Ticket.objects.filter(pk=ticket.pk).update(work_orders_ready=False, updated_at=timezone.now())
        ticket.work_orders_ready = False

    timeline.record(
        ticket, Timeline.Action.WORK_ORDER_CREATED, actor,
        details=f"Work order created: {wo_type}",
        meta={'type': wo_type, 'status': work_order.status},
        work_order=work_order,
    )
    events.emit(events.WORK_ORDER_CREATED, ticket=ticket, actor=actor, work_order=work_order)
    logger.info("Work order %s (%s) created on %s by %s", work_order.pk, wo_type, ticket.ticket_number, actor.username)
    return work_order


@transaction.atomic
def update_work_order(work_order, actor, data) -> WorkOrder:
    work_order = _lock_work_order(work_order.pk)
    if not _can_edit(work_order, actor):
        raise AuthorizationDenied("You are not allowed to update this work order.")
    if not work_order.is_mutable:
        raise ValidationFailed("Can only update work orders with requested status.", field='status')

    payload = _payload(work_order.type, data)
    if work_order.type == WorkOrderType.SPAREPART and 'items' in payload and not payload['items']:
        raise ValidationFailed("At least one item is required.", field='items')
    if not payload:
        return work_order
    for name, value in payload.items():
        setattr(work_order, name, value)
    work_order.save(update_fields=list(payload) + ['updated_at'])

    timeline.record(
        work_order.ticket, Timeline.Action.WORK_ORDER_UPDATED, actor,
        details="Work order updated", meta={'fields': sorted(payload)}, work_order=work_order,
    )
    logger.info("Work order %s updated by %s", work_order.pk, actor.username)
    return work_order


@transaction.atomic
def delete_work_order(work_order, actor):
    ticket = lock_ticket(work_order.ticket_id)
    if ticket.status in TICKET_TERMINAL_STATUSES:
        raise ValidationFailed(f"Ticket is {ticket.status}; its work orders are frozen.", field='status')
    work_order = _lock_work_order(work_order.pk)
    if not _can_edit(work_order, actor):
        raise AuthorizationDenied("You are not allowed to delete this work order.")
    if not work_order.is_mutable:
        raise ValidationFailed("Can only delete work orders with requested status.", field='status')

    ticket = work_order.ticket
    wo_id = work_order.pk
    work_order.delete()
    timeline.record(ticket, Timeline.Action.WORK_ORDER_DELETED, actor,
                    details="Work order deleted", meta={'work_order_id': wo_id})
    recompute_work_orders_ready(ticket.pk)
    logger.info("Work order %s deleted by %s", wo_id, actor.username)


@transaction.atomic
def update_work_order_status(work_order, actor, new_status, completion_notes="", failure_reason="",
                             vendor_name=None, vendor_contact=None) -> WorkOrder:
    if not has_any_role(actor, PROCUREMENT_ROLES):
        raise AuthorizationDenied("Only admin penyedia can update work order status.")
    # ticket before work order, same order as creation
    ticket = lock_ticket(work_order.ticket_id)
    if ticket.status in TICKET_TERMINAL_STATUSES:
        raise ValidationFailed(f"Ticket is {ticket.status}; its work orders are frozen.", field='status')
    work_order = _lock_work_order(work_order.pk)

    old_status = work_order.status
    if new_status == old_status:
        raise ValidationFailed(f"Work order is already '{old_status}'.", field='status')
    if not work_order.can_transition_to(new_status):
        raise ValidationFailed(f"Cannot change status from {old_status} to {new_status}.", field='status')
    if new_status == WorkOrderStatus.UNSUCCESSFUL and not (failure_reason or "").strip():
        raise ValidationFailed("A failure reason is required.", field='failure_reason')

    work_order.status = new_status
    if vendor_name is not None:
        work_order.vendor_name = vendor_name
    if vendor_contact is not None:
        work_order.vendor_contact = vendor_contact
    if new_status == WorkOrderStatus.COMPLETED:
        work_order.completed_at = timezone.now()
        if completion_notes:
            work_order.completion_notes = completion_notes
    else:
        work_order.completed_at = None
    if new_status == WorkOrderStatus.UNSUCCESSFUL:
        work_order.failure_reason = failure_reason
    work_order.save()

    timeline.record(
        work_order.ticket, Timeline.Action.WORK_ORDER_STATUS_CHANGED, actor,
        details=f"Work order status changed from {old_status} to {new_status}",
        old_status=old_status, new_status=new_status,
        meta={'completion_notes': completion_notes or None, 'failure_reason': failure_reason or None},
        work_order=work_order,
    )
    recompute_work_orders_ready(work_order.ticket_id)
    logger.info("Work order %s: %s -> %s by %s", work_order.pk, old_status, new_status, actor.username)
    return work_order


def work_order_stats(user):
    qs = visible_work_orders(user)
    by_status = dict.fromkeys(WorkOrderStatus.values, 0)
    by_status.update(qs.order_by().values_list('status').annotate(n=Count('id')))
    by_type = dict.fromkeys(WorkOrderType.values, 0)
    by_type.update(qs.order_by().values_list('type').annotate(n=Count('id')))
    recent = [
        {
            'id': wo.id,
            'type': wo.type,
            'status': wo.status,
            'ticket_number': wo.ticket.ticket_number,
            'ticket_title': wo.ticket.title,
            'created_at': wo.created_at.isoformat(),
        }
        for wo in qs.select_related('ticket').order_by('-created_at', '-id')[:10]
    ]
    return {'total': sum(by_status.values()), 'by_status': by_status, 'by_type': by_type, 'recent': recent}
