import logging

from django.db import transaction

from . import events, timeline
from .constants import RepairType, Role, TicketStatus, WORK_ORDER_REPAIR_TYPES
from .exceptions import AuthorizationDenied, NotFound, ValidationFailed
from .models import TicketDiagnosis, Timeline
from .roles import has_role
from .services import set_status, lock_ticket

logger = logging.getLogger(__name__)

DIAGNOSIS_FIELDS = (
    'problem_description', 'problem_category', 'repair_type', 'repair_description',
    'unrepairable_reason', 'alternative_solution', 'technician_notes', 'estimated_days',
)

CLOSED_FOR_DIAGNOSIS = (TicketStatus.CLOSED, TicketStatus.REJECTED, TicketStatus.CANCELLED)


def needs_work_order(repair_type) -> bool:
    return repair_type in WORK_ORDER_REPAIR_TYPES


def _is_assigned_technician(ticket, user):
    return has_role(user, Role.TEKNISI) and ticket.assignee_id == user.pk


def get_diagnosis(ticket) -> TicketDiagnosis:
    try:
        return TicketDiagnosis.objects.select_related('technician').get(ticket_id=ticket.pk)
    except TicketDiagnosis.DoesNotExist:
        raise NotFound("Diagnosis not found.")


@transaction.atomic
def submit_diagnosis(ticket, actor, fields):
    """
    Create or overwrite the diagnosis of a perbaikan ticket.

    Only the ticket's assigned technician may do this. The first diagnosis of
    an ``assigned`` ticket moves it to ``in_progress``. Returns
    ``(diagnosis, created)``.
    """
    ticket = lock_ticket(ticket.pk)
    if not _is_assigned_technician(ticket, actor):
        raise AuthorizationDenied("Ticket not assigned to you.")
    if not ticket.is_perbaikan:
        raise ValidationFailed("Only perbaikan tickets can be diagnosed.", field='type')
    if ticket.status in CLOSED_FOR_DIAGNOSIS:
        raise ValidationFailed(f"Cannot diagnose a ticket in status '{ticket.status}'.", field='status')

    defaults = {name: fields[name] for name in DIAGNOSIS_FIELDS if name in fields}
    defaults['technician'] = actor
    diagnosis, created = TicketDiagnosis.objects.update_or_create(ticket=ticket, defaults=defaults)

    label = RepairType(diagnosis.repair_type).label
    timeline.record(
        ticket, Timeline.Action.DIAGNOSIS_SAVED, actor,
        details=f"Diagnosis {'completed' if created else 'updated'}: {label}",
        meta={'repair_type': diagnosis.repair_type, 'needs_work_order': diagnosis.needs_work_order},
    )

    if created and ticket.status == TicketStatus.ASSIGNED:
        old_status = set_status(ticket, TicketStatus.IN_PROGRESS)
        timeline.log_status_change(ticket, actor, old_status, ticket.status, details="Diagnosis started repair")
        events.emit(events.TICKET_STATUS_CHANGED, ticket=ticket, actor=actor,
                    old_status=old_status, new_status=ticket.status)

    logger.info("Diagnosis for %s %s by %s (%s)", ticket.ticket_number,
                "created" if created else "updated", actor.username, diagnosis.repair_type)
    return diagnosis, created


@transaction.atomic
def delete_diagnosis(ticket, actor):
    ticket = lock_ticket(ticket.pk)
    if not (_is_assigned_technician(ticket, actor) or has_role(actor, Role.ADMIN_LAYANAN)):
        raise AuthorizationDenied("You are not allowed to delete this diagnosis.")
    diagnosis = get_diagnosis(ticket)
    diagnosis.delete()
    timeline.record(ticket, Timeline.Action.DIAGNOSIS_DELETED, actor, details="Diagnosis deleted")
    logger.info("Diagnosis for %s deleted by %s", ticket.ticket_number, actor.username)
