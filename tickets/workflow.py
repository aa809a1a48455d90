"""
Ticket status rules.

``TRANSITIONS`` lists the allowed edges per ticket type. Entering a status in
``GATED_TARGETS`` additionally requires a diagnosis and, when the diagnosis
calls for procurement, ``work_orders_ready``.
"""
from .constants import TicketStatus as S, TicketType, WORK_ORDER_REPAIR_TYPES
from .exceptions import ValidationFailed
from .models import TicketDiagnosis

PERBAIKAN_TRANSITIONS = {
    S.SUBMITTED: frozenset({S.APPROVED, S.ASSIGNED, S.REJECTED, S.CANCELLED, S.CLOSED}),
    S.PENDING_REVIEW: frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
    S.APPROVED: frozenset({S.ASSIGNED, S.CANCELLED}),
    S.ASSIGNED: frozenset({S.IN_PROGRESS, S.ON_HOLD, S.WAITING_FOR_SUBMITTER, S.CLOSED, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.ON_HOLD, S.WAITING_FOR_SUBMITTER, S.CLOSED, S.CANCELLED}),
    S.ON_HOLD: frozenset({S.IN_PROGRESS, S.WAITING_FOR_SUBMITTER, S.CLOSED, S.CANCELLED}),
    S.WAITING_FOR_SUBMITTER: frozenset({S.IN_PROGRESS, S.CLOSED}),
    S.CLOSED: frozenset(),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
}

ZOOM_TRANSITIONS = {
    S.PENDING_REVIEW: frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
    S.APPROVED: frozenset({S.COMPLETED, S.CLOSED, S.CANCELLED}),
    S.COMPLETED: frozenset({S.CLOSED}),
    S.CLOSED: frozenset(),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
}

TRANSITIONS = {
    TicketType.PERBAIKAN: PERBAIKAN_TRANSITIONS,
    TicketType.ZOOM_MEETING: ZOOM_TRANSITIONS,
}

INITIAL_STATUS = {
    TicketType.PERBAIKAN: S.SUBMITTED,
    TicketType.ZOOM_MEETING: S.PENDING_REVIEW,
}

GATED_TARGETS = {
    TicketType.PERBAIKAN: frozenset({S.CLOSED, S.WAITING_FOR_SUBMITTER}),
    TicketType.ZOOM_MEETING: frozenset(),
}


def can_transition_to(ticket_type, current, target) -> bool:
    return target in TRANSITIONS.get(ticket_type, {}).get(current, frozenset())


def is_terminal(ticket_type, status) -> bool:
    return not TRANSITIONS.get(ticket_type, {}).get(status)


def transition_gate_errors(ticket, target) -> dict:
    if target not in GATED_TARGETS.get(ticket.type, frozenset()):
        return {}
    diagnosis = TicketDiagnosis.objects.filter(ticket_id=ticket.pk).first()
    if diagnosis is None:
        return {'diagnosis': ["Diagnosis is required before the ticket can move to this status."]}
    if diagnosis.repair_type in WORK_ORDER_REPAIR_TYPES and not ticket.work_orders_ready:
        return {'work_orders_ready': [
            "All work orders must be completed or marked unsuccessful before the ticket can move to this status."
        ]}
    return {}


def can_transition(ticket, target) -> bool:
    return (
        can_transition_to(ticket.type, ticket.status, target)
        and not transition_gate_errors(ticket, target)
    )


def check_transition(ticket, target):
    if not can_transition_to(ticket.type, ticket.status, target):
        raise ValidationFailed(
            f"Cannot change status from '{ticket.status}' to '{target}'.", field='status'
        )
    errors = transition_gate_errors(ticket, target)
    if errors:
        raise ValidationFailed(errors)
