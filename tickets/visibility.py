"""
Row-level visibility of tickets and work orders.

List endpoints and single-record checks go through the same querysets, so a
record shows up in a list exactly when its detail is accessible.
"""
from django.db.models import Count, Exists, OuterRef, Q

from .constants import (
    ACTIVE_STATUSES,
    DECLINED_STATUSES,
    FINISHED_STATUSES,
    PENDING_STATUSES,
    Role,
    STATUS_FILTER_GROUPS,
    Scope,
    TicketStatus,
    TicketType,
)
from .exceptions import AuthorizationDenied
from .models import Ticket, WorkOrder
from .roles import STAFF_ROLES, get_user_roles, is_staffish, users_with_role


def _has_work_orders():
    return Exists(WorkOrder.objects.filter(ticket_id=OuterRef('pk')))


def _role_filter(user, roles):
    """Q over Ticket for a non-staff user: own requests plus what their roles add."""
    q = Q(requester_id=user.pk)
    if Role.TEKNISI in roles:
        q |= Q(assignee_id=user.pk)
    if Role.ADMIN_PENYEDIA in roles:
        q |= Q(_has_work_orders())
    return q


def apply_scope(qs, user, scope):
    if not scope:
        return qs
    if scope == Scope.MY:
        return qs.filter(Q(requester_id=user.pk) | Q(assignee_id=user.pk))
    if scope == Scope.ASSIGNED:
        return qs.filter(assignee_id=user.pk)
    if scope == Scope.WORK_ORDER_NEEDED:
        return qs.filter(_has_work_orders())
    return qs


def filter_by_status(qs, value):
    """Narrow by a status, a comma list of statuses or a group keyword."""
    if not value or value == 'all':
        return qs
    if value in STATUS_FILTER_GROUPS:
        return qs.filter(status__in=STATUS_FILTER_GROUPS[value])
    if ',' in value:
        return qs.filter(status__in=[s.strip() for s in value.split(',') if s.strip()])
    return qs.filter(status=value)


def visible_tickets(user, scope=None, qs=None):
    qs = Ticket.objects.all() if qs is None else qs
    roles = get_user_roles(user)
    if roles.isdisjoint(STAFF_ROLES):
        if user is None or not user.is_authenticated:
            return qs.none()
        qs = qs.filter(_role_filter(user, roles))
    return apply_scope(qs, user, scope)


def visible_work_orders(user, qs=None):
    qs = WorkOrder.objects.all() if qs is None else qs
    roles = get_user_roles(user)
    if not roles.isdisjoint(STAFF_ROLES | {Role.ADMIN_PENYEDIA}):
        return qs
    if user is None or not user.is_authenticated:
        return qs.none()
    q = Q(ticket__requester_id=user.pk)
    if Role.TEKNISI in roles:
        q |= Q(ticket__assignee_id=user.pk)
    return qs.filter(q)


def ensure_ticket_visible(user, ticket):
    if not visible_tickets(user).filter(pk=ticket.pk).exists():
        raise AuthorizationDenied("You do not have access to this ticket.")
    return ticket


def ensure_work_order_visible(user, work_order):
    if not visible_work_orders(user).filter(pk=work_order.pk).exists():
        raise AuthorizationDenied("You do not have access to this work order.")
    return work_order


def ticket_counts(user, scope=None):
    qs = visible_tickets(user, scope=scope)
    return qs.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status__in=PENDING_STATUSES)),
        active=Count('id', filter=Q(status__in=ACTIVE_STATUSES)),
        finished=Count('id', filter=Q(status__in=FINISHED_STATUSES)),
        declined=Count('id', filter=Q(status__in=DECLINED_STATUSES)),
    )


def technician_stats(user):
    """Active workload per technician, for picking an assignee."""
    if not is_staffish(user):
        raise AuthorizationDenied("Only admins can view technician workload.")
    technicians = users_with_role(Role.TEKNISI).annotate(
        active_tickets=Count('assigned_tickets', filter=Q(assigned_tickets__status__in=ACTIVE_STATUSES))
    ).order_by('id')
    return [
        {'id': tech.id, 'name': tech.get_full_name() or tech.username, 'active_tickets': tech.active_tickets}
        for tech in technicians
    ]


def zoom_booking_stats(user):
    qs = Ticket.objects.filter(type=TicketType.ZOOM_MEETING)
    if not is_staffish(user):
        qs = qs.filter(requester_id=user.pk)
    return qs.aggregate(
        all=Count('id'),
        pending=Count('id', filter=Q(status=TicketStatus.PENDING_REVIEW)),
        approved=Count('id', filter=Q(status=TicketStatus.APPROVED)),
        rejected=Count('id', filter=Q(status=TicketStatus.REJECTED)),
    )
