import logging

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from .constants import Role, SparepartRequestStatus
from .exceptions import AuthorizationDenied, NotFound, ValidationFailed
from .models import SparepartRequest
from .roles import has_any_role, has_role

logger = logging.getLogger(__name__)

PROCUREMENT_ROLES = (Role.SUPER_ADMIN, Role.ADMIN_PENYEDIA)


def visible_sparepart_requests(user, qs=None):
    qs = SparepartRequest.objects.all() if qs is None else qs
    if has_any_role(user, PROCUREMENT_ROLES):
        return qs
    return qs.filter(requested_by_id=user.pk)


def _lock(pk) -> SparepartRequest:
    try:
        return SparepartRequest.objects.select_for_update().get(pk=pk)
    except SparepartRequest.DoesNotExist:
        raise NotFound("Sparepart request not found.")


def _require_procurement(actor):
    if not has_any_role(actor, PROCUREMENT_ROLES):
        raise AuthorizationDenied("Only admin penyedia can process sparepart requests.")


def _move(request, new_status):
    if not request.can_transition_to(new_status):
        raise ValidationFailed(
            f"Cannot change status from {request.status} to {new_status}.", field='status'
        )
    old_status = request.status
    request.status = new_status
    return old_status


@transaction.atomic
def create_sparepart_request(actor, work_order, data) -> SparepartRequest:
    ticket = work_order.ticket
    if not has_any_role(actor, PROCUREMENT_ROLES):
        if not (has_role(actor, Role.TEKNISI) and ticket.assignee_id == actor.pk):
            raise AuthorizationDenied("Only the assigned technician can request spareparts for this work order.")

    request = SparepartRequest.objects.create(
        work_order=work_order,
        item_name=data['item_name'],
        quantity_requested=data['quantity_requested'],
        unit=data['unit'],
        estimated_price=data.get('estimated_price'),
        notes=data.get('notes') or "",
        requested_by=actor,
    )
    logger.info("Sparepart request %s (%s x%s) for work order %s by %s",
                request.pk, request.item_name, request.quantity_requested, work_order.pk, actor.username)
    return request


@transaction.atomic
def approve_sparepart_request(request, actor) -> SparepartRequest:
    _require_procurement(actor)
    request = _lock(request.pk)
    _move(request, SparepartRequestStatus.APPROVED)
    request.approved_by = actor
    request.approved_at = timezone.now()
    request.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])
    logger.info("Sparepart request %s approved by %s", request.pk, actor.username)
    return request


@transaction.atomic
def reject_sparepart_request(request, actor, reason) -> SparepartRequest:
    _require_procurement(actor)
    if not (reason or "").strip():
        raise ValidationFailed("A rejection reason is required.", field='rejection_reason')
    request = _lock(request.pk)
    _move(request, SparepartRequestStatus.REJECTED)
    request.rejection_reason = reason
    request.save(update_fields=['status', 'rejection_reason', 'updated_at'])
    logger.info("Sparepart request %s rejected by %s", request.pk, actor.username)
    return request


@transaction.atomic
def fulfill_sparepart_request(request, actor) -> SparepartRequest:
    _require_procurement(actor)
    request = _lock(request.pk)
    _move(request, SparepartRequestStatus.FULFILLED)
    request.save(update_fields=['status', 'updated_at'])
    logger.info("Sparepart request %s fulfilled by %s", request.pk, actor.username)
    return request


def sparepart_stats(user):
    qs = visible_sparepart_requests(user)
    by_status = dict.fromkeys(SparepartRequestStatus.values, 0)
    by_status.update(qs.order_by().values_list('status').annotate(n=Count('id')))
    return {'total': sum(by_status.values()), 'by_status': by_status}
