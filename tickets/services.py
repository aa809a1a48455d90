import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from . import events, timeline
from .constants import Role, TicketStatus, TicketType, PENDING_STATUSES
from .exceptions import AuthorizationDenied, ConflictDetected, NotFound, RaceLost, ValidationFailed
from .models import Asset, Attachment, Ticket, Timeline
from .roles import has_role, is_staffish
from .workflow import INITIAL_STATUS, check_transition
from . import zoom

logger = logging.getLogger(__name__)

User = get_user_model()

PERBAIKAN_FIELDS = ('severity', 'asset_code', 'asset_unit_number', 'asset_location')
ZOOM_FIELDS = (
    'zoom_date', 'zoom_start_time', 'zoom_end_time', 'zoom_duration',
    'zoom_estimated_participants', 'zoom_co_hosts', 'zoom_breakout_rooms',
)
UPDATABLE_FIELDS = ('title', 'description', 'form_data')


def display_name(user):
    if user is None:
        return "system"
    return user.get_full_name() or user.username


def asset_exists(code, unit_number) -> bool:
    return Asset.objects.filter(code=code, unit_number=unit_number).exists()


def lock_ticket(pk) -> Ticket:
    try:
        return Ticket.objects.select_for_update().get(pk=pk)
    except Ticket.DoesNotExist:
        raise NotFound("Ticket not found.")


def set_status(ticket, new_status, **fields):
    """Conditional write: only succeeds while the row still holds the status we validated against."""
    fields['updated_at'] = timezone.now()
    updated = Ticket.objects.filter(pk=ticket.pk, status=ticket.status).update(status=new_status, **fields)
    if not updated:
        logger.warning("Lost status race on ticket %s (expected %s)", ticket.ticket_number, ticket.status)
        raise RaceLost()
    old_status = ticket.status
    ticket.status = new_status
    for name, value in fields.items():
        setattr(ticket, name, value)
    return old_status


def _require_admin_layanan(actor):
    if not has_role(actor, Role.ADMIN_LAYANAN):
        raise AuthorizationDenied("Only admin layanan can perform this action.")


def _minutes_between(start, end):
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


@transaction.atomic
def create_ticket(actor, data, files=()) -> Ticket:
    ticket_type = data['type']
    ticket = Ticket(
        type=ticket_type,
        title=data['title'],
        description=data['description'],
        form_data=data.get('form_data'),
        requester=actor,
        status=INITIAL_STATUS[ticket_type],
    )

    if ticket_type == TicketType.PERBAIKAN:
        for name in PERBAIKAN_FIELDS:
            setattr(ticket, name, data.get(name) or "")
        if not asset_exists(ticket.asset_code, ticket.asset_unit_number):
            raise ValidationFailed(
                f"Asset {ticket.asset_code}/{ticket.asset_unit_number} is not registered.", field='asset_code'
            )
    else:
        for name in ZOOM_FIELDS:
            setattr(ticket, name, data.get(name))
        if not ticket.zoom_duration:
            ticket.zoom_duration = _minutes_between(ticket.zoom_start_time, ticket.zoom_end_time)
        result = zoom.validate_and_assign(ticket.zoom_date, ticket.zoom_start_time, ticket.zoom_end_time)
        if not result.success:
            raise ValidationFailed(result.message, field='zoom_account')
        ticket.zoom_account_id = result.account_id

    ticket.save()

    names = []
    for f in files:
        Attachment.objects.create(
            ticket=ticket,
            file=f,
            original_name=f.name,
            mime_type=getattr(f, 'content_type', '') or '',
            size=f.size,
            uploaded_by=actor,
        )
        names.append(f.name)

    timeline.log_created(ticket, actor)
    if names:
        timeline.log_attachments(ticket, actor, names)

    events.emit(events.TICKET_CREATED, ticket=ticket, actor=actor)
    logger.info("Ticket %s created by %s", ticket.ticket_number, actor.username)
    return ticket


@transaction.atomic
def update_ticket(ticket, actor, data) -> Ticket:
    ticket = lock_ticket(ticket.pk)
    if not is_staffish(actor):
        if ticket.requester_id != actor.pk:
            raise AuthorizationDenied("Only the requester can edit this ticket.")
        if ticket.status not in PENDING_STATUSES:
            raise ValidationFailed("The ticket can no longer be edited.", field='status')

    if 'type' in data and data['type'] != ticket.type:
        raise ValidationFailed("Ticket type cannot be changed.", field='type')

    changed = [name for name in UPDATABLE_FIELDS if name in data and getattr(ticket, name) != data[name]]
    if not changed:
        return ticket
    for name in changed:
        setattr(ticket, name, data[name])
    ticket.save(update_fields=changed + ['updated_at'])

    timeline.record(ticket, Timeline.Action.UPDATED, actor, details="Ticket updated", meta={'fields': changed})
    logger.info("Ticket %s updated by %s: %s", ticket.ticket_number, actor.username, ", ".join(changed))
    return ticket


@transaction.atomic
def assign_ticket(ticket, actor, assignee_id, notes="") -> Ticket:
    _require_admin_layanan(actor)
    ticket = lock_ticket(ticket.pk)
    if not ticket.is_perbaikan:
        raise ValidationFailed("Only perbaikan tickets can be assigned.", field='type')
    if ticket.status not in (TicketStatus.SUBMITTED, TicketStatus.APPROVED, TicketStatus.ASSIGNED):
        raise ValidationFailed(f"Cannot assign a ticket in status '{ticket.status}'.", field='status')

    try:
        assignee = User.objects.get(pk=assignee_id, is_active=True)
    except User.DoesNotExist:
        raise NotFound("Technician not found.")
    if not has_role(assignee, Role.TEKNISI):
        raise ValidationFailed("The assignee must be a technician.", field='assigned_to')

    old_status = ticket.status
    if old_status != TicketStatus.ASSIGNED:
        check_transition(ticket, TicketStatus.ASSIGNED)
        set_status(ticket, TicketStatus.ASSIGNED, assignee=assignee)
    else:
        ticket.assignee = assignee
        ticket.save(update_fields=['assignee', 'updated_at'])

    if old_status == ticket.status:
        details = notes or "Ticket reassigned"
    else:
        details = notes or f"Ticket assigned ({old_status} → assigned)"
    timeline.log_status_change(ticket, actor, old_status, ticket.status, details=details)
    timeline.log_assigned(ticket, actor, assignee)

    events.emit(events.TICKET_ASSIGNED, ticket=ticket, actor=actor, assignee=assignee)
    logger.info("Ticket %s assigned to %s by %s", ticket.ticket_number, assignee.username, actor.username)
    return ticket


def _authorize_status_update(ticket, actor, new_status):
    if is_staffish(actor):
        return
    if has_role(actor, Role.TEKNISI) and ticket.assignee_id == actor.pk:
        return
    if ticket.requester_id == actor.pk:
        if new_status == TicketStatus.CANCELLED and ticket.status in PENDING_STATUSES:
            return
        if new_status == TicketStatus.CLOSED and ticket.status == TicketStatus.WAITING_FOR_SUBMITTER:
            return
    raise AuthorizationDenied("You are not allowed to change the status of this ticket.")


# Targets owned by their own operations (assignee, approval checks, rejection reason)
DEDICATED_TARGETS = {
    TicketStatus.ASSIGNED: "Use /assign/ to assign a technician.",
    TicketStatus.APPROVED: "Use /approve/ (or /approve-zoom/) to approve a ticket.",
    TicketStatus.REJECTED: "Use /reject/ (or /reject-zoom/) to reject a ticket.",
}


@transaction.atomic
def update_status(ticket, actor, new_status, notes="", mark_work_orders_ready=False,
                  completion_data=None, estimated_schedule=None) -> Ticket:
    ticket = lock_ticket(ticket.pk)
    _authorize_status_update(ticket, actor, new_status)
    if new_status in DEDICATED_TARGETS:
        raise ValidationFailed(DEDICATED_TARGETS[new_status], field='status')
    check_transition(ticket, new_status)

    fields = {}
    if mark_work_orders_ready:
        fields['work_orders_ready'] = True
    if completion_data:
        now = timezone.now()
        form_data = dict(ticket.form_data or {})
        form_data['completion_info'] = {
            **completion_data,
            'completed_at': now.isoformat(),
            'completed_by': display_name(actor),
        }
        fields['form_data'] = form_data

    old_status = set_status(ticket, new_status, **fields)

    details = [f"Status changed from {old_status} to {new_status}"]
    if notes:
        details.append(notes)
    if estimated_schedule:
        details.append(f"Estimated schedule: {estimated_schedule}")
    meta = {
        k: v for k, v in (
            ('notes', notes),
            ('estimated_schedule', estimated_schedule),
            ('mark_work_orders_ready', mark_work_orders_ready or None),
        ) if v
    }
    timeline.log_status_change(ticket, actor, old_status, new_status, details=". ".join(details), meta=meta or None)

    if new_status == TicketStatus.CLOSED:
        events.emit(events.TICKET_CLOSED, ticket=ticket, actor=actor, old_status=old_status)
    else:
        events.emit(events.TICKET_STATUS_CHANGED, ticket=ticket, actor=actor,
                    old_status=old_status, new_status=new_status)
    logger.info("Ticket %s: %s -> %s by %s", ticket.ticket_number, old_status, new_status, actor.username)
    return ticket


def _require_pending(ticket):
    if ticket.status not in PENDING_STATUSES:
        raise ValidationFailed(f"Ticket is already '{ticket.status}'.", field='status')


@transaction.atomic
def approve_ticket(ticket, actor) -> Ticket:
    _require_admin_layanan(actor)
    ticket = lock_ticket(ticket.pk)
    if not ticket.is_perbaikan:
        raise ValidationFailed("Use zoom approval for zoom tickets.", field='type')
    _require_pending(ticket)
    check_transition(ticket, TicketStatus.APPROVED)

    old_status = set_status(ticket, TicketStatus.APPROVED)
    timeline.record(ticket, Timeline.Action.APPROVED, actor, details="Ticket approved",
                    old_status=old_status, new_status=ticket.status)

    events.emit(events.TICKET_STATUS_CHANGED, ticket=ticket, actor=actor,
                old_status=old_status, new_status=ticket.status)
    logger.info("Ticket %s approved by %s", ticket.ticket_number, actor.username)
    return ticket


@transaction.atomic
def reject_ticket(ticket, actor, reason) -> Ticket:
    _require_admin_layanan(actor)
    ticket = lock_ticket(ticket.pk)
    if not ticket.is_perbaikan:
        raise ValidationFailed("Use zoom rejection for zoom tickets.", field='type')
    _require_pending(ticket)
    check_transition(ticket, TicketStatus.REJECTED)

    old_status = set_status(ticket, TicketStatus.REJECTED, rejection_reason=reason)
    timeline.record(ticket, Timeline.Action.REJECTED, actor, details=f"Ticket rejected: {reason}",
                    old_status=old_status, new_status=ticket.status, meta={'reason': reason})

    events.emit(events.TICKET_STATUS_CHANGED, ticket=ticket, actor=actor,
                old_status=old_status, new_status=ticket.status)
    logger.info("Ticket %s rejected by %s", ticket.ticket_number, actor.username)
    return ticket


@transaction.atomic
def approve_zoom(ticket, actor, zoom_account_id=None, meeting_link="", meeting_id="", passcode="") -> Ticket:
    _require_admin_layanan(actor)
    ticket = lock_ticket(ticket.pk)
    if not ticket.is_zoom:
        raise ValidationFailed("Not a zoom ticket.", field='type')
    _require_pending(ticket)
    check_transition(ticket, TicketStatus.APPROVED)

    account_id = zoom_account_id or ticket.zoom_account_id
    if account_id is None:
        raise ValidationFailed("A zoom account is required.", field='zoom_account_id')
    account = zoom.lock_account(account_id)
    conflicts = zoom.get_conflicts(
        account.id, ticket.zoom_date, ticket.zoom_start_time, ticket.zoom_end_time, exclude_ticket_id=ticket.pk
    )
    if conflicts:
        logger.warning("Zoom approval for %s blocked: %d conflict(s) on %s",
                       ticket.ticket_number, len(conflicts), account.account_id)
        raise ConflictDetected(conflicts, detail=f"Akun {account.name} sudah dipakai pada waktu tersebut.")

    previous_account_id = ticket.zoom_account_id
    old_status = set_status(
        ticket, TicketStatus.APPROVED,
        zoom_account=account,
        zoom_meeting_link=meeting_link or "",
        zoom_meeting_id=meeting_id or "",
        zoom_passcode=passcode or "",
    )

    timeline.record(ticket, Timeline.Action.ZOOM_APPROVED, actor, details="Zoom booking approved",
                    old_status=old_status, new_status=ticket.status, meta={'zoom_account_id': account.id})
    if previous_account_id != account.id:
        timeline.record(ticket, Timeline.Action.UPDATED, actor,
                        details=f"Zoom account changed to {account.name}",
                        meta={'from': previous_account_id, 'to': account.id})

    events.emit(events.TICKET_ZOOM_APPROVED, ticket=ticket, actor=actor)
    logger.info("Zoom ticket %s approved on %s by %s", ticket.ticket_number, account.account_id, actor.username)
    return ticket


@transaction.atomic
def reject_zoom(ticket, actor, reason) -> Ticket:
    _require_admin_layanan(actor)
    ticket = lock_ticket(ticket.pk)
    if not ticket.is_zoom:
        raise ValidationFailed("Not a zoom ticket.", field='type')
    _require_pending(ticket)
    check_transition(ticket, TicketStatus.REJECTED)

    old_status = set_status(ticket, TicketStatus.REJECTED, rejection_reason=reason)
    timeline.record(ticket, Timeline.Action.ZOOM_REJECTED, actor, details=f"Zoom booking rejected: {reason}",
                    old_status=old_status, new_status=ticket.status, meta={'reason': reason})

    events.emit(events.TICKET_ZOOM_REJECTED, ticket=ticket, actor=actor, reason=reason)
    logger.info("Zoom ticket %s rejected by %s", ticket.ticket_number, actor.username)
    return ticket


def _delete_files(files):
    for f in files:
        f.delete(save=False)


@transaction.atomic
def delete_ticket(ticket, actor):
    if not is_staffish(actor):
        raise AuthorizationDenied("Only administrators can delete tickets.")
    ticket = lock_ticket(ticket.pk)
    files = [a.file for a in ticket.attachments.all()]
    number = ticket.ticket_number
    ticket.delete()
    transaction.on_commit(lambda: _delete_files(files))
    logger.info("Ticket %s deleted by %s", number, actor.username)
