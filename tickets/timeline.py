from .models import Timeline


def record(ticket, action, actor, details="", old_status="", new_status="", meta=None, work_order=None):
    return Timeline.objects.create(
        ticket=ticket,
        work_order=work_order,
        action=action,
        actor=actor,
        old_status=old_status or "",
        new_status=new_status or "",
        details=details,
        meta=meta,
    )


def log_created(ticket, actor):
    return record(ticket, Timeline.Action.CREATED, actor, new_status=ticket.status, details="Ticket created")


def log_status_change(ticket, actor, old_status, new_status, details="", meta=None):
    return record(
        ticket,
        Timeline.Action.STATUS_CHANGED,
        actor,
        details=details or f"{old_status} → {new_status}",
        old_status=old_status,
        new_status=new_status,
        meta=meta,
    )


def log_assigned(ticket, actor, assignee):
    return record(
        ticket,
        Timeline.Action.ASSIGNED,
        actor,
        details=f"Assigned to {assignee.get_full_name() or assignee.username}",
        meta={'assignee_id': assignee.pk},
    )


def log_attachments(ticket, actor, filenames):
    return record(
        ticket,
        Timeline.Action.ATTACHMENT_ADDED,
        actor,
        details=f"{len(filenames)} attachment(s)",
        meta={'files': filenames},
    )
