import datetime
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone

from tickets.constants import TicketStatus, TicketType
from tickets.models import Asset, Ticket, TicketDiagnosis, WorkOrder, ZoomAccount

User = get_user_model()


def make_user(username, *roles, **extra):
    user = User.objects.create_user(username=username, password="pw", email=f"{username}@example.org", **extra)
    for role in roles:
        user.groups.add(Group.objects.get_or_create(name=role)[0])
    return user


def actor(*roles, pk=999):
    """A non-persisted authenticated identity carrying its roles."""
    return SimpleNamespace(pk=pk, id=pk, is_authenticated=True, roles=list(roles), username=f"actor{pk}")


def make_asset(code="PC-001", unit_number="1"):
    return Asset.objects.get_or_create(code=code, unit_number=unit_number, defaults={'name': "PC"})[0]


def make_perbaikan(requester, status=TicketStatus.SUBMITTED, assignee=None, **fields):
    defaults = {
        'type': TicketType.PERBAIKAN,
        'title': "Printer rusak",
        'description': "Tidak bisa mencetak",
        'status': status,
        'severity': 'normal',
        'asset_code': "PC-001",
        'asset_unit_number': "1",
        'requester': requester,
        'assignee': assignee,
    }
    defaults.update(fields)
    return Ticket.objects.create(**defaults)


def make_zoom_account(account_id, priority=0, **fields):
    defaults = {'name': account_id.upper(), 'email': f"{account_id}@example.org", 'priority': priority}
    defaults.update(fields)
    return ZoomAccount.objects.create(account_id=account_id, **defaults)


def tomorrow():
    return timezone.localdate() + datetime.timedelta(days=1)


def t(value):
    return datetime.time.fromisoformat(value)


def make_zoom_booking(requester, account, start, end, date=None, status=TicketStatus.APPROVED, **fields):
    return Ticket.objects.create(
        type=TicketType.ZOOM_MEETING,
        title="Rapat koordinasi",
        description="Rapat mingguan",
        status=status,
        requester=requester,
        zoom_account=account,
        zoom_date=date or tomorrow(),
        zoom_start_time=t(start),
        zoom_end_time=t(end),
        **fields,
    )


def make_diagnosis(ticket, technician, repair_type, **fields):
    defaults = {
        'problem_description': "Kerusakan pada komponen",
        'problem_category': 'hardware',
        'repair_type': repair_type,
        'repair_description': "Ganti komponen" if repair_type == 'direct_repair' else "",
        'unrepairable_reason': "Rusak total" if repair_type == 'unrepairable' else "",
    }
    defaults.update(fields)
    return TicketDiagnosis.objects.create(ticket=ticket, technician=technician, **defaults)


def make_work_order(ticket, creator, wo_type='sparepart', status='requested', **fields):
    if wo_type == 'sparepart' and 'items' not in fields:
        fields['items'] = [{'name': "RAM 8GB", 'quantity': 1, 'unit': "pcs"}]
    return WorkOrder.objects.create(ticket=ticket, type=wo_type, status=status, created_by=creator, **fields)
