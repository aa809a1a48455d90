import re

from django.core import mail
from django.test import TestCase

from tickets import events, services
from tickets.constants import RepairType, Role, TicketStatus, TicketType
from tickets.exceptions import AuthorizationDenied, ConflictDetected, NotFound, RaceLost, ValidationFailed
from tickets.models import Notification, Ticket, Timeline

from .helpers import (
    make_asset,
    make_diagnosis,
    make_perbaikan,
    make_user,
    make_zoom_account,
    make_zoom_booking,
    t,
    tomorrow,
)


class ServiceTestCase(TestCase):
    def setUp(self):
        self.requester = make_user("pegawai1", Role.PEGAWAI)
        self.admin = make_user("admin1", Role.ADMIN_LAYANAN)
        self.tech = make_user("tech1", Role.TEKNISI)


class CreateTicketTests(ServiceTestCase):
    def perbaikan_data(self, **extra):
        data = {
            'type': TicketType.PERBAIKAN,
            'title': "Monitor berkedip",
            'description': "Layar berkedip sejak pagi",
            'severity': 'high',
            'asset_code': "PC-001",
            'asset_unit_number': "1",
        }
        data.update(extra)
        return data

    def zoom_data(self, start="10:00", end="11:00"):
        return {
            'type': TicketType.ZOOM_MEETING,
            'title': "Rapat evaluasi",
            'description': "Evaluasi bulanan",
            'zoom_date': tomorrow(),
            'zoom_start_time': t(start),
            'zoom_end_time': t(end),
        }

    def test_perbaikan_starts_submitted(self):
        make_asset()
        with self.captureOnCommitCallbacks(execute=True):
            ticket = services.create_ticket(self.requester, self.perbaikan_data())
        self.assertEqual(ticket.status, TicketStatus.SUBMITTED)
        self.assertRegex(ticket.ticket_number, r"^PRB-\d{4}-\d{2}-0001$")
        self.assertEqual(ticket.timeline.get().action, Timeline.Action.CREATED)
        self.assertTrue(Notification.objects.filter(user=self.admin, ticket=ticket).exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(ticket.ticket_number, mail.outbox[0].subject)

    def test_ticket_numbers_increment(self):
        make_asset()
        first = services.create_ticket(self.requester, self.perbaikan_data())
        second = services.create_ticket(self.requester, self.perbaikan_data())
        n1 = int(first.ticket_number.rsplit('-', 1)[1])
        n2 = int(second.ticket_number.rsplit('-', 1)[1])
        self.assertEqual(n2, n1 + 1)

    def test_unknown_asset_is_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_ticket(self.requester, self.perbaikan_data(asset_code="XX-404"))
        self.assertIn('asset_code', ctx.exception.detail)
        self.assertFalse(Ticket.objects.exists())

    def test_zoom_is_allocated_on_creation(self):
        account = make_zoom_account("zoom-a")
        ticket = services.create_ticket(self.requester, self.zoom_data())
        self.assertEqual(ticket.status, TicketStatus.PENDING_REVIEW)
        self.assertEqual(ticket.zoom_account_id, account.id)
        self.assertEqual(ticket.zoom_duration, 60)
        self.assertTrue(re.match(r"^ZOOM-\d{4}-\d{2}-\d{4}$", ticket.ticket_number))

    def test_zoom_without_free_account(self):
        account = make_zoom_account("zoom-a")
        make_zoom_booking(self.requester, account, "09:00", "12:00")
        with self.assertRaises(ValidationFailed) as ctx:
            services.create_ticket(self.requester, self.zoom_data())
        self.assertIn('zoom_account', ctx.exception.detail)


class UpdateTicketTests(ServiceTestCase):
    def test_requester_edits_pending_ticket(self):
        ticket = make_perbaikan(self.requester)
        ticket = services.update_ticket(ticket, self.requester, {'title': "Judul baru"})
        self.assertEqual(ticket.title, "Judul baru")
        entry = ticket.timeline.get(action=Timeline.Action.UPDATED)
        self.assertEqual(entry.meta, {'fields': ['title']})

    def test_requester_cannot_edit_after_review(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.ASSIGNED, assignee=self.tech)
        with self.assertRaises(ValidationFailed):
            services.update_ticket(ticket, self.requester, {'title': "Judul baru"})

    def test_type_cannot_change(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(ValidationFailed) as ctx:
            services.update_ticket(ticket, self.admin, {'type': TicketType.ZOOM_MEETING})
        self.assertIn('type', ctx.exception.detail)

    def test_model_refuses_type_change(self):
        ticket = Ticket.objects.get(pk=make_perbaikan(self.requester).pk)
        ticket.type = TicketType.ZOOM_MEETING
        with self.assertRaises(ValueError):
            ticket.save()

    def test_perbaikan_refuses_zoom_fields(self):
        ticket = make_perbaikan(self.requester)
        self.assertTrue(ticket.is_perbaikan)
        ticket.zoom_date = tomorrow()
        with self.assertRaises(ValueError):
            ticket.save()
        with self.assertRaises(ValueError):
            make_perbaikan(self.requester, asset_code="", asset_unit_number="")

    def test_zoom_refuses_asset_fields(self):
        booking = make_zoom_booking(self.requester, make_zoom_account("zoom-a"), "10:00", "11:00")
        self.assertTrue(booking.is_zoom)
        booking.asset_code = "PC-001"
        with self.assertRaises(ValueError):
            booking.save()
        booking.refresh_from_db()
        self.assertEqual(booking.asset_code, "")

    def test_stranger_cannot_edit(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(AuthorizationDenied):
            services.update_ticket(ticket, make_user("pegawai2", Role.PEGAWAI), {'title': "x"})


class AssignTicketTests(ServiceTestCase):
    def test_assign_moves_to_assigned(self):
        ticket = make_perbaikan(self.requester)
        with self.captureOnCommitCallbacks(execute=True):
            ticket = services.assign_ticket(ticket, self.admin, self.tech.pk, notes="Segera")
        self.assertEqual(ticket.status, TicketStatus.ASSIGNED)
        self.assertEqual(ticket.assignee, self.tech)
        actions = list(ticket.timeline.values_list('action', flat=True))
        self.assertEqual(actions, [Timeline.Action.STATUS_CHANGED, Timeline.Action.ASSIGNED])
        self.assertTrue(Notification.objects.filter(user=self.tech, ticket=ticket).exists())
        self.assertTrue(Notification.objects.filter(user=self.requester, ticket=ticket).exists())

    def test_reassign_keeps_status(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.ASSIGNED, assignee=self.tech)
        other = make_user("tech2", Role.TEKNISI)
        ticket = services.assign_ticket(ticket, self.admin, other.pk)
        self.assertEqual(ticket.status, TicketStatus.ASSIGNED)
        self.assertEqual(ticket.assignee, other)
        self.assertEqual(ticket.timeline.get(action=Timeline.Action.STATUS_CHANGED).details, "Ticket reassigned")

    def test_assignee_must_be_technician(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(ValidationFailed):
            services.assign_ticket(ticket, self.admin, self.requester.pk)

    def test_unknown_assignee(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(NotFound):
            services.assign_ticket(ticket, self.admin, 987654)

    def test_only_admin_layanan_assigns(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(AuthorizationDenied):
            services.assign_ticket(ticket, self.tech, self.tech.pk)

    def test_in_progress_ticket_cannot_be_assigned(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.IN_PROGRESS, assignee=self.tech)
        with self.assertRaises(ValidationFailed):
            services.assign_ticket(ticket, self.admin, self.tech.pk)


class UpdateStatusTests(ServiceTestCase):
    def test_full_repair_cycle(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.IN_PROGRESS, assignee=self.tech)
        make_diagnosis(ticket, self.tech, RepairType.DIRECT_REPAIR)
        ticket = services.update_status(ticket, self.tech, TicketStatus.WAITING_FOR_SUBMITTER,
                                        completion_data={'action_taken': "Ganti kabel"})
        self.assertEqual(ticket.form_data['completion_info']['action_taken'], "Ganti kabel")
        self.assertEqual(ticket.form_data['completion_info']['completed_by'], "tech1")

        with self.captureOnCommitCallbacks(execute=True):
            ticket = services.update_status(ticket, self.requester, TicketStatus.CLOSED)
        self.assertEqual(ticket.status, TicketStatus.CLOSED)
        self.assertTrue(Notification.objects.filter(
            user=self.requester, ticket=ticket, level=Notification.Level.SUCCESS
        ).exists())

    def test_illegal_transition(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.CLOSED, assignee=self.tech)
        with self.assertRaises(ValidationFailed):
            services.update_status(ticket, self.admin, TicketStatus.IN_PROGRESS)

    def test_requester_may_only_cancel_pending(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(AuthorizationDenied):
            services.update_status(ticket, self.requester, TicketStatus.APPROVED)
        ticket = services.update_status(ticket, self.requester, TicketStatus.CANCELLED)
        self.assertEqual(ticket.status, TicketStatus.CANCELLED)

    def test_assign_target_needs_assign_route(self):
        boss = make_user("boss", Role.SUPER_ADMIN)
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(ValidationFailed) as ctx:
            services.update_status(ticket, boss, TicketStatus.ASSIGNED)
        self.assertIn('/assign/', ctx.exception.detail['status'][0])
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.SUBMITTED)
        self.assertIsNone(ticket.assignee)
        self.assertFalse(ticket.timeline.exists())

    def test_approval_targets_need_their_routes(self):
        account = make_zoom_account("zoom-a")
        booking = make_zoom_booking(self.requester, account, "10:00", "11:00", status=TicketStatus.PENDING_REVIEW)
        for target in (TicketStatus.APPROVED, TicketStatus.REJECTED):
            with self.assertRaises(ValidationFailed):
                services.update_status(booking, self.admin, target)
            with self.assertRaises(ValidationFailed):
                services.update_status(make_perbaikan(self.requester), self.admin, target)
        booking.refresh_from_db()
        self.assertEqual(booking.status, TicketStatus.PENDING_REVIEW)
        self.assertEqual(booking.rejection_reason, "")

    def test_other_technician_is_denied(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.IN_PROGRESS, assignee=self.tech)
        with self.assertRaises(AuthorizationDenied):
            services.update_status(ticket, make_user("tech2", Role.TEKNISI), TicketStatus.ON_HOLD)

    def test_mark_ready_is_checked_after_the_gate(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.ON_HOLD, assignee=self.tech)
        make_diagnosis(ticket, self.tech, RepairType.NEED_VENDOR)
        with self.assertRaises(ValidationFailed):
            services.update_status(ticket, self.tech, TicketStatus.CLOSED, mark_work_orders_ready=True)
        ticket = services.update_status(ticket, self.tech, TicketStatus.IN_PROGRESS, mark_work_orders_ready=True)
        self.assertTrue(ticket.work_orders_ready)

    def test_status_entry_keeps_notes(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.IN_PROGRESS, assignee=self.tech)
        services.update_status(ticket, self.tech, TicketStatus.ON_HOLD, notes="Menunggu user",
                               estimated_schedule="Senin")
        entry = ticket.timeline.get(action=Timeline.Action.STATUS_CHANGED)
        self.assertEqual(entry.old_status, TicketStatus.IN_PROGRESS)
        self.assertEqual(entry.new_status, TicketStatus.ON_HOLD)
        self.assertIn("Menunggu user", entry.details)
        self.assertEqual(entry.meta, {'notes': "Menunggu user", 'estimated_schedule': "Senin"})

    def test_stale_status_loses_the_race(self):
        ticket = make_perbaikan(self.requester, status=TicketStatus.IN_PROGRESS, assignee=self.tech)
        stale = Ticket.objects.get(pk=ticket.pk)
        Ticket.objects.filter(pk=ticket.pk).update(status=TicketStatus.ON_HOLD)
        with self.assertRaises(RaceLost):
            services.set_status(stale, TicketStatus.CANCELLED)
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, TicketStatus.ON_HOLD)


class ApprovalTests(ServiceTestCase):
    def test_approve_and_reject_perbaikan(self):
        ticket = services.approve_ticket(make_perbaikan(self.requester), self.admin)
        self.assertEqual(ticket.status, TicketStatus.APPROVED)
        with self.assertRaises(ValidationFailed):
            services.approve_ticket(ticket, self.admin)

        ticket = services.reject_ticket(make_perbaikan(self.requester), self.admin, "Bukan masalah IT")
        self.assertEqual(ticket.status, TicketStatus.REJECTED)
        self.assertEqual(ticket.rejection_reason, "Bukan masalah IT")
        self.assertEqual(ticket.timeline.get().action, Timeline.Action.REJECTED)

    def test_approval_needs_admin_layanan(self):
        with self.assertRaises(AuthorizationDenied):
            services.approve_ticket(make_perbaikan(self.requester), make_user("boss", Role.SUPER_ADMIN))


class ZoomApprovalTests(ServiceTestCase):
    def setUp(self):
        super().setUp()
        self.account_a = make_zoom_account("zoom-a", priority=1)
        self.account_b = make_zoom_account("zoom-b", priority=2)
        self.booking = make_zoom_booking(self.requester, self.account_a, "10:00", "11:00",
                                         status=TicketStatus.PENDING_REVIEW)

    def test_approve_on_allocated_account(self):
        with self.captureOnCommitCallbacks(execute=True):
            ticket = services.approve_zoom(self.booking, self.admin, meeting_link="https://zoom.us/j/123",
                                           meeting_id="123", passcode="abc")
        self.assertEqual(ticket.status, TicketStatus.APPROVED)
        self.assertEqual(ticket.zoom_meeting_link, "https://zoom.us/j/123")
        self.assertEqual(list(ticket.timeline.values_list('action', flat=True)), [Timeline.Action.ZOOM_APPROVED])
        self.assertTrue(Notification.objects.filter(user=self.requester, title="Zoom Disetujui").exists())

    def test_switching_account_is_recorded(self):
        ticket = services.approve_zoom(self.booking, self.admin, zoom_account_id=self.account_b.id)
        self.assertEqual(ticket.zoom_account_id, self.account_b.id)
        entry = ticket.timeline.get(action=Timeline.Action.UPDATED)
        self.assertEqual(entry.meta, {'from': self.account_a.id, 'to': self.account_b.id})

    def test_conflicting_account_is_refused(self):
        other = make_zoom_booking(self.requester, self.account_b, "10:30", "11:30")
        with self.assertRaises(ConflictDetected) as ctx:
            services.approve_zoom(self.booking, self.admin, zoom_account_id=self.account_b.id)
        self.assertEqual([c['id'] for c in ctx.exception.conflicts], [other.id])
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, TicketStatus.PENDING_REVIEW)

    def test_reject_zoom(self):
        with self.captureOnCommitCallbacks(execute=True):
            ticket = services.reject_zoom(self.booking, self.admin, "Jadwal bentrok")
        self.assertEqual(ticket.status, TicketStatus.REJECTED)
        self.assertEqual(ticket.rejection_reason, "Jadwal bentrok")
        note = Notification.objects.get(user=self.requester)
        self.assertEqual(note.level, Notification.Level.ERROR)
        self.assertIn("Jadwal bentrok", note.message)

    def test_perbaikan_routes_are_separate(self):
        with self.assertRaises(ValidationFailed):
            services.approve_ticket(self.booking, self.admin)
        with self.assertRaises(ValidationFailed):
            services.approve_zoom(make_perbaikan(self.requester), self.admin)


class DeleteTicketTests(ServiceTestCase):
    def test_only_staff_delete(self):
        ticket = make_perbaikan(self.requester)
        with self.assertRaises(AuthorizationDenied):
            services.delete_ticket(ticket, self.requester)
        services.delete_ticket(ticket, self.admin)
        self.assertFalse(Ticket.objects.filter(pk=ticket.pk).exists())


class TimelineTests(ServiceTestCase):
    def test_entries_are_append_only(self):
        ticket = services.approve_ticket(make_perbaikan(self.requester), self.admin)
        entry = ticket.timeline.get()
        entry.details = "rewritten"
        with self.assertRaises(ValueError):
            entry.save()

    def test_unknown_event(self):
        with self.assertRaises(KeyError):
            events.emit('ticket.exploded', ticket=None)

    def test_failing_receiver_does_not_break_others(self):
        def broken(sender, **kwargs):
            raise RuntimeError("boom")

        events.ticket_closed.connect(broken)
        self.addCleanup(events.ticket_closed.disconnect, broken)
        ticket = make_perbaikan(self.requester, status=TicketStatus.IN_PROGRESS, assignee=self.tech)
        make_diagnosis(ticket, self.tech, RepairType.UNREPAIRABLE)
        with self.assertLogs('tickets.events', level='ERROR'):
            with self.captureOnCommitCallbacks(execute=True):
                services.update_status(ticket, self.tech, TicketStatus.CLOSED)
        self.assertTrue(Notification.objects.filter(user=self.requester, title="Tiket Selesai").exists())
