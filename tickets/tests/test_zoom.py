import datetime

from django.test import TestCase

from tickets import zoom
from tickets.constants import Role, TicketStatus
from tickets.exceptions import NotFound

from .helpers import make_user, make_zoom_account, make_zoom_booking, t, tomorrow


class ConflictTests(TestCase):
    def setUp(self):
        self.requester = make_user("pegawai1", Role.PEGAWAI)
        self.account = make_zoom_account("zoom-a")
        self.booking = make_zoom_booking(self.requester, self.account, "10:30", "11:30")

    def test_overlap_is_a_conflict(self):
        self.assertTrue(zoom.has_conflict(self.account.id, tomorrow(), t("10:00"), t("11:00")))

    def test_touching_windows_do_not_conflict(self):
        self.assertFalse(zoom.has_conflict(self.account.id, tomorrow(), t("11:30"), t("12:30")))
        self.assertFalse(zoom.has_conflict(self.account.id, tomorrow(), t("09:30"), t("10:30")))

    def test_contained_and_containing_windows(self):
        self.assertTrue(zoom.has_conflict(self.account.id, tomorrow(), t("10:45"), t("11:00")))
        self.assertTrue(zoom.has_conflict(self.account.id, tomorrow(), t("09:00"), t("13:00")))

    def test_other_day_is_free(self):
        other_day = tomorrow() + datetime.timedelta(days=7)
        self.assertFalse(zoom.has_conflict(self.account.id, other_day, t("10:00"), t("11:00")))

    def test_only_pending_and_approved_block(self):
        for status in (TicketStatus.REJECTED, TicketStatus.CANCELLED, TicketStatus.COMPLETED, TicketStatus.CLOSED):
            self.booking.status = status
            self.booking.save(update_fields=['status'])
            self.assertFalse(zoom.has_conflict(self.account.id, tomorrow(), t("10:00"), t("11:00")), status)

        self.booking.status = TicketStatus.PENDING_REVIEW
        self.booking.save(update_fields=['status'])
        self.assertTrue(zoom.has_conflict(self.account.id, tomorrow(), t("10:00"), t("11:00")))

    def test_exclude_self(self):
        self.assertFalse(zoom.has_conflict(
            self.account.id, tomorrow(), t("10:30"), t("11:30"), exclude_ticket_id=self.booking.pk
        ))

    def test_conflict_records(self):
        conflicts = zoom.get_conflicts(self.account.id, tomorrow(), t("10:00"), t("11:00"))
        self.assertEqual(len(conflicts), 1)
        row = conflicts[0]
        self.assertEqual(row['id'], self.booking.pk)
        self.assertEqual(row['ticket_number'], self.booking.ticket_number)
        self.assertEqual(row['start_time'], "10:30")
        self.assertEqual(row['end_time'], "11:30")
        self.assertEqual(row['status'], TicketStatus.APPROVED)
        self.assertEqual(row['requester'], "pegawai1")
        self.assertEqual(row['date'], tomorrow().isoformat())


class AllocationTests(TestCase):
    def setUp(self):
        self.requester = make_user("pegawai1", Role.PEGAWAI)
        self.second = make_zoom_account("zoom-b", priority=2)
        self.first = make_zoom_account("zoom-a", priority=1)

    def test_lowest_priority_free_account_wins(self):
        result = zoom.validate_and_assign(tomorrow(), t("10:00"), t("11:00"))
        self.assertTrue(result.success)
        self.assertEqual(result.account_id, self.first.id)

    def test_falls_through_to_next_account(self):
        make_zoom_booking(self.requester, self.first, "09:00", "12:00")
        result = zoom.validate_and_assign(tomorrow(), t("10:00"), t("11:00"))
        self.assertTrue(result.success)
        self.assertEqual(result.account_id, self.second.id)

    def test_inactive_accounts_are_skipped(self):
        self.first.is_active = False
        self.first.save()
        result = zoom.validate_and_assign(tomorrow(), t("10:00"), t("11:00"))
        self.assertEqual(result.account_id, self.second.id)

    def test_no_account_available(self):
        make_zoom_booking(self.requester, self.first, "09:00", "12:00")
        make_zoom_booking(self.requester, self.second, "10:30", "10:45", status=TicketStatus.PENDING_REVIEW)
        result = zoom.validate_and_assign(tomorrow(), t("10:00"), t("11:00"))
        self.assertFalse(result.success)
        self.assertIsNone(result.account_id)
        self.assertIn("Tidak ada akun Zoom", result.message)

    def test_exclude_ticket_frees_its_own_slot(self):
        booking = make_zoom_booking(self.requester, self.first, "10:00", "11:00")
        result = zoom.validate_and_assign(tomorrow(), t("10:00"), t("11:00"), exclude_ticket_id=booking.pk)
        self.assertEqual(result.account_id, self.first.id)

    def test_check_availability(self):
        make_zoom_booking(self.requester, self.first, "10:00", "11:00")
        rows = zoom.check_availability(tomorrow(), t("10:30"), t("11:30"))
        self.assertEqual([r['account_id'] for r in rows], [self.first.id, self.second.id])
        self.assertFalse(rows[0]['available'])
        self.assertEqual(len(rows[0]['conflicts']), 1)
        self.assertTrue(rows[1]['available'])
        self.assertEqual(rows[1]['conflicts'], [])

    def test_lock_account_rejects_inactive(self):
        self.second.is_active = False
        self.second.save()
        with self.assertRaises(NotFound):
            zoom.lock_account(self.second.id)
        self.assertEqual(zoom.lock_account(self.first.id), self.first)
