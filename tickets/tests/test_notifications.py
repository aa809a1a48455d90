from django.test import TestCase
from rest_framework.test import APIClient

from tickets import notifications
from tickets.constants import Role
from tickets.models import Notification

from .helpers import make_perbaikan, make_user


class NotificationTestCase(TestCase):
    def setUp(self):
        self.user = make_user("pegawai1", Role.PEGAWAI)
        self.other = make_user("pegawai2", Role.PEGAWAI)
        self.ticket = make_perbaikan(self.user)
        notifications.notify([self.user], self.ticket, "Update Tiket", "sedang dikerjakan")
        notifications.notify([self.user, self.other], self.ticket, "Tiket Selesai", "telah selesai")
        self.first, self.second = Notification.objects.filter(user=self.user).order_by('id')


class NotificationHelperTests(NotificationTestCase):
    def test_unread_count_is_per_user(self):
        self.assertEqual(notifications.unread_count(self.user), 2)
        self.assertEqual(notifications.unread_count(self.other), 1)

    def test_mark_read(self):
        notifications.mark_read(self.first)
        self.first.refresh_from_db()
        self.assertTrue(self.first.is_read)
        self.assertEqual(notifications.unread_count(self.user), 1)

    def test_mark_all_read_leaves_others(self):
        self.assertEqual(notifications.mark_all_read(self.user), 2)
        self.assertEqual(notifications.unread_count(self.user), 0)
        self.assertEqual(notifications.unread_count(self.other), 1)
        self.assertEqual(notifications.mark_all_read(self.user), 0)


class NotificationAPITests(NotificationTestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def test_list_shows_own_inbox(self):
        resp = self.client.get("/api/notifications/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['count'], 2)
        self.assertEqual(resp.data['results'][0]['ticket_number'], self.ticket.ticket_number)

        notifications.mark_read(self.first)
        resp = self.client.get("/api/notifications/", {'unread': 'true'})
        self.assertEqual([n['id'] for n in resp.data['results']], [self.second.id])

    def test_read_and_unread_count(self):
        resp = self.client.patch(f"/api/notifications/{self.first.id}/read/")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data['is_read'])
        resp = self.client.get("/api/notifications/unread-count/")
        self.assertEqual(resp.data, {'unread_count': 1})

    def test_read_all(self):
        resp = self.client.patch("/api/notifications/read-all/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data, {'updated': 2})
        self.assertEqual(notifications.unread_count(self.other), 1)

    def test_foreign_notification_is_404(self):
        foreign = Notification.objects.get(user=self.other)
        resp = self.client.patch(f"/api/notifications/{foreign.id}/read/")
        self.assertEqual(resp.status_code, 404)
        resp = self.client.delete(f"/api/notifications/{foreign.id}/")
        self.assertEqual(resp.status_code, 404)
        self.assertTrue(Notification.objects.filter(pk=foreign.pk).exists())

    def test_delete(self):
        resp = self.client.delete(f"/api/notifications/{self.first.id}/")
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(Notification.objects.filter(pk=self.first.pk).exists())

    def test_anonymous_gets_401(self):
        resp = APIClient().get("/api/notifications/unread-count/")
        self.assertEqual(resp.status_code, 401)
