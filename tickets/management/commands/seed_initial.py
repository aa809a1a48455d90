from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group

from tickets.constants import Role
from tickets.models import Asset, ZoomAccount


class Command(BaseCommand):
    help = "Create role groups, zoom accounts and sample assets"

    def handle(self, *args, **options):
        for role in Role.values:
            _, created = Group.objects.get_or_create(name=role)
            self.stdout.write(self.style.SUCCESS(f"Role {role} {'created' if created else 'exists'}"))

        accounts = [
            ('zoom-1', 'Zoom 1', 'zoom1@example.org', '#2563eb'),
            ('zoom-2', 'Zoom 2', 'zoom2@example.org', '#16a34a'),
            ('zoom-3', 'Zoom 3', 'zoom3@example.org', '#dc2626'),
        ]
        for priority, (account_id, name, email, color) in enumerate(accounts, start=1):
            _, created = ZoomAccount.objects.get_or_create(
                account_id=account_id,
                defaults={'name': name, 'email': email, 'color': color, 'priority': priority},
            )
            self.stdout.write(self.style.SUCCESS(f"Zoom account {account_id} {'created' if created else 'exists'}"))

        assets = [
            ('PC-001', '1', 'PC Desktop Ruang Rapat', 'Lantai 2'),
            ('PRN-014', '1', 'Printer Laser Bagian Umum', 'Lantai 1'),
            ('LPT-105', '2', 'Laptop Operasional', 'Gudang TI'),
        ]
        for code, unit, name, location in assets:
            Asset.objects.get_or_create(
                code=code, unit_number=unit, defaults={'name': name, 'location': location}
            )

        self.stdout.write(self.style.SUCCESS("Seed completed."))
