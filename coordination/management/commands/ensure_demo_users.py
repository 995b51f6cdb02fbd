from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from coordination.models import County, Hospital, User

DEMO_PASSWORD = 'demo123'

# (email, first name, last name, role, county id, hospital id)
DEMO_USERS = [
    ('superadmin@health.go.ke', 'System', 'Administrator', 'SUPER_ADMIN', None, None),
    ('countyadmin@health.go.ke', 'Grace', 'Wanjiru', 'COUNTY_ADMIN', 'county-001', None),
    ('hospitaladmin@health.go.ke', 'Peter', 'Kamau', 'HOSPITAL_ADMIN', 'county-001', 'hosp-001'),
    ('doctor@health.go.ke', 'Amina', 'Odhiambo', 'DOCTOR', 'county-001', 'hosp-001'),
    ('nurse@health.go.ke', 'Faith', 'Mutua', 'NURSE', 'county-001', 'hosp-001'),
    ('triage@health.go.ke', 'Brian', 'Otieno', 'TRIAGE_OFFICER', 'county-001', 'hosp-001'),
    ('dispatcher@health.go.ke', 'Kevin', 'Njoroge', 'DISPATCHER', 'county-001', None),
    ('ambulance@health.go.ke', 'Samuel', 'Kiptoo', 'AMBULANCE_CREW', 'county-001', 'hosp-001'),
    ('finance@health.go.ke', 'Lucy', 'Achieng', 'FINANCE_OFFICER', 'county-001', 'hosp-001'),
]


def ensure_demo_users(stdout=None, style=None) -> list[User]:
    """Create or reset the demo logins; facility links are set only when the rows exist."""
    counties = set(County.objects.values_list('id', flat=True))
    hospitals = set(Hospital.objects.values_list('id', flat=True))
    users = []
    for email, first, last, role, county_id, hospital_id in DEMO_USERS:
        fields = {
            'username': email,
            'first_name': first,
            'last_name': last,
            'role': role,
            'county_id': county_id if county_id in counties else None,
            'hospital_id': hospital_id if hospital_id in hospitals else None,
            'password': make_password(DEMO_PASSWORD),
            'is_active': True,
            'is_staff': role == 'SUPER_ADMIN',
            'is_superuser': role == 'SUPER_ADMIN',
        }
        user, created = User.objects.get_or_create(email=email, defaults=fields)
        if not created:
            for k, v in fields.items():
                setattr(user, k, v)
            user.save()
        users.append(user)
        if stdout is not None:
            stdout.write(style.SUCCESS(f"ok: {email} ({role})") if style else f"ok: {email} ({role})")
    return users


class Command(BaseCommand):
    help = f"Ensure the demo logins exist with password={DEMO_PASSWORD} (idempotent)."

    def handle(self, *args, **opts):
        ensure_demo_users(self.stdout, self.style)
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
