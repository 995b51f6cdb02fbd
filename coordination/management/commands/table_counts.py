from django.core.management.base import BaseCommand

from coordination.models import (
    Ambulance,
    CommunityHealthUnit,
    County,
    Department,
    DispatchLog,
    Dispensary,
    Emergency,
    HealthCenter,
    Hospital,
    Patient,
    Referral,
    SHAClaim,
    Staff,
    SystemAlert,
    Transfer,
    TriageEntry,
)

TABLES = [
    ('Counties', County),
    ('Hospitals', Hospital),
    ('Health Centers', HealthCenter),
    ('Dispensaries', Dispensary),
    ('Community Health Units', CommunityHealthUnit),
    ('Departments', Department),
    ('Staff', Staff),
    ('Patients', Patient),
    ('Triage Entries', TriageEntry),
    ('Emergencies', Emergency),
    ('Dispatch Logs', DispatchLog),
    ('Transfers', Transfer),
    ('Referrals', Referral),
    ('Ambulances', Ambulance),
    ('SHA Claims', SHAClaim),
    ('System Alerts', SystemAlert),
]


class Command(BaseCommand):
    help = "Print the record count of each table."

    def handle(self, *args, **options):
        empty = 0
        for name, model in TABLES:
            n = model.objects.count()
            if n:
                self.stdout.write(self.style.SUCCESS(f"ok    {name}: {n} records"))
            else:
                empty += 1
                self.stdout.write(self.style.WARNING(f"empty {name}: 0 records"))
        if empty:
            self.stdout.write(self.style.WARNING(f"{empty} of {len(TABLES)} tables are empty"))
