"""
Load a small, coherent demo data set: three counties with one referral
hospital each, their lower facilities and departments, the demo logins
and a day of operational records.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from coordination.management.commands.ensure_demo_users import DEMO_PASSWORD, DEMO_USERS, ensure_demo_users
from coordination.models import (
    Ambulance,
    AuditLog,
    CommunityHealthUnit,
    County,
    Department,
    DispatchCenter,
    DispatchLog,
    Dispensary,
    Emergency,
    HealthCenter,
    Hospital,
    Patient,
    Referral,
    SHAClaim,
    Staff,
    StaffShift,
    SystemAlert,
    Transfer,
    TriageEntry,
    User,
)

# Child tables first; only the demo logins are removed from the user table
TRUNCATE_ORDER = [
    SystemAlert, AuditLog, SHAClaim, Referral, Transfer, DispatchLog, Emergency, TriageEntry,
    StaffShift, Staff, Patient, Ambulance, DispatchCenter, Department, CommunityHealthUnit,
    Dispensary, HealthCenter, User, Hospital, County,
]

COUNTIES = [
    dict(id='county-001', name='Nairobi', code='KE-47', region='Nairobi', population=4397073, area_km2=694.9,
         coordinates={'lat': -1.286389, 'lng': 36.817223}, governor_name='Johnson Sakaja',
         health_cec_name='Dr. Anastasia Nyalita', county_health_director='Dr. Ouma Oluga',
         annual_health_budget=Decimal('15.20')),
    dict(id='county-002', name='Mombasa', code='KE-01', region='Coast', population=1208333, area_km2=294.7,
         coordinates={'lat': -4.0435, 'lng': 39.6682}, governor_name='Abdulswamad Nassir',
         health_cec_name='Dr. Pauline Oginga', county_health_director='Dr. Khadija Shikely',
         annual_health_budget=Decimal('8.50')),
    dict(id='county-003', name='Kisumu', code='KE-42', region='Nyanza', population=1155574, area_km2=2085.9,
         coordinates={'lat': -0.0917, 'lng': 34.768}, governor_name='Anyang Nyongo',
         health_cec_name='Dr. Gregory Ganda', county_health_director='Dr. Fredrick Oluoch',
         annual_health_budget=Decimal('6.10')),
]

HOSPITALS = [
    dict(id='hosp-001', name='Kenyatta National Hospital', code='KNH-001', mfl_code='MFL-001',
         county_id='county-001', level='LEVEL_6', ownership='NATIONAL_GOVERNMENT', sub_county='Nairobi West',
         address='Hospital Road, Nairobi', coordinates={'lat': -1.3045, 'lng': 36.8012},
         phone='+254202726300', emergency_phone='+254722203277', email='info@knh.or.ke',
         total_beds=1800, available_beds=320, icu_beds=45, available_icu_beds=12,
         emergency_beds=85, available_emergency_beds=25, sha_contracted=True, sha_facility_code='SHA-KNH-001',
         services=['EMERGENCY', 'MATERNITY', 'SURGERY', 'ICU', 'CARDIOLOGY', 'NEUROLOGY', 'ONCOLOGY'],
         has_ambulance=True),
    dict(id='hosp-002', name='Mombasa County Hospital', code='MCH-001', mfl_code='MFL-002',
         county_id='county-002', level='LEVEL_5', ownership='COUNTY_GOVERNMENT', sub_county='Mvita',
         address='Mama Ngina Drive, Mombasa', coordinates={'lat': -4.0547, 'lng': 39.6636},
         phone='+254412312001', emergency_phone='+254722456789', email='info@mombasahospital.go.ke',
         total_beds=450, available_beds=85, icu_beds=12, available_icu_beds=3,
         emergency_beds=35, available_emergency_beds=12, sha_contracted=True, sha_facility_code='SHA-MCH-001',
         services=['EMERGENCY', 'MATERNITY', 'SURGERY'], has_ambulance=True),
    dict(id='hosp-003', name='Jaramogi Oginga Odinga Teaching and Referral Hospital', code='JOOTRH-001',
         mfl_code='MFL-003', county_id='county-003', level='LEVEL_5', ownership='COUNTY_GOVERNMENT',
         sub_county='Kisumu Central', address='Kakamega Road, Kisumu', coordinates={'lat': -0.0889, 'lng': 34.7713},
         phone='+254572020801', emergency_phone='+254722987654', email='info@jootrh.go.ke',
         total_beds=600, available_beds=140, icu_beds=16, available_icu_beds=4,
         emergency_beds=40, available_emergency_beds=15, sha_contracted=True, sha_facility_code='SHA-JOO-001',
         services=['EMERGENCY', 'MATERNITY', 'SURGERY', 'PEDIATRICS'], has_ambulance=True),
]

# (name, type, total beds, available beds)
DEPARTMENTS = [
    ('Accident & Emergency', 'EMERGENCY', 40, 9),
    ('Intensive Care Unit', 'ICU', 20, 4),
    ('General Medical Ward', 'INPATIENT', 120, 26),
    ('Maternity', 'MATERNITY', 60, 14),
    ('Pediatrics', 'PEDIATRICS', 50, 11),
    ('Surgery', 'SURGERY', 45, 8),
    ('Outpatient Clinic', 'OUTPATIENT', 0, 0),
    ('Laboratory', 'LABORATORY', 0, 0),
]

PATIENTS = [
    ('John', 'Mwangi', 'MALE', date(1985, 3, 14), '23456781', 'SHA-1000001', '+254712000001', 'hosp-001'),
    ('Mary', 'Akinyi', 'FEMALE', date(1992, 7, 2), '28765432', 'SHA-1000002', '+254712000002', 'hosp-001'),
    ('Ali', 'Hassan', 'MALE', date(1978, 11, 23), '19283746', 'SHA-1000003', '+254712000003', 'hosp-002'),
    ('Esther', 'Chebet', 'FEMALE', date(2001, 1, 5), '35467281', '', '+254712000004', 'hosp-001'),
    ('Daniel', 'Ouma', 'MALE', date(1969, 9, 30), '12837465', 'SHA-1000005', '+254712000005', 'hosp-003'),
    ('Zawadi', 'Njeri', 'FEMALE', date(2015, 5, 18), '', 'SHA-1000006', '+254712000006', 'hosp-001'),
]

AMBULANCES = [
    ('KCA 123A', 'RESCUE-1', 'ADVANCED_LIFE_SUPPORT', 'county-001', 'hosp-001', 'AVAILABLE'),
    ('KCB 456B', 'RESCUE-2', 'BASIC_LIFE_SUPPORT', 'county-001', 'hosp-001', 'DISPATCHED'),
    ('KCC 789C', 'COAST-1', 'ADVANCED_LIFE_SUPPORT', 'county-002', 'hosp-002', 'AVAILABLE'),
    ('KCD 321D', 'LAKE-1', 'BASIC_LIFE_SUPPORT', 'county-003', 'hosp-003', 'AVAILABLE'),
    ('KCE 654E', 'RESCUE-3', 'PATIENT_TRANSPORT', 'county-001', None, 'MAINTENANCE'),
]


class Command(BaseCommand):
    help = "Seed demo counties, facilities, users and operational records."

    def add_arguments(self, parser):
        parser.add_argument('--no-truncate', action='store_true', help="Keep existing rows (may collide on ids).")

    @transaction.atomic
    def handle(self, *args, **options):
        if not options['no_truncate']:
            self.truncate()
        now = timezone.now()

        counties = self.create_counties()
        hospitals = self.create_hospitals()
        self.create_lower_facilities(hospitals)
        departments = self.create_departments(hospitals)
        centers = self.create_dispatch_centers(counties)
        users = ensure_demo_users()
        self.create_staff(users, departments, now)
        patients = self.create_patients()
        ambulances = self.create_ambulances()
        self.create_triage(patients, departments, users, now)
        emergencies = self.create_emergencies(now)
        self.create_dispatches(emergencies, ambulances, users, now)
        self.create_transfers(patients, users, now)
        self.create_referrals(patients, users, now)
        self.create_claims(patients, users, now)

        self.stdout.write(self.style.SUCCESS(
            f"Seeded {len(counties)} counties, {len(hospitals)} hospitals, {len(centers)} dispatch centres, "
            f"{len(users)} demo users (password={DEMO_PASSWORD})."
        ))

    def truncate(self):
        for model in TRUNCATE_ORDER:
            qs = model.objects.all()
            if model is User:
                qs = qs.filter(email__in=[row[0] for row in DEMO_USERS])
            n, _ = qs.delete()
            if n:
                self.stdout.write(f"cleared {model._meta.db_table}: {n}")

    def create_counties(self):
        return [County.objects.create(**c) for c in COUNTIES]

    def create_hospitals(self):
        now = timezone.now()
        return {h['id']: Hospital.objects.create(last_bed_update=now, **h) for h in HOSPITALS}

    def create_lower_facilities(self, hospitals):
        for i, h in enumerate(hospitals.values(), start=1):
            hc = HealthCenter.objects.create(
                id=f"hc-{i:03d}", name=f"{h.sub_county} Health Centre", code=f"HC-{i:03d}",
                mfl_code=f"MFL-HC-{i:03d}", county_id=h.county_id, sub_county=h.sub_county,
                parent_hospital=h, total_beds=20, available_beds=6,
            )
            disp = Dispensary.objects.create(
                id=f"disp-{i:03d}", name=f"{h.sub_county} Dispensary", code=f"DISP-{i:03d}",
                mfl_code=f"MFL-D-{i:03d}", county_id=h.county_id, sub_county=h.sub_county, health_center=hc,
            )
            CommunityHealthUnit.objects.create(
                id=f"chu-{i:03d}", name=f"{h.sub_county} Community Health Unit", code=f"CHU-{i:03d}",
                county_id=h.county_id, link_dispensary=disp, households_covered=1000 + 250 * i,
                promoters_count=10 + i,
            )

    def create_departments(self, hospitals):
        out = {}
        for hid, h in hospitals.items():
            for j, (name, kind, total, available) in enumerate(DEPARTMENTS, start=1):
                out[(hid, kind)] = Department.objects.create(
                    id=f"{hid}-dept-{j:02d}", hospital=h, name=name, department_type=kind,
                    total_beds=total, available_beds=available,
                )
        return out

    def create_dispatch_centers(self, counties):
        return [
            DispatchCenter.objects.create(id=f"dc-{c.id[-3:]}", name=f"{c.name} Emergency Dispatch Centre",
                                          county=c, phone='1199')
            for c in counties
        ]

    def create_staff(self, users, departments, now):
        day_start = timezone.localtime(now).replace(hour=7, minute=0, second=0, microsecond=0)
        for n, user in enumerate(users, start=1):
            if not user.hospital_id:
                continue
            dept = departments.get((user.hospital_id, 'EMERGENCY'))
            s = Staff.objects.create(
                user=user, staff_number=f"STF-{n:05d}", hospital_id=user.hospital_id,
                department=dept, cadre=user.role.replace('_', ' ').title(), phone=f"+2547220000{n:02d}",
            )
            # Day shift today and tomorrow
            for d in range(2):
                start = day_start + timedelta(days=d)
                StaffShift.objects.create(staff=s, hospital_id=user.hospital_id,
                                          start_at=start, end_at=start + timedelta(hours=12))

    def create_patients(self):
        out = []
        for i, (first, last, gender, dob, nid, sha, phone, hid) in enumerate(PATIENTS, start=1):
            county_id = next(h['county_id'] for h in HOSPITALS if h['id'] == hid)
            out.append(Patient.objects.create(
                id=f"pat-{i:03d}", patient_number=f"PAT-{timezone.now().year}-{i:06d}",
                first_name=first, last_name=last, gender=gender, date_of_birth=dob,
                national_id=nid, sha_number=sha, phone=phone, county_id=county_id, current_hospital_id=hid,
            ))
        return out

    def create_ambulances(self):
        return [
            Ambulance.objects.create(
                id=f"amb-{i:03d}", registration_number=reg, call_sign=sign, ambulance_type=kind,
                county_id=county_id, hospital_id=hid, status=status_,
            )
            for i, (reg, sign, kind, county_id, hid, status_) in enumerate(AMBULANCES, start=1)
        ]

    def create_triage(self, patients, departments, users, now):
        nurse = next((u for u in users if u.role == 'TRIAGE_OFFICER'), None)
        plan = [
            (0, 'Severe chest pain radiating to left arm', 'IMMEDIATE', 'AMBULANCE', 'IN_TREATMENT', 95),
            (1, 'High fever and vomiting for two days', 'URGENT', 'WALK_IN', 'WAITING', 40),
            (3, 'Laceration on left forearm', 'LESS_URGENT', 'WALK_IN', 'WAITING', 25),
            (5, 'Persistent cough', 'NON_URGENT', 'WALK_IN', 'IN_ASSESSMENT', 15),
            (2, 'Road traffic accident, suspected femur fracture', 'URGENT', 'AMBULANCE', 'ADMITTED', 300),
            (4, 'Shortness of breath', 'URGENT', 'REFERRAL', 'WAITING', 10),
        ]
        for i, (p_idx, complaint, level, mode, status_, minutes_ago) in enumerate(plan, start=1):
            p = patients[p_idx]
            TriageEntry.objects.create(
                id=f"tri-{i:03d}", triage_number=f"TRI-{i:06d}", patient=p, hospital_id=p.current_hospital_id,
                department=departments.get((p.current_hospital_id, 'EMERGENCY')), chief_complaint=complaint,
                triage_level=level, arrival_mode=mode, status=status_,
                vital_signs={'bloodPressure': '130/85', 'heartRate': 88 + i, 'temperature': 37.2,
                             'oxygenSaturation': 97 - i},
                assessed_by=nurse if status_ != 'WAITING' else None,
                arrival_time=now - timedelta(minutes=minutes_ago),
            )

    def create_emergencies(self, now):
        year = now.year
        rows = [
            ('TRAFFIC_ACCIDENT', 'MAJOR', 'county-001', 'Thika Road near Garden City',
             'Multi-vehicle collision involving a matatu', 12, 'DISPATCHED', 45),
            ('MEDICAL', 'MODERATE', 'county-002', 'Nyali Bridge', 'Elderly man collapsed at bus stop', 1,
             'REPORTED', 10),
            ('FIRE', 'SEVERE', 'county-003', 'Kibuye Market', 'Market fire with burn injuries', 5, 'RESOLVED', 600),
        ]
        out = []
        for i, (kind, severity, county_id, location, desc, casualties, status_, minutes_ago) in enumerate(rows, 1):
            reported = now - timedelta(minutes=minutes_ago)
            out.append(Emergency.objects.create(
                id=f"emg-{i:03d}", emergency_number=f"EMG-{year}-{i:06d}", emergency_type=kind,
                severity=severity, county_id=county_id, location=location, description=desc,
                estimated_casualties=casualties, status=status_, reported_at=reported,
                resolved_at=now - timedelta(minutes=60) if status_ == 'RESOLVED' else None,
                reported_by='Public caller', reporter_phone='+254700111222',
            ))
        return out

    def create_dispatches(self, emergencies, ambulances, users, now):
        dispatcher = next((u for u in users if u.role == 'DISPATCHER'), None)
        e = emergencies[0]
        DispatchLog.objects.create(
            id='disp-log-001', dispatch_number=f"DISP-{now.year}-000001", emergency=e, ambulance=ambulances[1],
            dispatcher=dispatcher, caller_phone='+254700111222', caller_name='Public caller',
            caller_location=e.location, emergency_type=e.emergency_type, severity=e.severity,
            description=e.description, patient_count=4, status='EN_ROUTE',
            call_received=e.reported_at, dispatched_at=e.reported_at + timedelta(minutes=4),
        )
        DispatchLog.objects.create(
            id='disp-log-002', dispatch_number=f"DISP-{now.year}-000002", emergency=emergencies[1],
            dispatcher=dispatcher, caller_phone='+254733444555', caller_location='Nyali Bridge',
            emergency_type='MEDICAL', severity='MODERATE', description='Collapsed, breathing',
            status='RECEIVED', call_received=now - timedelta(minutes=8),
        )

    def create_transfers(self, patients, users, now):
        doctor = next((u for u in users if u.role == 'DOCTOR'), None)
        Transfer.objects.create(
            id='trf-001', transfer_number=f"TRF-{now.year}-000001", patient=patients[2],
            origin_hospital_id='hosp-002', destination_hospital_id='hosp-001', initiated_by=doctor,
            reason='Requires neurosurgical review', urgency='URGENT', diagnosis='Traumatic brain injury',
            vital_signs={'gcs': 12}, requested_at=now - timedelta(hours=1),
        )
        Patient.objects.filter(pk=patients[2].pk).update(current_status='IN_TRANSFER')

    def create_referrals(self, patients, users, now):
        doctor = next((u for u in users if u.role == 'DOCTOR'), None)
        Referral.objects.create(
            id='ref-001', referral_number=f"REF-{now.year}-000001", patient=patients[4],
            referring_hospital_id='hosp-003', receiving_hospital_id='hosp-001', referred_by=doctor,
            reason='Oncology consultation', clinical_summary='Suspected lymphoma, biopsy pending',
            urgency='ROUTINE',
        )

    def create_claims(self, patients, users, now):
        finance = next((u for u in users if u.role == 'FINANCE_OFFICER'), None)
        rows = [
            (patients[0], 'hosp-001', 'EMERGENCY', 'I21.9', Decimal('45000.00'), 'SUBMITTED'),
            (patients[1], 'hosp-001', 'OUTPATIENT', 'A09', Decimal('3500.00'), 'APPROVED'),
            (patients[2], 'hosp-002', 'INPATIENT', 'S06.9', Decimal('120000.00'), 'UNDER_REVIEW'),
        ]
        for i, (p, hid, service, code, amount, status_) in enumerate(rows, start=1):
            SHAClaim.objects.create(
                id=f"clm-{i:03d}", claim_number=f"SHA-{now.year}-{i:06d}", patient=p, hospital_id=hid,
                sha_number=p.sha_number, service_type=service, diagnosis_code=code, amount_claimed=amount,
                amount_approved=amount if status_ == 'APPROVED' else None, status=status_,
                submitted_by=finance, submitted_at=now - timedelta(days=i),
                processed_at=now if status_ == 'APPROVED' else None,
            )
