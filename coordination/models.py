"""
Database models for the HealthNet coordination backend.

The hierarchy follows the Kenyan health system: counties own facilities
(hospitals, health centres, dispensaries and community health units),
facilities employ staff and receive patients, and operational records
(triage, emergencies, dispatch, transfers, referrals and SHA claims)
hang off those. String primary keys keep identifiers readable in the
seed data (``county-001``, ``hosp-001``) and opaque elsewhere.
"""
from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models


def new_id() -> str:
    return uuid.uuid4().hex


class TimestampedModel(models.Model):
    id = models.CharField(max_length=40, primary_key=True, default=new_id, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ---------------------------------------------------------------------------
# Administrative units & facilities
# ---------------------------------------------------------------------------

class County(TimestampedModel):
    """One of the 47 counties; the unit of devolved health administration."""
    name = models.CharField(max_length=120, unique=True)
    code = models.CharField(max_length=10, unique=True, help_text="ISO style code, e.g. 'KE-47'")
    region = models.CharField(max_length=120, blank=True)
    population = models.PositiveIntegerField(default=0)
    area_km2 = models.FloatField(null=True, blank=True)
    coordinates = models.JSONField(null=True, blank=True)
    governor_name = models.CharField(max_length=120, blank=True)
    health_cec_name = models.CharField(max_length=120, blank=True)
    county_health_director = models.CharField(max_length=120, blank=True)
    annual_health_budget = models.DecimalField(
        max_digits=8, decimal_places=2, null=True, blank=True, help_text="KES billions"
    )
    is_marginalized = models.BooleanField(default=False)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'counties'

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class Hospital(TimestampedModel):
    LEVEL_CHOICES = [
        ('LEVEL_2', 'Level 2'),
        ('LEVEL_3', 'Level 3'),
        ('LEVEL_4', 'Level 4'),
        ('LEVEL_5', 'Level 5'),
        ('LEVEL_6', 'Level 6'),
    ]
    TYPE_CHOICES = [
        ('PUBLIC', 'Public'),
        ('PRIVATE', 'Private'),
        ('FAITH_BASED', 'Faith based'),
        ('NGO', 'NGO'),
    ]
    OWNERSHIP_CHOICES = [
        ('NATIONAL_GOVERNMENT', 'National government'),
        ('COUNTY_GOVERNMENT', 'County government'),
        ('PRIVATE', 'Private'),
        ('FAITH_BASED', 'Faith based'),
        ('NGO', 'NGO'),
    ]
    OPERATIONAL_CHOICES = [
        ('OPERATIONAL', 'Operational'),
        ('LIMITED', 'Limited'),
        ('EMERGENCY_ONLY', 'Emergency only'),
        ('CLOSED', 'Closed'),
    ]

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=40, unique=True)
    mfl_code = models.CharField(max_length=40, blank=True, help_text="Master Facility List code")
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='hospitals')
    level = models.CharField(max_length=10, choices=LEVEL_CHOICES, db_index=True)
    hospital_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='PUBLIC')
    ownership = models.CharField(max_length=30, choices=OWNERSHIP_CHOICES, default='COUNTY_GOVERNMENT')
    sub_county = models.CharField(max_length=120, blank=True)
    address = models.CharField(max_length=255, blank=True)
    coordinates = models.JSONField(null=True, blank=True)
    phone = models.CharField(max_length=40, blank=True)
    emergency_phone = models.CharField(max_length=40, blank=True)
    email = models.EmailField(blank=True)

    total_beds = models.PositiveIntegerField(default=0)
    available_beds = models.PositiveIntegerField(default=0)
    icu_beds = models.PositiveIntegerField(default=0)
    available_icu_beds = models.PositiveIntegerField(default=0)
    emergency_beds = models.PositiveIntegerField(default=0)
    available_emergency_beds = models.PositiveIntegerField(default=0)
    last_bed_update = models.DateTimeField(null=True, blank=True)

    sha_contracted = models.BooleanField(default=False)
    sha_facility_code = models.CharField(max_length=40, blank=True)
    services = models.JSONField(default=list, blank=True)
    has_ambulance = models.BooleanField(default=False)
    # Alert fan-out filters on these two flags
    is_active = models.BooleanField(default=True, db_index=True)
    accepting_patients = models.BooleanField(default=True)
    operational_status = models.CharField(max_length=20, choices=OPERATIONAL_CHOICES, default='OPERATIONAL')

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class Facility(TimestampedModel):
    """Shared columns for the lower facility tiers."""
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=40, unique=True)
    mfl_code = models.CharField(max_length=40, blank=True)
    sub_county = models.CharField(max_length=120, blank=True)
    ward = models.CharField(max_length=120, blank=True)
    phone = models.CharField(max_length=40, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        abstract = True
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class HealthCenter(Facility):
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='health_centers')
    parent_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='health_centers'
    )
    total_beds = models.PositiveIntegerField(default=0)
    available_beds = models.PositiveIntegerField(default=0)


class Dispensary(Facility):
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='dispensaries')
    health_center = models.ForeignKey(
        HealthCenter, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispensaries'
    )

    class Meta(Facility.Meta):
        verbose_name_plural = 'dispensaries'


class CommunityHealthUnit(TimestampedModel):
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=40, unique=True)
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='community_health_units')
    link_dispensary = models.ForeignKey(
        Dispensary, null=True, blank=True, on_delete=models.SET_NULL, related_name='community_health_units'
    )
    households_covered = models.PositiveIntegerField(default=0)
    promoters_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class Department(TimestampedModel):
    TYPE_CHOICES = [
        ('EMERGENCY', 'Emergency'),
        ('OUTPATIENT', 'Outpatient'),
        ('INPATIENT', 'Inpatient'),
        ('MATERNITY', 'Maternity'),
        ('PEDIATRICS', 'Pediatrics'),
        ('SURGERY', 'Surgery'),
        ('ICU', 'ICU'),
        ('LABORATORY', 'Laboratory'),
        ('PHARMACY', 'Pharmacy'),
        ('RADIOLOGY', 'Radiology'),
    ]
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='departments')
    name = models.CharField(max_length=120)
    department_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='OUTPATIENT')
    total_beds = models.PositiveIntegerField(default=0)
    available_beds = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['hospital_id', 'name']
        unique_together = [('hospital', 'name')]

    def __str__(self) -> str:
        return f"{self.name} @ {self.hospital_id}"


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class User(AbstractUser):
    """Login account.

    ``role`` is stored exactly as provisioned (``doctor``, ``DOCTOR``,
    ``medical_officer`` all occur in practice) and normalized when
    permissions are resolved, see :mod:`coordination.permissions`.
    ``permissions`` holds grants on top of the role's list.
    """
    id = models.CharField(max_length=40, primary_key=True, default=new_id, editable=False)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=40, default='NURSE', db_index=True)
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='users')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='users')
    phone = models.CharField(max_length=40, blank=True)
    permissions = models.JSONField(default=list, blank=True)

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"


class Staff(TimestampedModel):
    EMPLOYMENT_CHOICES = [
        ('PERMANENT', 'Permanent'),
        ('CONTRACT', 'Contract'),
        ('LOCUM', 'Locum'),
        ('INTERN', 'Intern'),
        ('VOLUNTEER', 'Volunteer'),
    ]
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='staff_profile')
    staff_number = models.CharField(max_length=40, unique=True)
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff'
    )
    cadre = models.CharField(max_length=80, blank=True)
    specialization = models.CharField(max_length=120, blank=True)
    license_number = models.CharField(max_length=60, blank=True)
    employment_status = models.CharField(max_length=20, choices=EMPLOYMENT_CHOICES, default='PERMANENT')
    phone = models.CharField(max_length=40, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['staff_number']

    def __str__(self) -> str:
        return f"{self.staff_number} {self.user.get_full_name()}"


class StaffShift(models.Model):
    """On-duty interval for a staff member at a facility."""
    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name='shifts')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='shifts')
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    notes = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['start_at']
        indexes = [
            models.Index(fields=['staff', 'start_at', 'end_at']),
            models.Index(fields=['hospital', 'start_at', 'end_at']),
        ]

    def __str__(self):
        return f"Shift(s={self.staff_id}, {self.start_at:%F %T}~{self.end_at:%F %T})"


class Patient(TimestampedModel):
    GENDER_CHOICES = [('MALE', 'Male'), ('FEMALE', 'Female'), ('OTHER', 'Other')]
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('ADMITTED', 'Admitted'),
        ('IN_TRANSFER', 'In transfer'),
        ('DISCHARGED', 'Discharged'),
        ('DECEASED', 'Deceased'),
    ]
    patient_number = models.CharField(max_length=40, unique=True)
    first_name = models.CharField(max_length=120)
    last_name = models.CharField(max_length=120)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    date_of_birth = models.DateField(null=True, blank=True)
    national_id = models.CharField(max_length=40, blank=True, db_index=True)
    sha_number = models.CharField(max_length=40, blank=True, db_index=True)
    phone = models.CharField(max_length=40, blank=True)
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients')
    current_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients'
    )
    current_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE', db_index=True)
    blood_type = models.CharField(max_length=5, blank=True)
    allergies = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['-created_at']

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.patient_number} {self.full_name}"


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class TriageEntry(TimestampedModel):
    # Declaration order is clinical priority order
    LEVEL_CHOICES = [
        ('IMMEDIATE', 'Immediate'),
        ('URGENT', 'Urgent'),
        ('LESS_URGENT', 'Less urgent'),
        ('NON_URGENT', 'Non urgent'),
    ]
    STATUS_CHOICES = [
        ('WAITING', 'Waiting'),
        ('IN_ASSESSMENT', 'In assessment'),
        ('IN_TREATMENT', 'In treatment'),
        ('ADMITTED', 'Admitted'),
        ('DISCHARGED', 'Discharged'),
        ('TRANSFERRED', 'Transferred'),
        ('LEFT_WITHOUT_BEING_SEEN', 'Left without being seen'),
    ]
    ARRIVAL_CHOICES = [
        ('WALK_IN', 'Walk in'),
        ('AMBULANCE', 'Ambulance'),
        ('REFERRAL', 'Referral'),
        ('POLICE', 'Police'),
        ('PRIVATE_VEHICLE', 'Private vehicle'),
    ]
    triage_number = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='triage_entries')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_entries')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_entries'
    )
    chief_complaint = models.TextField()
    triage_level = models.CharField(max_length=20, choices=LEVEL_CHOICES, db_index=True)
    arrival_mode = models.CharField(max_length=20, choices=ARRIVAL_CHOICES, default='WALK_IN')
    vital_signs = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='WAITING', db_index=True)
    assessed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_assessments'
    )
    arrival_time = models.DateTimeField(db_index=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['-arrival_time']
        verbose_name_plural = 'triage entries'

    def __str__(self) -> str:
        return f"{self.triage_number} {self.triage_level}"


class Emergency(TimestampedModel):
    TYPE_CHOICES = [
        ('MEDICAL', 'Medical'),
        ('TRAUMA', 'Trauma'),
        ('OBSTETRIC', 'Obstetric'),
        ('PEDIATRIC', 'Pediatric'),
        ('CARDIAC', 'Cardiac'),
        ('STROKE', 'Stroke'),
        ('RESPIRATORY', 'Respiratory'),
        ('MASS_CASUALTY', 'Mass casualty'),
        ('NATURAL_DISASTER', 'Natural disaster'),
        ('TRAFFIC_ACCIDENT', 'Traffic accident'),
        ('FIRE', 'Fire'),
        ('DROWNING', 'Drowning'),
        ('POISONING', 'Poisoning'),
        ('ASSAULT', 'Assault'),
        ('OTHER', 'Other'),
    ]
    SEVERITY_CHOICES = [
        ('MINOR', 'Minor'),
        ('MODERATE', 'Moderate'),
        ('SEVERE', 'Severe'),
        ('MAJOR', 'Major'),
        ('CATASTROPHIC', 'Catastrophic'),
    ]
    STATUS_CHOICES = [
        ('REPORTED', 'Reported'),
        ('DISPATCHED', 'Dispatched'),
        ('ON_SCENE', 'On scene'),
        ('CONTAINED', 'Contained'),
        ('RESOLVED', 'Resolved'),
        ('CANCELLED', 'Cancelled'),
    ]
    emergency_number = models.CharField(max_length=40, unique=True)
    emergency_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES, db_index=True)
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='emergencies')
    location = models.CharField(max_length=255)
    coordinates = models.JSONField(null=True, blank=True)
    description = models.TextField()
    cause = models.CharField(max_length=255, blank=True, null=True)
    estimated_casualties = models.PositiveIntegerField(null=True, blank=True)
    reported_by = models.CharField(max_length=120, blank=True, null=True)
    reporter_phone = models.CharField(max_length=40, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='REPORTED', db_index=True)
    reported_at = models.DateTimeField()
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-reported_at']
        verbose_name_plural = 'emergencies'
        indexes = [models.Index(fields=['county', 'status', 'reported_at'])]

    def __str__(self) -> str:
        return f"{self.emergency_number} {self.emergency_type}/{self.severity}"


class DispatchCenter(TimestampedModel):
    name = models.CharField(max_length=255)
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='dispatch_centers')
    phone = models.CharField(max_length=40, blank=True)
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.name


class Ambulance(TimestampedModel):
    TYPE_CHOICES = [
        ('BASIC_LIFE_SUPPORT', 'Basic life support'),
        ('ADVANCED_LIFE_SUPPORT', 'Advanced life support'),
        ('PATIENT_TRANSPORT', 'Patient transport'),
        ('NEONATAL', 'Neonatal'),
        ('AIR', 'Air'),
    ]
    STATUS_CHOICES = [
        ('AVAILABLE', 'Available'),
        ('DISPATCHED', 'Dispatched'),
        ('EN_ROUTE', 'En route'),
        ('AT_SCENE', 'At scene'),
        ('TRANSPORTING', 'Transporting'),
        ('MAINTENANCE', 'Maintenance'),
        ('OUT_OF_SERVICE', 'Out of service'),
    ]
    registration_number = models.CharField(max_length=20, unique=True)
    call_sign = models.CharField(max_length=40, blank=True)
    ambulance_type = models.CharField(max_length=30, choices=TYPE_CHOICES, default='BASIC_LIFE_SUPPORT')
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='ambulances')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='ambulances')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='AVAILABLE', db_index=True)
    current_location = models.JSONField(null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)
    crew_capacity = models.PositiveIntegerField(default=2)
    last_maintenance = models.DateField(null=True, blank=True)
    next_service_date = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ['registration_number']

    def __str__(self) -> str:
        return f"{self.registration_number} ({self.status})"


class DispatchLog(TimestampedModel):
    STATUS_CHOICES = [
        ('RECEIVED', 'Received'),
        ('DISPATCHED', 'Dispatched'),
        ('EN_ROUTE', 'En route'),
        ('ON_SCENE', 'On scene'),
        ('TRANSPORTING', 'Transporting'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]
    dispatch_number = models.CharField(max_length=30, unique=True)
    emergency = models.ForeignKey(
        Emergency, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches'
    )
    ambulance = models.ForeignKey(
        Ambulance, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches'
    )
    dispatcher = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches')
    caller_phone = models.CharField(max_length=40)
    caller_name = models.CharField(max_length=120, blank=True, null=True)
    caller_location = models.CharField(max_length=255)
    emergency_type = models.CharField(max_length=20, choices=Emergency.TYPE_CHOICES)
    severity = models.CharField(max_length=20, choices=Emergency.SEVERITY_CHOICES)
    description = models.TextField()
    patient_count = models.PositiveIntegerField(default=1)
    coordinates = models.JSONField(null=True, blank=True)
    landmark = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='RECEIVED', db_index=True)
    call_received = models.DateTimeField(db_index=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-call_received']

    def __str__(self) -> str:
        return f"{self.dispatch_number} ({self.status})"


class Transfer(TimestampedModel):
    URGENCY_CHOICES = [
        ('IMMEDIATE', 'Immediate'),
        ('URGENT', 'Urgent'),
        ('SCHEDULED', 'Scheduled'),
        ('ROUTINE', 'Routine'),
    ]
    TRANSPORT_CHOICES = [
        ('AMBULANCE', 'Ambulance'),
        ('AIR_AMBULANCE', 'Air ambulance'),
        ('PRIVATE_VEHICLE', 'Private vehicle'),
        ('INTER_FACILITY_TRANSPORT', 'Inter-facility transport'),
        ('PUBLIC_TRANSPORT', 'Public transport'),
    ]
    STATUS_CHOICES = [
        ('REQUESTED', 'Requested'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
        ('IN_TRANSIT', 'In transit'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]
    transfer_number = models.CharField(max_length=30, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='transfers')
    origin_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='outgoing_transfers')
    destination_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='incoming_transfers')
    ambulance = models.ForeignKey(Ambulance, null=True, blank=True, on_delete=models.SET_NULL, related_name='transfers')
    initiated_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='transfers_initiated'
    )
    approved_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='transfers_approved'
    )
    reason = models.TextField()
    urgency = models.CharField(max_length=20, choices=URGENCY_CHOICES)
    diagnosis = models.CharField(max_length=255)
    vital_signs = models.JSONField(default=dict, blank=True)
    transport_mode = models.CharField(max_length=30, choices=TRANSPORT_CHOICES, default='AMBULANCE')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='REQUESTED', db_index=True)
    bed_reserved = models.BooleanField(default=False)
    bed_number = models.CharField(max_length=40, blank=True)
    accepted_by_name = models.CharField(max_length=120, blank=True)
    rejection_reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    requested_at = models.DateTimeField()
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    departure_time = models.DateTimeField(null=True, blank=True)
    arrival_time = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    class Meta:
        ordering = ['-requested_at']

    def __str__(self) -> str:
        return f"{self.transfer_number} ({self.status})"


class Referral(TimestampedModel):
    URGENCY_CHOICES = Transfer.URGENCY_CHOICES
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('ACCEPTED', 'Accepted'),
        ('DECLINED', 'Declined'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]
    referral_number = models.CharField(max_length=30, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='referrals')
    referring_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='referrals_sent')
    receiving_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='referrals_received')
    referred_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='referrals')
    reason = models.TextField()
    clinical_summary = models.TextField(blank=True)
    urgency = models.CharField(max_length=20, choices=URGENCY_CHOICES, default='ROUTINE')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING', db_index=True)
    response_notes = models.TextField(blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.referral_number} ({self.status})"


class SHAClaim(TimestampedModel):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('SUBMITTED', 'Submitted'),
        ('UNDER_REVIEW', 'Under review'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
        ('PAID', 'Paid'),
    ]
    SERVICE_CHOICES = [
        ('OUTPATIENT', 'Outpatient'),
        ('INPATIENT', 'Inpatient'),
        ('MATERNITY', 'Maternity'),
        ('SURGICAL', 'Surgical'),
        ('EMERGENCY', 'Emergency'),
        ('DENTAL', 'Dental'),
        ('OPTICAL', 'Optical'),
    ]
    claim_number = models.CharField(max_length=30, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='sha_claims')
    hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='sha_claims')
    sha_number = models.CharField(max_length=40)
    service_type = models.CharField(max_length=20, choices=SERVICE_CHOICES)
    diagnosis_code = models.CharField(max_length=20, blank=True)
    amount_claimed = models.DecimalField(max_digits=12, decimal_places=2)
    amount_approved = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='SUBMITTED', db_index=True)
    submitted_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='sha_claims')
    submitted_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'SHA claim'

    def __str__(self) -> str:
        return f"{self.claim_number} ({self.status})"


class SystemAlert(models.Model):
    SEVERITY_CHOICES = [
        ('INFO', 'Info'),
        ('WARNING', 'Warning'),
        ('CRITICAL', 'Critical'),
    ]
    AUDIENCE_CHOICES = [
        ('ALL', 'All'),
        ('SPECIFIC_HOSPITAL', 'Specific hospital'),
        ('ALL_DISPATCHERS', 'All dispatchers'),
        ('COUNTY', 'County'),
    ]
    id = models.CharField(max_length=40, primary_key=True, default=new_id, editable=False)
    alert_number = models.CharField(max_length=40, unique=True)
    alert_type = models.CharField(max_length=40)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='INFO')
    title = models.CharField(max_length=255)
    message = models.TextField()
    source_type = models.CharField(max_length=40, blank=True)
    source_id = models.CharField(max_length=40, blank=True)
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.CASCADE, related_name='alerts')
    dispatch_center = models.ForeignKey(
        DispatchCenter, null=True, blank=True, on_delete=models.CASCADE, related_name='alerts'
    )
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.CASCADE, related_name='alerts')
    audience_type = models.CharField(max_length=20, choices=AUDIENCE_CHOICES, default='ALL')
    target_roles = models.JSONField(default=list, blank=True)
    requires_action = models.BooleanField(default=False)
    priority = models.PositiveSmallIntegerField(default=3)
    acknowledged_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='acknowledged_alerts'
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['priority', '-created_at']

    def __str__(self) -> str:
        return f"{self.alert_number}: {self.title}"


class AuditLog(models.Model):
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('READ', 'Read'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('LOGIN', 'Login'),
        ('LOGOUT', 'Logout'),
        ('APPROVE', 'Approve'),
        ('REJECT', 'Reject'),
        ('TRANSFER', 'Transfer'),
        ('DISCHARGE', 'Discharge'),
        ('PRESCRIBE', 'Prescribe'),
        ('SUBMIT_CLAIM', 'Submit claim'),
        ('CANCEL', 'Cancel'),
        ('OVERRIDE', 'Override'),
    ]
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='audit_logs')
    user_role = models.CharField(max_length=40, blank=True)
    user_name = models.CharField(max_length=255, default='System')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    entity_type = models.CharField(max_length=40)
    entity_id = models.CharField(max_length=255)
    description = models.TextField()
    changes = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=512, blank=True)
    facility_id = models.CharField(max_length=40, blank=True, null=True)
    success = models.BooleanField(default=True)
    error_message = models.TextField(blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['action', 'timestamp']),
            models.Index(fields=['entity_type', 'entity_id', 'timestamp']),
        ]

    def __str__(self):
        return f"{self.action}:{self.entity_type}/{self.entity_id} by {self.user_name}"
