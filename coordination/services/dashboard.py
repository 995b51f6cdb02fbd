from typing import Optional

from django.db.models import Avg, Count, DurationField, ExpressionWrapper, F, Sum
from django.utils import timezone

from coordination.models import (
    Ambulance,
    DispatchLog,
    Emergency,
    Hospital,
    Referral,
    SHAClaim,
    TriageEntry,
    Transfer,
)

ACTIVE_EMERGENCY = ['REPORTED', 'DISPATCHED', 'ON_SCENE', 'CONTAINED']
ACTIVE_DISPATCH = ['RECEIVED', 'DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TRANSPORTING']


def _minutes(td) -> Optional[float]:
    if td is None:
        return None
    # some backends hand back raw microseconds
    seconds = td.total_seconds() if hasattr(td, 'total_seconds') else float(td) / 1_000_000
    return round(seconds / 60, 1)


def dashboard_stats(*, county_id: Optional[str] = None, now=None) -> dict:
    """Headline figures for the operations dashboard, optionally for one county."""
    now = now or timezone.now()
    day_start = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)

    hospitals = Hospital.objects.filter(is_active=True)
    emergencies = Emergency.objects.all()
    dispatches = DispatchLog.objects.all()
    ambulances = Ambulance.objects.all()
    triage = TriageEntry.objects.all()
    transfers = Transfer.objects.all()
    referrals = Referral.objects.all()
    claims = SHAClaim.objects.all()
    if county_id:
        hospitals = hospitals.filter(county_id=county_id)
        emergencies = emergencies.filter(county_id=county_id)
        dispatches = dispatches.filter(emergency__county_id=county_id)
        ambulances = ambulances.filter(county_id=county_id)
        triage = triage.filter(hospital__county_id=county_id)
        transfers = transfers.filter(origin_hospital__county_id=county_id)
        referrals = referrals.filter(referring_hospital__county_id=county_id)
        claims = claims.filter(hospital__county_id=county_id)

    beds = hospitals.aggregate(
        total=Sum('total_beds'), available=Sum('available_beds'),
        icu=Sum('icu_beds'), icu_available=Sum('available_icu_beds'),
        emergency=Sum('emergency_beds'), emergency_available=Sum('available_emergency_beds'),
    )
    beds = {k: v or 0 for k, v in beds.items()}
    occupancy = round((beds['total'] - beds['available']) / beds['total'] * 100, 1) if beds['total'] else 0

    active = emergencies.filter(status__in=ACTIVE_EMERGENCY)
    by_severity = {row['severity']: row['n'] for row in active.values('severity').annotate(n=Count('id'))}

    response = (dispatches.filter(dispatched_at__isnull=False)
                .annotate(delay=ExpressionWrapper(F('dispatched_at') - F('call_received'),
                                                  output_field=DurationField()))
                .aggregate(avg=Avg('delay'))['avg'])

    pending_claims = claims.filter(status__in=['SUBMITTED', 'UNDER_REVIEW'])
    return {
        'countyId': county_id,
        'hospitals': {
            'total': hospitals.count(),
            'acceptingPatients': hospitals.filter(accepting_patients=True).count(),
        },
        'beds': {**beds, 'occupancyRate': occupancy},
        'patientsToday': triage.filter(arrival_time__gte=day_start).count(),
        'triageWaiting': triage.filter(status='WAITING').count(),
        'activeEmergencies': active.count(),
        'emergenciesBySeverity': by_severity,
        'activeDispatches': dispatches.filter(status__in=ACTIVE_DISPATCH).count(),
        'avgDispatchMinutes': _minutes(response),
        'ambulances': {
            'total': ambulances.count(),
            'available': ambulances.filter(status='AVAILABLE').count(),
        },
        'pendingTransfers': transfers.filter(status='REQUESTED').count(),
        'pendingReferrals': referrals.filter(status='PENDING').count(),
        'pendingClaims': {
            'count': pending_claims.count(),
            'amount': str(pending_claims.aggregate(s=Sum('amount_claimed'))['s'] or 0),
        },
        'recentEmergencies': [
            {
                'id': e.id,
                'emergencyNumber': e.emergency_number,
                'type': e.emergency_type,
                'severity': e.severity,
                'status': e.status,
                'location': e.location,
                'reportedAt': e.reported_at.isoformat(),
            }
            for e in emergencies.order_by('-reported_at')[:5]
        ],
        'generatedAt': now.isoformat(),
    }
