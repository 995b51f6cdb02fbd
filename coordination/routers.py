"""
URL mappings for the coordination API.

Paths carry no trailing slash, matching what the dashboard client calls.
Static segments (``queue``, ``stats``, ``ambulances``, ``nearest``,
``available-beds``, ``verify-sha``) are listed before the ``<id>`` routes
that would otherwise swallow them.
"""
from django.urls import include, path

from .auth_views import login_view, logout_view, me_view, refresh_view
from .views import (
    alerts,
    audit,
    claims,
    counties,
    dashboard,
    dispatch,
    emergencies,
    facilities,
    health,
    hospitals,
    patients,
    referrals,
    staff,
    transfers,
    triage,
)

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),

    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/me', me_view, name='me_view'),
    path('api/auth/refresh', refresh_view, name='refresh_view'),
    path('api/auth/logout', logout_view, name='logout_view'),

    # Administrative units and facilities
    path('api/counties', counties.counties, name='counties'),
    path('api/counties/<str:pk>', counties.county_detail, name='county_detail'),
    path('api/hospitals', hospitals.hospitals, name='hospitals'),
    path('api/hospitals/<str:pk>', hospitals.hospital_detail, name='hospital_detail'),
    path('api/hospitals/<str:pk>/capacity', hospitals.hospital_capacity, name='hospital_capacity'),
    path('api/hospitals/<str:pk>/status', hospitals.hospital_status, name='hospital_status'),
    path('api/facilities/health-centers', facilities.health_centers, name='health_centers'),
    path('api/facilities/dispensaries', facilities.dispensaries, name='dispensaries'),
    path('api/facilities/community-health-units', facilities.community_health_units,
         name='community_health_units'),
    path('api/departments', facilities.departments, name='departments'),

    # Patients
    path('api/patients', patients.patients, name='patients'),
    path('api/patients/verify-sha', patients.verify_sha, name='verify_sha'),
    path('api/patients/<str:pk>', patients.patient_detail, name='patient_detail'),

    # Triage
    path('api/triage', triage.triage, name='triage'),
    path('api/triage/queue', triage.queue, name='triage_queue'),
    path('api/triage/stats', triage.stats, name='triage_stats'),
    path('api/triage/<str:pk>', triage.triage_detail, name='triage_detail'),

    # Emergencies and dispatch
    path('api/emergencies', emergencies.emergencies, name='emergencies'),
    path('api/emergencies/<str:pk>', emergencies.emergency_detail, name='emergency_detail'),
    path('api/dispatch', dispatch.dispatch, name='dispatch'),
    path('api/dispatch/ambulances', dispatch.ambulances, name='ambulances'),
    path('api/dispatch/ambulances/<str:pk>', dispatch.ambulance_detail, name='ambulance_detail'),
    path('api/dispatch/ambulances/<str:pk>/location', dispatch.ambulance_location, name='ambulance_location'),
    path('api/dispatch/ambulances/<str:pk>/maintenance', dispatch.ambulance_maintenance,
         name='ambulance_maintenance'),
    path('api/dispatch/nearest', dispatch.nearest, name='dispatch_nearest'),
    path('api/dispatch/<str:pk>', dispatch.dispatch_detail, name='dispatch_detail'),

    # Transfers and referrals
    path('api/transfers', transfers.transfers, name='transfers'),
    path('api/transfers/available-beds', transfers.available_beds, name='transfer_available_beds'),
    path('api/transfers/<str:pk>', transfers.transfer_detail, name='transfer_detail'),
    path('api/transfers/<str:pk>/approve', transfers.transfer_approve, name='transfer_approve'),
    path('api/transfers/<str:pk>/reject', transfers.transfer_reject, name='transfer_reject'),
    path('api/referrals', referrals.referrals, name='referrals'),
    path('api/referrals/<str:pk>/respond', referrals.referral_respond, name='referral_respond'),

    # SHA claims
    path('api/sha-claims', claims.claims, name='claims'),
    path('api/sha-claims/<str:pk>/status', claims.claim_status, name='claim_status'),

    # Staff
    path('api/staff', staff.staff, name='staff'),
    path('api/staff/<str:pk>', staff.staff_detail, name='staff_detail'),
    path('api/staff/<str:pk>/schedule', staff.staff_schedule, name='staff_schedule'),

    # Alerts, audit and dashboards
    path('api/alerts', alerts.alerts, name='alerts'),
    path('api/alerts/<str:pk>/acknowledge', alerts.acknowledge, name='alert_acknowledge'),
    path('api/audit-logs', audit.audit_logs, name='audit_logs'),
    path('api/dashboard/stats', dashboard.stats, name='dashboard_stats'),
    path('api/analytics/triage', dashboard.triage_trends, name='triage_analytics'),
]
