"""Coordination application for the HealthNet backend.

Models, permission resolution, services and the ``/api`` route handlers
for counties, facilities, patients, triage, emergencies, dispatch,
transfers, referrals, SHA claims, staff, alerts and audit logs.
"""
