import logging
from typing import Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.db.models import Q

from coordination.models import DispatchCenter, Emergency, Hospital, SystemAlert
from coordination.services.numbering import stamped_number

logger = logging.getLogger(__name__)

ALERTS_GROUP = 'alerts'
HOSPITAL_TARGET_ROLES = ['HOSPITAL_ADMIN', 'DISPATCHER', 'DOCTOR']


def format_alert(a: SystemAlert) -> dict:
    return {
        'id': a.id,
        'alertNumber': a.alert_number,
        'alertType': a.alert_type,
        'severity': a.severity,
        'title': a.title,
        'message': a.message,
        'sourceType': a.source_type,
        'sourceId': a.source_id,
        'hospitalId': a.hospital_id,
        'dispatchCenterId': a.dispatch_center_id,
        'countyId': a.county_id,
        'audienceType': a.audience_type,
        'targetRoles': a.target_roles,
        'requiresAction': a.requires_action,
        'priority': a.priority,
        'acknowledgedBy': a.acknowledged_by_id,
        'acknowledgedAt': a.acknowledged_at.isoformat() if a.acknowledged_at else None,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
    }


def broadcast_alerts(alerts: Iterable[SystemAlert]) -> None:
    """Push alerts to connected websocket clients; failures are only logged."""
    alerts = list(alerts)
    if not alerts:
        return
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        for a in alerts:
            async_to_sync(channel_layer.group_send)(
                ALERTS_GROUP, {'type': 'alert.created', 'alert': format_alert(a)}
            )
    except Exception:
        logger.exception("alert broadcast failed for %d alerts", len(alerts))


def notify_emergency(emergency: Emergency) -> list[SystemAlert]:
    """Create alert rows for every hospital and dispatch centre in the emergency's county.

    Only active hospitals accepting patients are notified.  Errors are
    logged and swallowed: the emergency is already recorded and must not
    be rolled back because an alert could not be written.
    """
    created: list[SystemAlert] = []
    try:
        with transaction.atomic():
            created = _create_alerts(emergency)
    except Exception:
        logger.exception("alert fan-out failed for emergency %s", emergency.emergency_number)
        created = []

    broadcast_alerts(created)
    return created


def _create_alerts(emergency: Emergency) -> list[SystemAlert]:
    created: list[SystemAlert] = []
    hospitals = Hospital.objects.filter(
        county_id=emergency.county_id, is_active=True, accepting_patients=True
    ).only('id', 'name')
    for h in hospitals:
        created.append(SystemAlert.objects.create(
            alert_number=stamped_number('ALERT'),
            alert_type='EMERGENCY_DECLARED',
            severity='CRITICAL',
            title=f"New Emergency: {emergency.emergency_type}",
            message=(f"Emergency {emergency.emergency_number} reported in {emergency.location}. "
                     f"Severity: {emergency.severity}."),
            source_type='EMERGENCY',
            source_id=emergency.id,
            hospital=h,
            county_id=emergency.county_id,
            audience_type='SPECIFIC_HOSPITAL',
            target_roles=HOSPITAL_TARGET_ROLES,
            requires_action=True,
            priority=1,
        ))

    centers = DispatchCenter.objects.filter(county_id=emergency.county_id, is_active=True)
    for c in centers:
        created.append(SystemAlert.objects.create(
            alert_number=stamped_number('DISPATCH'),
            alert_type='EMERGENCY_DECLARED',
            severity='CRITICAL',
            title='Emergency Dispatch Required',
            message=(f"Emergency {emergency.emergency_number} requires ambulance dispatch. "
                     f"Location: {emergency.location}"),
            source_type='EMERGENCY',
            source_id=emergency.id,
            dispatch_center=c,
            county_id=emergency.county_id,
            audience_type='ALL_DISPATCHERS',
            target_roles=['DISPATCHER'],
            requires_action=True,
            priority=1,
        ))
    logger.info("emergency %s: alerted %d hospitals, %d dispatch centres",
                emergency.emergency_number, len(hospitals), len(centers))
    return created


def visible_alerts(qs, principal):
    """Alerts addressed to the caller's role, hospital or county."""
    if principal.is_super_admin or principal.role == 'ADMIN':
        return qs
    cond = Q(audience_type='ALL')
    if principal.hospital_id:
        cond |= Q(audience_type='SPECIFIC_HOSPITAL', hospital_id=principal.hospital_id)
    if principal.county_id:
        cond |= Q(audience_type='COUNTY', county_id=principal.county_id)
    if principal.role in ('DISPATCHER', 'DISPATCH_COORDINATOR', 'EMERGENCY_MANAGER'):
        dispatch = Q(audience_type='ALL_DISPATCHERS')
        if principal.county_id:
            dispatch &= Q(county_id=principal.county_id) | Q(county__isnull=True)
        cond |= dispatch
    return qs.filter(cond)
