import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from coordination.permissions import principal_for
from coordination.services.alerts import ALERTS_GROUP

DISPATCH_ROLES = {'DISPATCHER', 'DISPATCH_COORDINATOR', 'EMERGENCY_MANAGER'}


def alert_visible_to(alert: dict, principal) -> bool:
    """Same audience rules as the alert list endpoint, applied to one pushed alert."""
    if principal.is_super_admin or principal.role == 'ADMIN':
        return True
    audience = alert.get('audienceType')
    if audience == 'ALL':
        return True
    if audience == 'SPECIFIC_HOSPITAL':
        return bool(principal.hospital_id) and alert.get('hospitalId') == principal.hospital_id
    if audience == 'COUNTY':
        return bool(principal.county_id) and alert.get('countyId') == principal.county_id
    if audience == 'ALL_DISPATCHERS' and principal.role in DISPATCH_ROLES:
        return not principal.county_id or alert.get('countyId') in (None, principal.county_id)
    return False


class AlertsConsumer(AsyncWebsocketConsumer):
    GROUP = ALERTS_GROUP

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return
        self.principal = await sync_to_async(principal_for)(user)
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "user": self.principal.email}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def alert_created(self, event):
        # event: {"type": "alert.created", "alert": {...}}
        if alert_visible_to(event["alert"], self.principal):
            await self.send(json.dumps(event))
