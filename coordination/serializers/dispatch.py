from rest_framework import serializers

from coordination.models import Ambulance, DispatchLog, Emergency
from coordination.serializers.common import CleanCharField, CoordinatesSerializer

DISPATCH_STATUSES = [c for c, _ in DispatchLog.STATUS_CHOICES]
AMBULANCE_STATUSES = [c for c, _ in Ambulance.STATUS_CHOICES]

# Allowed moves for a dispatch call; terminal states have no entry
DISPATCH_TRANSITIONS = {
    'RECEIVED': {'DISPATCHED', 'CANCELLED'},
    'DISPATCHED': {'EN_ROUTE', 'CANCELLED'},
    'EN_ROUTE': {'ON_SCENE', 'CANCELLED'},
    'ON_SCENE': {'TRANSPORTING', 'COMPLETED', 'CANCELLED'},
    'TRANSPORTING': {'COMPLETED'},
}


class DispatchCreateSerializer(serializers.Serializer):
    callerPhone = serializers.RegexField(r'^\+?\d{9,15}$')
    callerName = CleanCharField(required=False, allow_blank=True, max_length=120)
    callerLocation = CleanCharField(max_length=255)
    emergencyType = serializers.ChoiceField(choices=[c for c, _ in Emergency.TYPE_CHOICES])
    severity = serializers.ChoiceField(choices=[c for c, _ in Emergency.SEVERITY_CHOICES])
    description = CleanCharField()
    patientCount = serializers.IntegerField(required=False, min_value=1, default=1)
    coordinates = CoordinatesSerializer(required=False, allow_null=True)
    landmark = CleanCharField(required=False, allow_blank=True, max_length=255)
    emergencyId = serializers.CharField(required=False, allow_null=True, max_length=40)
    ambulanceId = serializers.CharField(required=False, allow_null=True, max_length=40)


class DispatchUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DISPATCH_STATUSES, required=False)
    ambulanceId = serializers.CharField(required=False, max_length=40)
    emergencyId = serializers.CharField(required=False, max_length=40)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        new = attrs.get('status')
        if new and self.instance is not None and new != self.instance.status:
            allowed = DISPATCH_TRANSITIONS.get(self.instance.status, set())
            if new not in allowed:
                raise serializers.ValidationError(
                    {'status': [f"Cannot move dispatch from {self.instance.status} to {new}"]})
        return attrs


class DispatchListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=DISPATCH_STATUSES, required=False)


class AmbulanceSerializer(serializers.Serializer):
    registrationNumber = serializers.RegexField(r'^[A-Z0-9 ]{4,20}$')
    callSign = serializers.CharField(required=False, allow_blank=True, max_length=40)
    type = serializers.ChoiceField(choices=[c for c, _ in Ambulance.TYPE_CHOICES], required=False)
    countyId = serializers.CharField(required=False, allow_null=True, max_length=40)
    hospitalId = serializers.CharField(required=False, allow_null=True, max_length=40)
    status = serializers.ChoiceField(choices=AMBULANCE_STATUSES, required=False)
    crewCapacity = serializers.IntegerField(required=False, min_value=1, max_value=10)
    lastMaintenance = serializers.DateField(required=False, allow_null=True)

    def validate_registrationNumber(self, v):
        qs = Ambulance.objects.filter(registration_number=v)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Ambulance with this registration number already exists')
        return v


AMBULANCE_FIELD_MAP = {
    'registrationNumber': 'registration_number',
    'callSign': 'call_sign',
    'type': 'ambulance_type',
    'countyId': 'county_id',
    'hospitalId': 'hospital_id',
    'status': 'status',
    'crewCapacity': 'crew_capacity',
    'lastMaintenance': 'last_maintenance',
}


class LocationSerializer(CoordinatesSerializer):
    accuracy = serializers.FloatField(required=False, min_value=0)
    speed = serializers.FloatField(required=False, min_value=0)
    heading = serializers.FloatField(required=False, min_value=0, max_value=360)


class NearestQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    emergencyType = serializers.ChoiceField(choices=[c for c, _ in Emergency.TYPE_CHOICES], required=False)
    severity = serializers.ChoiceField(choices=[c for c, _ in Emergency.SEVERITY_CHOICES], required=False)
    requiredEquipment = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=20, default=5)


class MaintenanceSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['START', 'COMPLETE'])
    type = CleanCharField(required=False, allow_blank=True, max_length=120)
    description = CleanCharField(required=False, allow_blank=True)
    performedBy = CleanCharField(required=False, allow_blank=True, max_length=120)
    cost = serializers.DecimalField(required=False, max_digits=10, decimal_places=2, min_value=0)
    nextServiceDate = serializers.DateField(required=False)

    def validate(self, attrs):
        ambulance = self.instance
        if ambulance is None:
            return attrs
        if attrs['action'] == 'START' and ambulance.status not in ('AVAILABLE', 'OUT_OF_SERVICE'):
            raise serializers.ValidationError(
                {'action': [f"Ambulance is {ambulance.status}; only idle ambulances can go into maintenance"]})
        if attrs['action'] == 'COMPLETE' and ambulance.status != 'MAINTENANCE':
            raise serializers.ValidationError({'action': ['Ambulance is not in maintenance']})
        return attrs
