from rest_framework import serializers

from coordination.models import TriageEntry
from coordination.serializers.common import CleanCharField

LEVELS = [c for c, _ in TriageEntry.LEVEL_CHOICES]
STATUSES = [c for c, _ in TriageEntry.STATUS_CHOICES]


class VitalSignsSerializer(serializers.Serializer):
    bloodPressure = serializers.RegexField(r'^\d{2,3}/\d{2,3}$', required=False)
    heartRate = serializers.IntegerField(required=False, min_value=20, max_value=250)
    temperature = serializers.FloatField(required=False, min_value=30, max_value=45)
    respiratoryRate = serializers.IntegerField(required=False, min_value=4, max_value=60)
    oxygenSaturation = serializers.IntegerField(required=False, min_value=50, max_value=100)
    painScore = serializers.IntegerField(required=False, min_value=0, max_value=10)
    gcs = serializers.IntegerField(required=False, min_value=3, max_value=15)


class TriageCreateSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=40)
    hospitalId = serializers.CharField(required=False, max_length=40)
    departmentId = serializers.CharField(required=False, allow_null=True, max_length=40)
    chiefComplaint = CleanCharField()
    triageLevel = serializers.ChoiceField(choices=LEVELS)
    arrivalMode = serializers.ChoiceField(choices=[c for c, _ in TriageEntry.ARRIVAL_CHOICES], required=False)
    vitalSigns = VitalSignsSerializer(required=False)
    arrivalTime = serializers.DateTimeField(required=False)
    notes = CleanCharField(required=False, allow_blank=True)


class TriageUpdateSerializer(serializers.Serializer):
    triageLevel = serializers.ChoiceField(choices=LEVELS, required=False)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    departmentId = serializers.CharField(required=False, allow_null=True, max_length=40)
    vitalSigns = VitalSignsSerializer(required=False)
    notes = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        return attrs


class TriageListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    triageLevel = serializers.ChoiceField(choices=LEVELS, required=False)
    hospitalId = serializers.CharField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)


class TriageStatsQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(choices=['today', 'week', 'month', 'custom'], required=False, default='today')
    hospitalId = serializers.CharField(required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)

    def validate(self, attrs):
        if attrs.get('period') == 'custom':
            if not (attrs.get('startDate') and attrs.get('endDate')):
                raise serializers.ValidationError({'startDate': ['startDate and endDate are required for a custom period']})
            if attrs['endDate'] < attrs['startDate']:
                raise serializers.ValidationError({'endDate': ['endDate must not be before startDate']})
        if attrs.get('hospitalId') == 'all':
            attrs.pop('hospitalId')
        return attrs


class AnalyticsQuerySerializer(serializers.Serializer):
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    hospitalId = serializers.CharField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if start and end:
            if end < start:
                raise serializers.ValidationError({'endDate': ['endDate must not be before startDate']})
            if (end - start).days > 366:
                raise serializers.ValidationError({'startDate': ['Range may not exceed one year']})
        return attrs
