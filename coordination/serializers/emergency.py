from rest_framework import serializers

from coordination.models import Emergency
from coordination.serializers.common import CleanCharField, CoordinatesSerializer

TYPES = [c for c, _ in Emergency.TYPE_CHOICES]
SEVERITIES = [c for c, _ in Emergency.SEVERITY_CHOICES]
STATUSES = [c for c, _ in Emergency.STATUS_CHOICES]


class EmergencyCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TYPES)
    severity = serializers.ChoiceField(choices=SEVERITIES)
    countyId = serializers.CharField(max_length=40)
    location = CleanCharField(max_length=255)
    coordinates = CoordinatesSerializer(required=False, allow_null=True)
    description = CleanCharField()
    cause = CleanCharField(required=False, allow_blank=True, max_length=255)
    estimatedCasualties = serializers.IntegerField(required=False, min_value=1)
    reportedBy = CleanCharField(required=False, allow_blank=True, max_length=120)
    reporterPhone = serializers.CharField(required=False, allow_blank=True, max_length=40)


class EmergencyUpdateSerializer(EmergencyCreateSerializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # every field optional, also when nested under the bulk payload
        for f in self.fields.values():
            f.required = False


class EmergencyBulkUpdateSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.CharField(max_length=40), allow_empty=False)
    data = EmergencyUpdateSerializer()


class EmergencyListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    countyId = serializers.CharField(required=False)
    type = serializers.ChoiceField(choices=TYPES, required=False)
    severity = serializers.ChoiceField(choices=SEVERITIES, required=False)


# request key -> model field
FIELD_MAP = {
    'type': 'emergency_type',
    'severity': 'severity',
    'countyId': 'county_id',
    'location': 'location',
    'coordinates': 'coordinates',
    'description': 'description',
    'cause': 'cause',
    'estimatedCasualties': 'estimated_casualties',
    'reportedBy': 'reported_by',
    'reporterPhone': 'reporter_phone',
    'status': 'status',
}


def to_model_fields(data: dict) -> dict:
    out = {}
    for key, value in data.items():
        if key == 'coordinates' and value is not None:
            value = dict(value)
        out[FIELD_MAP[key]] = value
    return out
