from rest_framework import serializers

from coordination.models import County, Hospital
from coordination.serializers.common import CleanCharField, CoordinatesSerializer


class CountyCreateSerializer(serializers.Serializer):
    name = CleanCharField(max_length=120)
    code = serializers.RegexField(r'^KE-\d{2}$', max_length=10)
    region = CleanCharField(required=False, allow_blank=True, max_length=120)
    population = serializers.IntegerField(required=False, min_value=0)
    areaKm2 = serializers.FloatField(required=False, min_value=0)
    coordinates = CoordinatesSerializer(required=False, allow_null=True)
    governorName = CleanCharField(required=False, allow_blank=True, max_length=120)
    healthCECName = CleanCharField(required=False, allow_blank=True, max_length=120)
    countyHealthDirector = CleanCharField(required=False, allow_blank=True, max_length=120)
    annualHealthBudget = serializers.DecimalField(required=False, max_digits=8, decimal_places=2)
    isMarginalized = serializers.BooleanField(required=False)

    def validate_code(self, v):
        if County.objects.filter(code=v).exists():
            raise serializers.ValidationError('County code already exists')
        return v


class HospitalSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    code = serializers.CharField(max_length=40)
    mflCode = serializers.CharField(required=False, allow_blank=True, max_length=40)
    countyId = serializers.CharField(max_length=40)
    level = serializers.ChoiceField(choices=[c for c, _ in Hospital.LEVEL_CHOICES])
    type = serializers.ChoiceField(choices=[c for c, _ in Hospital.TYPE_CHOICES], required=False)
    ownership = serializers.ChoiceField(choices=[c for c, _ in Hospital.OWNERSHIP_CHOICES], required=False)
    subCounty = CleanCharField(required=False, allow_blank=True, max_length=120)
    address = CleanCharField(required=False, allow_blank=True, max_length=255)
    coordinates = CoordinatesSerializer(required=False, allow_null=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=40)
    emergencyPhone = serializers.CharField(required=False, allow_blank=True, max_length=40)
    email = serializers.EmailField(required=False, allow_blank=True)
    totalBeds = serializers.IntegerField(required=False, min_value=0)
    icuBeds = serializers.IntegerField(required=False, min_value=0)
    emergencyBeds = serializers.IntegerField(required=False, min_value=0)
    shaContracted = serializers.BooleanField(required=False)
    shaFacilityCode = serializers.CharField(required=False, allow_blank=True, max_length=40)
    services = serializers.ListField(child=serializers.CharField(max_length=80), required=False)
    hasAmbulance = serializers.BooleanField(required=False)
    acceptingPatients = serializers.BooleanField(required=False)
    operationalStatus = serializers.ChoiceField(choices=[c for c, _ in Hospital.OPERATIONAL_CHOICES], required=False)
    isActive = serializers.BooleanField(required=False)

    def validate_code(self, v):
        qs = Hospital.objects.filter(code=v)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Hospital code already exists')
        return v


HOSPITAL_FIELD_MAP = {
    'name': 'name',
    'code': 'code',
    'mflCode': 'mfl_code',
    'countyId': 'county_id',
    'level': 'level',
    'type': 'hospital_type',
    'ownership': 'ownership',
    'subCounty': 'sub_county',
    'address': 'address',
    'coordinates': 'coordinates',
    'phone': 'phone',
    'emergencyPhone': 'emergency_phone',
    'email': 'email',
    'totalBeds': 'total_beds',
    'icuBeds': 'icu_beds',
    'emergencyBeds': 'emergency_beds',
    'shaContracted': 'sha_contracted',
    'shaFacilityCode': 'sha_facility_code',
    'services': 'services',
    'hasAmbulance': 'has_ambulance',
    'acceptingPatients': 'accepting_patients',
    'operationalStatus': 'operational_status',
    'isActive': 'is_active',
}


class CapacitySerializer(serializers.Serializer):
    totalBeds = serializers.IntegerField(required=False, min_value=0)
    availableBeds = serializers.IntegerField(required=False, min_value=0)
    icuBeds = serializers.IntegerField(required=False, min_value=0)
    availableIcuBeds = serializers.IntegerField(required=False, min_value=0)
    emergencyBeds = serializers.IntegerField(required=False, min_value=0)
    availableEmergencyBeds = serializers.IntegerField(required=False, min_value=0)
    acceptingPatients = serializers.BooleanField(required=False)

    PAIRS = [
        ('totalBeds', 'availableBeds', 'total_beds', 'available_beds'),
        ('icuBeds', 'availableIcuBeds', 'icu_beds', 'available_icu_beds'),
        ('emergencyBeds', 'availableEmergencyBeds', 'emergency_beds', 'available_emergency_beds'),
    ]

    def validate(self, attrs):
        hospital = self.instance
        errors = {}
        for total_key, avail_key, total_field, avail_field in self.PAIRS:
            total = attrs.get(total_key, getattr(hospital, total_field, 0))
            avail = attrs.get(avail_key, getattr(hospital, avail_field, 0))
            if avail > total:
                errors[avail_key] = [f"Cannot exceed {total_key} ({total})"]
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


CAPACITY_FIELD_MAP = {
    'totalBeds': 'total_beds',
    'availableBeds': 'available_beds',
    'icuBeds': 'icu_beds',
    'availableIcuBeds': 'available_icu_beds',
    'emergencyBeds': 'emergency_beds',
    'availableEmergencyBeds': 'available_emergency_beds',
    'acceptingPatients': 'accepting_patients',
}


class HospitalStatusSerializer(CapacitySerializer):
    operationalStatus = serializers.ChoiceField(choices=[c for c, _ in Hospital.OPERATIONAL_CHOICES], required=False)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        current = getattr(self.instance, 'operational_status', None)
        if attrs.get('operationalStatus', current) == 'CLOSED':
            if attrs.get('acceptingPatients'):
                raise serializers.ValidationError({'acceptingPatients': ['A closed hospital cannot accept patients']})
            attrs['acceptingPatients'] = False
        return attrs


STATUS_FIELD_MAP = dict(CAPACITY_FIELD_MAP, operationalStatus='operational_status')
