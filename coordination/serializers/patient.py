from rest_framework import serializers

from coordination.models import Patient
from coordination.serializers.common import CleanCharField

BLOOD_TYPES = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']


class PatientSerializer(serializers.Serializer):
    firstName = CleanCharField(max_length=120)
    lastName = CleanCharField(max_length=120)
    gender = serializers.ChoiceField(choices=[c for c, _ in Patient.GENDER_CHOICES])
    dateOfBirth = serializers.DateField(required=False, allow_null=True)
    nationalId = serializers.RegexField(r'^\d{6,10}$', required=False, allow_blank=True)
    shaNumber = serializers.CharField(required=False, allow_blank=True, max_length=40)
    phone = serializers.RegexField(r'^\+?\d{9,15}$', required=False, allow_blank=True)
    countyId = serializers.CharField(required=False, allow_null=True, max_length=40)
    currentHospitalId = serializers.CharField(required=False, allow_null=True, max_length=40)
    currentStatus = serializers.ChoiceField(choices=[c for c, _ in Patient.STATUS_CHOICES], required=False)
    bloodType = serializers.ChoiceField(choices=BLOOD_TYPES, required=False, allow_blank=True)
    allergies = serializers.ListField(child=CleanCharField(max_length=120), required=False)

    def validate_nationalId(self, v):
        if not v:
            return v
        qs = Patient.objects.filter(national_id=v)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('A patient with this national ID already exists')
        return v


PATIENT_FIELD_MAP = {
    'firstName': 'first_name',
    'lastName': 'last_name',
    'gender': 'gender',
    'dateOfBirth': 'date_of_birth',
    'nationalId': 'national_id',
    'shaNumber': 'sha_number',
    'phone': 'phone',
    'countyId': 'county_id',
    'currentHospitalId': 'current_hospital_id',
    'currentStatus': 'current_status',
    'bloodType': 'blood_type',
    'allergies': 'allergies',
}


class PatientListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    search = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=[c for c, _ in Patient.STATUS_CHOICES], required=False)
    hospitalId = serializers.CharField(required=False)


class VerifyShaSerializer(serializers.Serializer):
    shaNumber = serializers.CharField(required=False, allow_blank=True)
    nationalId = serializers.CharField(required=False, allow_blank=True)
    patientNumber = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        attrs = {k: v.strip() for k, v in attrs.items() if v and v.strip()}
        if not attrs:
            raise serializers.ValidationError('Provide shaNumber, nationalId, patientNumber or phone')
        return attrs
