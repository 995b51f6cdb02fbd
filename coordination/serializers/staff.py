from rest_framework import serializers

from coordination.models import Staff, User
from coordination.permissions import ROLE_PERMISSIONS, normalize_role
from coordination.serializers.common import CleanCharField


class StaffCreateSerializer(serializers.Serializer):
    firstName = CleanCharField(max_length=150)
    lastName = CleanCharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(required=False, allow_blank=True, write_only=True, min_length=8)
    role = serializers.CharField(max_length=40)
    hospitalId = serializers.CharField(required=False, allow_null=True, max_length=40)
    departmentId = serializers.CharField(required=False, allow_null=True, max_length=40)
    staffNumber = serializers.CharField(required=False, allow_blank=True, max_length=40)
    cadre = CleanCharField(required=False, allow_blank=True, max_length=80)
    specialization = CleanCharField(required=False, allow_blank=True, max_length=120)
    licenseNumber = serializers.CharField(required=False, allow_blank=True, max_length=60)
    employmentStatus = serializers.ChoiceField(choices=[c for c, _ in Staff.EMPLOYMENT_CHOICES], required=False)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=40)

    def validate_email(self, v):
        v = v.strip().lower()
        if User.objects.filter(email__iexact=v).exists():
            raise serializers.ValidationError('A user with this email already exists')
        return v

    def validate_role(self, v):
        if normalize_role(v) not in ROLE_PERMISSIONS:
            raise serializers.ValidationError(f"Unknown role: {v}")
        return normalize_role(v)

    def validate_staffNumber(self, v):
        if v and Staff.objects.filter(staff_number=v).exists():
            raise serializers.ValidationError('Staff number already in use')
        return v


class StaffUpdateSerializer(serializers.Serializer):
    firstName = CleanCharField(required=False, max_length=150)
    lastName = CleanCharField(required=False, max_length=150)
    role = serializers.CharField(required=False, max_length=40)
    hospitalId = serializers.CharField(required=False, allow_null=True, max_length=40)
    departmentId = serializers.CharField(required=False, allow_null=True, max_length=40)
    cadre = CleanCharField(required=False, allow_blank=True, max_length=80)
    specialization = CleanCharField(required=False, allow_blank=True, max_length=120)
    licenseNumber = serializers.CharField(required=False, allow_blank=True, max_length=60)
    employmentStatus = serializers.ChoiceField(choices=[c for c, _ in Staff.EMPLOYMENT_CHOICES], required=False)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=40)
    isActive = serializers.BooleanField(required=False)

    def validate_role(self, v):
        if normalize_role(v) not in ROLE_PERMISSIONS:
            raise serializers.ValidationError(f"Unknown role: {v}")
        return normalize_role(v)


class StaffListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True)
    hospitalId = serializers.CharField(required=False)
    onDutyOnly = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)


class ShiftSerializer(serializers.Serializer):
    startAt = serializers.DateTimeField()
    endAt = serializers.DateTimeField()
    hospitalId = serializers.CharField(required=False, allow_null=True, max_length=40)
    notes = CleanCharField(required=False, allow_blank=True, max_length=255)

    def validate(self, attrs):
        if attrs['endAt'] <= attrs['startAt']:
            raise serializers.ValidationError({'endAt': ['Shift must end after it starts']})
        return attrs
