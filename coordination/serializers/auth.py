from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_email(self, v):
        return (v or '').strip().lower()

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class RefreshSerializer(serializers.Serializer):
    refreshToken = serializers.CharField(required=False)
    refresh = serializers.CharField(required=False)

    def validate(self, attrs):
        token = attrs.get('refreshToken') or attrs.get('refresh')
        if not token:
            raise serializers.ValidationError({'refreshToken': ['This field is required.']})
        return {'refresh': token}


class LogoutSerializer(serializers.Serializer):
    refreshToken = serializers.CharField(required=False, allow_blank=True)
    refresh = serializers.CharField(required=False, allow_blank=True)
