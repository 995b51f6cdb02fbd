import html

import bleach
from rest_framework import serializers


class CleanCharField(serializers.CharField):
    """CharField that strips markup from free text before it reaches the database.

    bleach escapes what it keeps (``<`` becomes ``&lt;``); the text is
    stored unescaped so clinical notes such as ``SpO2 < 90`` survive.
    Stripping repeats until stable so escaped markup cannot come back as a tag.
    """
    max_passes = 5

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        for _ in range(self.max_passes):
            cleaned = html.unescape(bleach.clean(value, tags=[], strip=True))
            if cleaned == value:
                break
            value = cleaned
        return value.strip()


class CoordinatesSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
