"""
Serializers para API REST
"""
from datetime import datetime, timezone as dt_timezone

from rest_framework import serializers


class TimestampField(serializers.Field):
    """Segundos unix exibidos como datetime ISO (UTC)"""

    def to_representation(self, value):
        if value is None:
            return None
        return datetime.fromtimestamp(value, tz=dt_timezone.utc).isoformat()


class LoginSessionSerializer(serializers.Serializer):
    """Serializer para uma sessão de login (dicionário do store)"""
    login = TimestampField(read_only=True)
    last_activity = TimestampField(read_only=True)
    expiration = TimestampField(read_only=True)
    ip = serializers.CharField(read_only=True, allow_null=True)
    ua = serializers.CharField(read_only=True, allow_blank=True)
    current = serializers.BooleanField(read_only=True)
