from rest_framework import serializers

from accounts.serializers import ProfileLiteSerializer
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    actor = ProfileLiteSerializer(read_only=True)
    profile_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Notification
        fields = ('id', 'profile_id', 'actor', 'action', 'message', 'item_type', 'item_id', 'created_at')
        read_only_fields = fields


class NotificationQuerySerializer(serializers.Serializer):
    """Query string of the notification list endpoints."""
    page = serializers.IntegerField(min_value=1, max_value=3, required=False, default=1)
    a = serializers.RegexField(r'^[-a-zA-Z0-9_]+$', required=False, allow_blank=False)
