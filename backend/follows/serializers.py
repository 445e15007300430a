from rest_framework import serializers

from accounts.serializers import ProfileLiteSerializer
from .models import FollowRequest


class FollowRequestSerializer(serializers.ModelSerializer):
    follower = ProfileLiteSerializer(read_only=True)

    class Meta:
        model = FollowRequest
        fields = ('id', 'follower', 'following_id', 'is_rejected', 'created_at')
        read_only_fields = fields


class FollowRequestActionSerializer(serializers.Serializer):
    """``action`` is "accept" to accept; any other value rejects."""
    action = serializers.CharField(max_length=10)
    id = serializers.IntegerField(min_value=1)

    def validate_action(self, value):
        return 'accept' if value == 'accept' else 'reject'
