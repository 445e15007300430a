from rest_framework import serializers
from django.contrib.auth import authenticate, get_user_model

from .models import Profile, UserFilter

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(write_only=True, required=True)
    password = serializers.CharField(write_only=True, required=True, trim_whitespace=False)

    def validate(self, attrs):
        user = authenticate(
            request=self.context.get('request'),
            username=attrs.get('username'),
            password=attrs.get('password'),
        )
        if not user:
            raise serializers.ValidationError(
                "Unable to log in with provided credentials.",
                code='authorization'
            )
        if not user.is_active:
            raise serializers.ValidationError(
                "User account is disabled.",
                code='authorization'
            )

        attrs['user'] = user
        return attrs


class ProfileLiteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Profile
        fields = ('id', 'username')


class UserDetailSerializer(serializers.ModelSerializer):
    profile = ProfileLiteSerializer(read_only=True)
    is_email_verified = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'email_verified_at', 'is_email_verified', 'profile')
        read_only_fields = fields


class FilterRequestSerializer(serializers.Serializer):
    """Body of a mute/block request: ``type`` names the target kind, ``item`` its id."""
    type = serializers.CharField()
    item = serializers.IntegerField(min_value=1)


class UserFilterSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserFilter
        fields = ('id', 'filterable_id', 'filterable_type', 'filter_type', 'created_at')
        read_only_fields = fields
