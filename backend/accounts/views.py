# views.py
import logging

from django.contrib.auth import get_user_model
from rest_framework import generics, permissions, status
from rest_framework.generics import GenericAPIView
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import SlidingToken

from backend.context import get_context
from backend.exceptions import validated
from .models import FilterType
from .serializers import FilterRequestSerializer, LoginSerializer, UserDetailSerializer, UserFilterSerializer
from .services import apply_filter, confirm_verification, request_verification

logger = logging.getLogger(__name__)

User = get_user_model()


class LoginAPIView(GenericAPIView):
    """
    POST -> validate credentials via LoginSerializer and return a sliding token.
    """
    serializer_class = LoginSerializer
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data['user']
        token = SlidingToken.for_user(user)

        return Response(
            {
                "message": "Login successful.",
                "token": str(token),
                "user": UserDetailSerializer(user).data,
            },
            status=status.HTTP_200_OK,
        )


class CurrentUserAPIView(generics.RetrieveAPIView):
    serializer_class = UserDetailSerializer

    def get_object(self):
        return self.request.user


class VerifyEmailAPIView(APIView):
    """
    POST -> issue a new verification email for the authenticated user.
    Limited to one per day; older unconfirmed verifications are replaced.
    """

    def post(self, request):
        request_verification(request.user, get_context())
        return Response({'status': 'Verification email sent!'}, status=status.HTTP_200_OK)


class ConfirmEmailAPIView(APIView):
    def get(self, request, user_token, random_token):
        if confirm_verification(user_token, random_token, request.user):
            return Response({'status': 'Email verified.', 'redirect': '/'}, status=status.HTTP_200_OK)
        return Response(status=status.HTTP_204_NO_CONTENT)


class FilterAPIView(APIView):
    """POST {type, item} -> apply ``filter_type`` from the acting profile to the target."""
    filter_type = None

    def post(self, request):
        data = validated(FilterRequestSerializer(data=request.data))
        user_filter, created = apply_filter(
            request.user.profile,
            self.filter_type,
            data['type'],
            data['item'],
        )
        return Response(
            {
                'msg': 'success',
                'created': created,
                'filter': UserFilterSerializer(user_filter).data,
            },
            status=status.HTTP_200_OK,
        )


class MuteAPIView(FilterAPIView):
    filter_type = FilterType.MUTE


class BlockAPIView(FilterAPIView):
    filter_type = FilterType.BLOCK
