from django.urls import path
from .views import (
    BlockAPIView, ConfirmEmailAPIView, CurrentUserAPIView, LoginAPIView, MuteAPIView, VerifyEmailAPIView,
)

urlpatterns = [
    path('login/', LoginAPIView.as_view(), name='login'),
    path('me/', CurrentUserAPIView.as_view(), name='current-user'),
    path('verify-email/', VerifyEmailAPIView.as_view(), name='verify-email'),
    path(
        'verify-email/<str:user_token>/<str:random_token>/',
        ConfirmEmailAPIView.as_view(),
        name='verify-email-confirm',
    ),
    path('mute/', MuteAPIView.as_view(), name='mute'),
    path('block/', BlockAPIView.as_view(), name='block'),
]
