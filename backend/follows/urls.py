from django.urls import path
from .views import FollowRequestListView

urlpatterns = [
    path('requests/', FollowRequestListView.as_view(), name='follow-requests'),
]
