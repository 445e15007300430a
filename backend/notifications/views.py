# notifications/views.py
from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from backend.context import get_context
from backend.exceptions import validated
from backend.pagination import NotificationPagination
from .feed import NotificationFeed, list_following_activity, list_recent
from .serializers import NotificationQuerySerializer, NotificationSerializer


class NotificationViewSet(viewsets.GenericViewSet):
    """
    Read-only notification endpoints for the authenticated profile:
    - list: own notifications from the last six months, optional ``a`` action filter
    - following: last month's activity of the profiles being followed
    - feed: the cached recent feed (falls back to the database when cold)
    """
    serializer_class = NotificationSerializer
    pagination_class = NotificationPagination
    permission_classes = [permissions.IsAuthenticated]

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def list(self, request):
        params = validated(NotificationQuerySerializer(data=request.query_params))
        return self._paginated(list_recent(request.user.profile, params.get('a')))

    @action(detail=False, methods=['get'])
    def following(self, request):
        params = validated(NotificationQuerySerializer(data=request.query_params))
        return self._paginated(list_following_activity(request.user.profile, params.get('a')))

    @action(detail=False, methods=['get'])
    def feed(self, request):
        notifications = NotificationFeed(get_context()).fetch(request.user.profile.id)
        data = [
            NotificationSerializer(n).data if n is not None else None
            for n in notifications
        ]
        return Response({'results': data}, status=status.HTTP_200_OK)
