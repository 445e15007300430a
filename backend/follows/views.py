from rest_framework import generics, permissions, status
from rest_framework.response import Response
import logging

from backend.context import get_context
from backend.exceptions import validated
from backend.pagination import FollowRequestPagination
from .serializers import FollowRequestActionSerializer, FollowRequestSerializer
from .services import accept_request, pending_requests, reject_request

logger = logging.getLogger(__name__)


class FollowRequestListView(generics.ListAPIView):
    """
    GET  -> pending follow requests addressed to the authenticated profile, newest first.
    POST -> {"action": "accept" | <anything else rejects>, "id": <request id>}
    """
    serializer_class = FollowRequestSerializer
    pagination_class = FollowRequestPagination
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return pending_requests(self.request.user.profile.id)

    def post(self, request):
        data = validated(FollowRequestActionSerializer(data=request.data))
        profile_id = request.user.profile.id

        if data['action'] == 'accept':
            accept_request(data['id'], profile_id, get_context())
        else:
            reject_request(data['id'], profile_id)

        return Response({'msg': 'success'}, status=status.HTTP_200_OK)
