# notifications/consumers.py
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
import logging

from .tasks import group_name_for

logger = logging.getLogger(__name__)


@database_sync_to_async
def _profile_id_for(user):
    profile = getattr(user, "profile", None)
    return profile.id if profile is not None else None


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """
    Streams new notifications to the connected user. The socket joins the
    group of the user's profile, which the follow pipeline publishes to.
    """
    group_name = None

    async def connect(self):
        user = self.scope.get("user")
        if user is None or getattr(user, "is_anonymous", True):
            await self.close(code=4401)
            return

        profile_id = await _profile_id_for(user)
        if profile_id is None:
            await self.close(code=4404)
            return

        self.group_name = group_name_for(profile_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.debug("WS connect: profile=%s joined group=%s", profile_id, self.group_name)

    async def disconnect(self, close_code):
        if self.group_name is None:
            return
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        if content.get("type") == "ping":
            await self.send_json({"type": "pong"})
            return
        logger.debug("WS ignored client message: %s", content)

    async def notification_message(self, event):
        """Handler for ``notification.message`` group events."""
        notification = event.get("notification")
        if not notification:
            return
        await self.send_json({"type": "notification", "data": notification})
