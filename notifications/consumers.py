import logging
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from .models import Notification

logger = logging.getLogger(__name__)


def user_group(user_id):
    return f"user_{user_id}"


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """
    Pushes permission request notices to the signed in user.

    Connect with ws://<host>/ws/notifications/?token=<access token>
    or send an "Authorization: Bearer <access token>" header.
    The first frame after connecting carries the unread count.
    """
    async def connect(self):
        user = self.scope["user"]
        if user.is_anonymous:
            logger.info("Notification socket refused: no valid token.")
            await self.close(code=4401)
            return

        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_json({"type": "unread_count", "count": await self.unread_count()})

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    @database_sync_to_async
    def unread_count(self):
        return Notification.objects.filter(user=self.scope["user"], is_read=False).count()

    async def permission_notice(self, event):
        await self.send_json({"type": "notice", **event["notice"]})
