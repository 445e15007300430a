from django.db import models

from accounts.models import Profile


class NotificationAction(models.TextChoices):
    COMMENT = 'comment', 'Comment'
    FOLLOW = 'follow', 'Follow'
    MENTION = 'mention', 'Mention'
    LIKE = 'like', 'Like'
    SHARE = 'share', 'Share'


class Notification(models.Model):
    """
    An event delivered to ``profile``. Rows are never updated after creation;
    the Redis feed only indexes them.
    """
    profile = models.ForeignKey(
        Profile,
        related_name='notifications',
        on_delete=models.CASCADE,
    )
    actor = models.ForeignKey(
        Profile,
        related_name='notifications_from',
        on_delete=models.CASCADE,
    )
    action = models.CharField(max_length=20, choices=NotificationAction.choices)
    message = models.TextField(blank=True)
    # the object the action refers to, e.g. ("follower", <edge id>)
    item_type = models.CharField(max_length=40, blank=True)
    item_id = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-id']
        db_table = 'notifications'
        indexes = [
            models.Index(fields=['profile', 'id'], name='notif_profile_id_idx'),
            models.Index(fields=['actor', 'created_at'], name='notif_actor_created_idx'),
        ]

    def __str__(self):
        return f"Notification to {self.profile}: {self.actor} {self.action}"
