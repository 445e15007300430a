from django.core.exceptions import ValidationError
from django.db import models

from accounts.models import Profile


class FollowRequest(models.Model):
    """
    A pending follow. Accepting deletes the row; rejecting keeps it with
    ``is_rejected`` set, and a rejected request never becomes pending again.
    """
    follower = models.ForeignKey(
        Profile,
        related_name='sent_follow_requests',
        on_delete=models.CASCADE,
    )
    following = models.ForeignKey(
        Profile,
        related_name='received_follow_requests',
        on_delete=models.CASCADE,
    )
    is_rejected = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('follower', 'following')
        ordering = ['-id']
        db_table = 'follow_requests'

    def clean(self):
        if self.follower_id == self.following_id:
            raise ValidationError("Cannot send a follow request to yourself.")

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    def __str__(self):
        state = 'rejected' if self.is_rejected else 'pending'
        return f"{self.follower} -> {self.following} [{state}]"


class Follower(models.Model):
    """Directed edge: ``profile`` follows ``following``."""
    profile = models.ForeignKey(
        Profile,
        related_name='following_edges',
        on_delete=models.CASCADE,
    )
    following = models.ForeignKey(
        Profile,
        related_name='follower_edges',
        on_delete=models.CASCADE,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = (('profile', 'following'),)
        ordering = ['-created_at']
        db_table = 'followers'

    def __str__(self):
        return f"{self.profile} follows {self.following}"
