from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    email = models.EmailField(unique=True, db_index=True)
    email_verified_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'users'

    @property
    def is_email_verified(self):
        return self.email_verified_at is not None

    def __str__(self):
        return f"{self.username} ({self.pk})"


class Profile(models.Model):
    """Public-facing identity of a user account."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile',
    )
    username = models.CharField(max_length=150, unique=True)
    bio = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'profiles'

    def following_ids(self):
        return self.following_edges.values_list('following_id', flat=True)

    def __str__(self):
        return self.username


class FilterableType(models.TextChoices):
    """Kinds of entity a UserFilter can point at."""
    PROFILE = 'profile', 'Profile'


class FilterType(models.TextChoices):
    MUTE = 'mute', 'Mute'
    BLOCK = 'block', 'Block'


class UserFilter(models.Model):
    profile = models.ForeignKey(
        Profile,
        related_name='filters',
        on_delete=models.CASCADE,
    )
    filterable_id = models.BigIntegerField()
    filterable_type = models.CharField(max_length=20, choices=FilterableType.choices)
    filter_type = models.CharField(max_length=10, choices=FilterType.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_filters'
        constraints = [
            models.UniqueConstraint(
                fields=['profile', 'filterable_id', 'filterable_type', 'filter_type'],
                name='unique_user_filter',
            ),
        ]

    def __str__(self):
        return f"{self.profile} {self.filter_type} {self.filterable_type}:{self.filterable_id}"


class EmailVerification(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name='email_verifications',
        on_delete=models.CASCADE,
    )
    email = models.EmailField()
    user_token = models.CharField(max_length=128, db_index=True)
    random_token = models.CharField(max_length=64)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'email_verifications'
        ordering = ['-created_at']

    def __str__(self):
        return f"Verification for {self.email} ({self.created_at:%Y-%m-%d %H:%M})"
