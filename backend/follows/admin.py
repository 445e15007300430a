from django.contrib import admin
from .models import Follower, FollowRequest


@admin.register(FollowRequest)
class FollowRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'follower', 'following', 'is_rejected', 'created_at')
    list_filter = ('is_rejected',)
    search_fields = ('follower__username', 'following__username')


@admin.register(Follower)
class FollowerAdmin(admin.ModelAdmin):
    list_display = ('id', 'profile', 'following', 'created_at')
    search_fields = ('profile__username', 'following__username')
