from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'profile', 'actor', 'action', 'created_at')
    list_filter = ('action',)
    search_fields = ('profile__username', 'actor__username')
    readonly_fields = ('profile', 'actor', 'action', 'message', 'item_type', 'item_id', 'created_at')
