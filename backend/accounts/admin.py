from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import EmailVerification, Profile, User, UserFilter


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('id', 'username', 'email', 'email_verified_at', 'is_active')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Verification', {'fields': ('email_verified_at',)}),
    )


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'username', 'user', 'created_at')
    search_fields = ('username', 'user__email')


@admin.register(UserFilter)
class UserFilterAdmin(admin.ModelAdmin):
    list_display = ('id', 'profile', 'filter_type', 'filterable_type', 'filterable_id', 'created_at')
    list_filter = ('filter_type', 'filterable_type')


@admin.register(EmailVerification)
class EmailVerificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'email', 'created_at')
    search_fields = ('email', 'user__username')
    readonly_fields = ('user_token', 'random_token')
