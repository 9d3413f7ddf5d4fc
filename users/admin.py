from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ('email', 'username', 'display_name', 'firebase_uid', 'is_staff')
    search_fields = ('email', 'username', 'display_name')
    ordering = ('email',)
    fieldsets = UserAdmin.fieldsets + (
        ('Sign-in', {'fields': ('display_name', 'firebase_uid')}),
    )
