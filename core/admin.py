"""
Django Admin configuration for CORE app.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, Profile, Staff, StaffStatus


class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    extra = 0


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Custom admin for User model with email-based auth."""

    list_display = ('email', 'full_name', 'role', 'phone', 'is_active', 'date_joined')
    list_filter = ('role', 'is_active', 'is_staff')
    search_fields = ('email', 'full_name', 'phone')
    ordering = ('-date_joined',)
    inlines = [ProfileInline]

    fieldsets = (
        (None, {
            'fields': ('email', 'password')
        }),
        ('Account', {
            'fields': ('full_name', 'phone', 'role')
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',)
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'role', 'password1', 'password2'),
        }),
    )

    readonly_fields = ('date_joined',)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'phone', 'designation', 'status', 'created_at')
    list_filter = ('status', 'designation')
    search_fields = ('name', 'email', 'phone')
    raw_id_fields = ('user',)
    actions = ['activate_staff', 'deactivate_staff']

    @admin.action(description="Mark selected staff Active")
    def activate_staff(self, request, queryset):
        updated = queryset.update(status=StaffStatus.ACTIVE)
        self.message_user(request, f"{updated} staff member(s) activated.")

    @admin.action(description="Mark selected staff Inactive")
    def deactivate_staff(self, request, queryset):
        updated = queryset.update(status=StaffStatus.INACTIVE)
        self.message_user(request, f"{updated} staff member(s) deactivated.")
