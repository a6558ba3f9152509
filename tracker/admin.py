"""Django admin configuration for tracker models."""

from django.contrib import admin
from django.contrib.auth.models import User
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    ActivityLog,
    District,
    Followup,
    Group,
    Industry,
    Location,
    Profile,
    Respondent,
)


class ProfileInline(admin.StackedInline):
    """Allows editing of the Profile model on the same page as the User model."""
    model = Profile
    can_delete = False
    verbose_name_plural = 'profile'


class UserAdmin(BaseUserAdmin):
    """Extend the default User admin to include Profile fields."""
    inlines = (ProfileInline,)


@admin.register(Respondent)
class RespondentAdmin(admin.ModelAdmin):
    list_display = ('respondent_name', 'district', 'gender', 'group_name', 'created_at')
    list_filter = ('district', 'gender')
    search_fields = ('respondent_name', 'district', 'group_name')


@admin.register(Followup)
class FollowupAdmin(admin.ModelAdmin):
    list_display = ('respondent', 'visit_date', 'conducted_by', 'attended_training')
    list_filter = ('attended_training', 'visit_date')


admin.site.unregister(User)
admin.site.register(User, UserAdmin)
admin.site.register(District)
admin.site.register(Group)
admin.site.register(Industry)
admin.site.register(Location)
admin.site.register(ActivityLog)
